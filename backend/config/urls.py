"""
Root URL configuration.

/api/ holds the REST API; every other path that whitenoise did not serve
falls back to the UI's index.html.
"""
from django.contrib import admin
from django.urls import include, path, re_path

from bilimshare.views import spa_index

urlpatterns = [
    path('api/', include('bilimshare.urls')),
    path('django-admin/', admin.site.urls),
    re_path(r'^(?!api/|django-admin/)(?P<path>.*)$', spa_index, name='spa-index'),
]
