"""
Development server on settings.PORT unless an address is given.

    python manage.py serve
    python manage.py serve 0.0.0.0:8080
"""
from django.conf import settings
from django.contrib.staticfiles.management.commands.runserver import Command as StaticRunserver


class Command(StaticRunserver):
    help = 'Starts the development server on the configured PORT.'

    @property
    def default_port(self):
        return str(settings.PORT)
