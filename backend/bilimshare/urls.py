"""
URL configuration for the BilimShare API.
"""
from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from .auth_views import LoginView, LogoutView, MeView, SignupView
from .views import (
    AdminView, CommentCreateView, CommentDetailView, FeedPostView, FeedProfileView,
    FeedView, LikeCountView, LikeToggleView, PostCommentView, PostDetailView,
    PostLikeView, PostListView, UserDetailView, UserRoleView,
)

urlpatterns = [
    # Public REST surface
    path('posts', PostListView.as_view(), name='posts'),
    path('likes/<int:post_id>', LikeCountView.as_view(), name='like-count'),
    path('like', LikeToggleView.as_view(), name='like'),
    path('comments', CommentCreateView.as_view(), name='comments'),
    path('signup', SignupView.as_view(), name='signup'),

    # Authentication
    path('login', LoginView.as_view(), name='login'),
    path('logout', LogoutView.as_view(), name='logout'),
    path('me', MeView.as_view(), name='me'),
    path('token/refresh', TokenRefreshView.as_view(), name='token-refresh'),

    # Pages
    path('feed', FeedView.as_view(), name='feed'),
    path('feed/posts/<int:post_id>', FeedPostView.as_view(), name='feed-post'),
    path('feed/users/<int:user_id>', FeedProfileView.as_view(), name='feed-profile'),
    path('admin', AdminView.as_view(), name='admin-panel'),

    # Interactions
    path('posts/<int:post_id>', PostDetailView.as_view(), name='post-detail'),
    path('posts/<int:post_id>/like', PostLikeView.as_view(), name='post-like'),
    path('posts/<int:post_id>/comments', PostCommentView.as_view(), name='post-comments'),
    path('comments/<int:comment_id>', CommentDetailView.as_view(), name='comment-detail'),
    path('users/<int:user_id>/role', UserRoleView.as_view(), name='user-role'),
    path('users/<int:user_id>', UserDetailView.as_view(), name='user-detail'),
]
