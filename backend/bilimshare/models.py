"""
Models for the BilimShare application.

Design decisions:
1. Identity comes from django.contrib.auth; Profile adds display name and role
2. Comments use a self-referential FK for reply nesting
3. Likes carry a unique constraint on (post, user); a row means "liked"
4. Every dependent row cascades from its parent, so deleting a user or a
   post removes their comments and likes in the store
"""
import secrets

from django.conf import settings
from django.contrib.auth.models import User
from django.db import models


def general_category():
    return settings.BILIMSHARE['GENERAL_CATEGORY']


def placeholder_image():
    """Random placeholder picture for posts created without an image."""
    return f"https://picsum.photos/seed/{secrets.token_hex(3)}/1200/800"


class Profile(models.Model):
    """
    Public face of an auth user.

    The role decides write permissions: students may only comment and like,
    teachers may also publish posts, admins may delete and change roles.
    """
    ROLE_STUDENT = 'student'
    ROLE_TEACHER = 'teacher'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_STUDENT, 'Student'),
        (ROLE_TEACHER, 'Teacher'),
        (ROLE_ADMIN, 'Admin'),
    ]

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='profile'
    )
    name = models.CharField(max_length=150)
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_STUDENT)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"{self.name} ({self.role})"


class Post(models.Model):
    """
    A post in the feed.

    Indexes:
    - created_at: For ordering posts by time
    - category: For facet filtering
    """
    title = models.CharField(max_length=255)
    body = models.TextField(blank=True)
    category = models.CharField(max_length=100, default=general_category)
    image = models.URLField(max_length=500, blank=True, default=placeholder_image)
    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='posts'
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['author', '-created_at'], name='bilimshare__author__0e9c1d_idx'),
            models.Index(fields=['category'], name='bilimshare__categor_5b2f7a_idx'),
        ]

    def __str__(self):
        return f"Post {self.id}: {self.title}"


class Comment(models.Model):
    """
    Comment with an optional parent comment.

    Replies are stored flat; nesting is rebuilt at presentation time
    from parent_id.
    """
    post = models.ForeignKey(
        Post,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='replies'
    )
    text = models.TextField()
    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['post', 'created_at'], name='bilimshare__post_id_8d41e2_idx'),
        ]

    def __str__(self):
        return f"Comment {self.id} on Post {self.post_id}"


class Like(models.Model):
    """
    One row per (post, user). The like count is the number of rows.

    The unique constraint is what settles two racing toggles from the
    same user: the second insert fails.
    """
    post = models.ForeignKey(
        Post,
        on_delete=models.CASCADE,
        related_name='likes'
    )
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='likes'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['post', 'user'],
                name='unique_post_user_like'
            ),
        ]
        indexes = [
            models.Index(fields=['post'], name='bilimshare__post_id_3c7a90_idx'),
        ]

    def __str__(self):
        return f"Like by {self.user_id} on Post {self.post_id}"
