from django.contrib import admin
from .models import Profile, Post, Comment, Like


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ['user_id', 'name', 'email', 'role', 'created_at']
    list_filter = ['role']
    search_fields = ['name', 'email']


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = ['id', 'title', 'category', 'author', 'created_at']
    list_filter = ['category', 'created_at']
    search_fields = ['title', 'body', 'author__username']


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ['id', 'post', 'parent', 'author', 'created_at', 'text_preview']
    list_filter = ['created_at']
    search_fields = ['text', 'author__username']

    def text_preview(self, obj):
        return obj.text[:50] + '...' if len(obj.text) > 50 else obj.text


@admin.register(Like)
class LikeAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'post', 'created_at']
    search_fields = ['user__username']
