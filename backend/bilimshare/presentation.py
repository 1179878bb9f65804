"""
Page rendering: AppState + ViewModel -> JSON-ready dicts.

Nothing here writes state. Comment nesting is rebuilt from each post's flat
comment list by matching parent ids, so the comment index itself stays a
plain per-post sequence.
"""
from dataclasses import asdict

from django.utils import timezone

from . import aggregates
from .serializers import (
    AdminPageSerializer, HomePageSerializer, PostListItemSerializer,
    PostPageSerializer, ProfilePageSerializer,
)

EXCERPT_LENGTH = 120


def time_ago(timestamp, now=None):
    if not timestamp:
        return ''
    now = now or timezone.now()
    seconds = max(int((now - timestamp).total_seconds()), 0)
    if seconds < 60:
        return 'just now'
    if seconds < 3600:
        return f"{seconds // 60} min ago"
    if seconds < 86400:
        return f"{seconds // 3600} h ago"
    return f"{seconds // 86400} d ago"


def truncate(text, length=EXCERPT_LENGTH):
    if not text:
        return ''
    return text[:length] + '...' if len(text) > length else text


def _author(view_model, user_id):
    user = view_model.author(user_id)
    if user is None:
        return None
    return {'id': user.id, 'name': user.name}


def _viewer_id(state):
    return state.current_user.id if state.current_user else None


def post_card(post, view_model, state, now=None):
    likes = view_model.likes_for(post.id)
    return {
        'id': post.id,
        'title': post.title,
        'excerpt': truncate(post.body),
        'category': post.category,
        'image': post.image,
        'author': _author(view_model, post.author_id),
        'likes_count': likes.count,
        'liked': likes.liked_by(_viewer_id(state)),
        'comments_count': len(view_model.comments_for(post.id)),
        'created_at': post.created_at,
        'time_ago': time_ago(post.created_at, now),
    }


def post_list(view_model):
    """Rows of GET /api/posts."""
    items = []
    for post in view_model.posts:
        author = view_model.author(post.author_id)
        likes = view_model.likes_for(post.id)
        items.append({
            **asdict(post),
            'author_name': author.name if author else None,
            'likes': [{'user_id': user_id} for user_id in sorted(likes.user_ids)],
            'likes_count': likes.count,
        })
    return PostListItemSerializer(items, many=True).data


def home_page(state, view_model, now=None):
    facets = aggregates.category_facets(view_model.posts)
    visible = aggregates.filter_by_category(view_model.posts, state.filter_category)
    page = {
        'current_user': state.current_user,
        'can_publish': bool(state.current_user and state.current_user.can_publish),
        'filter_category': state.filter_category,
        'posts': [post_card(p, view_model, state, now) for p in visible],
        'categories': [
            {'name': name, 'count': count, 'selected': name == state.filter_category}
            for name, count in aggregates.category_counts(view_model.posts, facets)
        ],
        'popular': [
            {'id': p.id, 'title': p.title, 'likes_count': view_model.like_count(p.id)}
            for p in aggregates.popular_posts(view_model)
        ],
        'leaderboard': [
            {
                'rank': rank,
                'user': {'id': entry.user.id, 'name': entry.user.name},
                'posts_count': entry.posts_count,
                'likes_received': entry.likes_received,
                'score': entry.score,
            }
            for rank, entry in enumerate(aggregates.leaderboard(view_model), start=1)
        ],
    }
    return HomePageSerializer(page).data


def comment_tree(comments, view_model, state, now=None):
    """
    Nest a post's comments under their parents, keeping list order.

    A comment whose parent is not in the list is shown at the top level.
    """
    viewer = state.current_user
    known = {c.id for c in comments}

    def node(comment):
        return {
            'id': comment.id,
            'text': comment.text,
            'parent_id': comment.parent_id,
            'author': _author(view_model, comment.author_id),
            'created_at': comment.created_at,
            'time_ago': time_ago(comment.created_at, now),
            'can_delete': bool(viewer and (viewer.is_admin or viewer.id == comment.author_id)),
            'can_reply': viewer is not None,
            'replies': [node(c) for c in comments if c.parent_id == comment.id],
        }

    return [node(c) for c in comments if c.parent_id is None or c.parent_id not in known]


def post_page(state, view_model, now=None):
    """Returns None when the selected post is not in the view model."""
    post = view_model.find_post(state.selected_post_id)
    if post is None:
        return None
    viewer = state.current_user
    likes = view_model.likes_for(post.id)
    comments = view_model.comments_for(post.id)
    page = {
        'current_user': viewer,
        'post': post,
        'author': _author(view_model, post.author_id),
        'likes_count': likes.count,
        'liked': likes.liked_by(_viewer_id(state)),
        'can_like': viewer is not None,
        'can_delete': bool(viewer and viewer.is_admin),
        'comments_count': len(comments),
        'comments': comment_tree(comments, view_model, state, now),
    }
    return PostPageSerializer(page).data


def profile_page(state, user, view_model, now=None):
    posts = [p for p in view_model.posts if p.author_id == user.id]
    page = {
        'current_user': state.current_user,
        'user': user,
        'posts': [post_card(p, view_model, state, now) for p in posts],
    }
    return ProfilePageSerializer(page).data


def admin_page(state, users, view_model, now=None):
    page = {
        'current_user': state.current_user,
        'users': users,
        'posts': [post_card(p, view_model, state, now) for p in view_model.posts],
    }
    return AdminPageSerializer(page).data
