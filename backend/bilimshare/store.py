"""
Gateway to the backing store.

Every ORM query of the application lives here. Callers receive frozen row
records (see records.py) and StoreError on any database fault; the
uniqueness and cascade rules themselves are enforced by the database.

Query notes:
- Posts are read newest first, comments oldest first, with the primary key
  as a tie breaker so equal timestamps keep insertion order.
- "IN" queries are never issued with an empty id list; callers short-circuit.
"""
import logging
from contextlib import contextmanager

from django.contrib.auth.models import User
from django.db import (
    DatabaseError, IntegrityError, InterfaceError, OperationalError, transaction
)

from .exceptions import NotFound, StoreError
from .models import Comment, Like, Post, Profile
from .records import CommentRow, LikeRow, PostRow, UserRow

logger = logging.getLogger(__name__)

POST_FIELDS = ('id', 'title', 'body', 'category', 'image', 'author_id', 'created_at')
COMMENT_FIELDS = ('id', 'text', 'post_id', 'parent_id', 'author_id', 'created_at')
LIKE_FIELDS = ('id', 'post_id', 'user_id')
PROFILE_FIELDS = ('user_id', 'name', 'role', 'email')


def _user_row(values):
    return UserRow(
        id=values['user_id'],
        name=values['name'],
        role=values['role'],
        email=values['email'],
    )


@contextmanager
def store_call(operation):
    """Translate database exceptions raised inside the block to StoreError."""
    try:
        yield
    except StoreError:
        raise
    except IntegrityError as e:
        logger.warning(f"Store rejected {operation}: {e}")
        raise StoreError(str(e)) from e
    except (OperationalError, InterfaceError) as e:
        logger.error(f"Store unavailable during {operation}: {e}")
        raise StoreError(str(e), transport=True) from e
    except DatabaseError as e:
        logger.error(f"Store fault during {operation}: {e}")
        raise StoreError(str(e)) from e


class StoreGateway:
    """ORM-backed implementation of the store operations the app needs."""

    def atomic(self):
        return transaction.atomic()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_posts(self):
        with store_call('list posts'):
            rows = Post.objects.order_by('-created_at', '-id').values(*POST_FIELDS)
            return [PostRow(**row) for row in rows]

    def get_post(self, post_id):
        with store_call('get post'):
            row = Post.objects.filter(pk=post_id).values(*POST_FIELDS).first()
        if row is None:
            raise NotFound(f"Post {post_id} not found")
        return PostRow(**row)

    def users_by_ids(self, user_ids):
        with store_call('list authors'):
            rows = Profile.objects.filter(user_id__in=list(user_ids)).values(*PROFILE_FIELDS)
            return [_user_row(row) for row in rows]

    def list_users(self):
        with store_call('list users'):
            rows = Profile.objects.order_by('created_at', 'user_id').values(*PROFILE_FIELDS)
            return [_user_row(row) for row in rows]

    def get_user(self, user_id):
        with store_call('get user'):
            row = Profile.objects.filter(user_id=user_id).values(*PROFILE_FIELDS).first()
        if row is None:
            raise NotFound(f"User {user_id} not found")
        return _user_row(row)

    def comments_for_posts(self, post_ids):
        with store_call('list comments'):
            rows = Comment.objects.filter(
                post_id__in=list(post_ids)
            ).order_by('created_at', 'id').values(*COMMENT_FIELDS)
            return [CommentRow(**row) for row in rows]

    def get_comment(self, comment_id):
        with store_call('get comment'):
            row = Comment.objects.filter(pk=comment_id).values(*COMMENT_FIELDS).first()
        if row is None:
            raise NotFound(f"Comment {comment_id} not found")
        return CommentRow(**row)

    def likes_for_posts(self, post_ids):
        with store_call('list likes'):
            rows = Like.objects.filter(post_id__in=list(post_ids)).values(*LIKE_FIELDS)
            return [LikeRow(**row) for row in rows]

    def count_likes(self, post_id):
        with store_call('count likes'):
            return Like.objects.filter(post_id=post_id).count()

    def find_like(self, post_id, user_id):
        with store_call('find like'):
            row = Like.objects.filter(post_id=post_id, user_id=user_id).values(*LIKE_FIELDS).first()
        return LikeRow(**row) if row else None

    # ------------------------------------------------------------------
    # Writes (each in its own savepoint so a rejected write leaves the
    # surrounding transaction usable)
    # ------------------------------------------------------------------

    def insert_like(self, post_id, user_id):
        with store_call('insert like'), transaction.atomic():
            like = Like.objects.create(post_id=post_id, user_id=user_id)
        return LikeRow(id=like.id, post_id=like.post_id, user_id=like.user_id)

    def delete_like(self, like_id):
        """Delete a like row. Deleting an absent row is a no-op."""
        with store_call('delete like'), transaction.atomic():
            deleted, _ = Like.objects.filter(pk=like_id).delete()
        return deleted

    def insert_post(self, author_id, title, body, category, image=None):
        fields = {'author_id': author_id, 'title': title, 'body': body, 'category': category}
        if image:
            fields['image'] = image
        with store_call('insert post'), transaction.atomic():
            post = Post.objects.create(**fields)
        return PostRow(**{name: getattr(post, name) for name in POST_FIELDS})

    def delete_post(self, post_id):
        with store_call('delete post'), transaction.atomic():
            deleted, _ = Post.objects.filter(pk=post_id).delete()
        return deleted

    def insert_comment(self, post_id, author_id, text, parent_id=None):
        with store_call('insert comment'), transaction.atomic():
            comment = Comment.objects.create(
                post_id=post_id,
                author_id=author_id,
                text=text,
                parent_id=parent_id
            )
        return CommentRow(**{name: getattr(comment, name) for name in COMMENT_FIELDS})

    def delete_comment(self, comment_id):
        with store_call('delete comment'), transaction.atomic():
            deleted, _ = Comment.objects.filter(pk=comment_id).delete()
        return deleted

    def update_role(self, user_id, role):
        with store_call('update role'), transaction.atomic():
            updated = Profile.objects.filter(user_id=user_id).update(role=role)
        if not updated:
            raise NotFound(f"User {user_id} not found")
        return updated

    def delete_user(self, user_id):
        """Delete the auth user; profile, posts, comments and likes cascade."""
        with store_call('delete user'), transaction.atomic():
            deleted, _ = User.objects.filter(pk=user_id).delete()
        return deleted

    def create_account(self, email, password, name, role=Profile.ROLE_STUDENT):
        """Create an auth user and its profile in one transaction."""
        with store_call('create account'), transaction.atomic():
            if User.objects.filter(username__iexact=email).exists():
                raise StoreError('Email already registered')
            user = User.objects.create_user(username=email, email=email, password=password)
            profile = Profile.objects.create(user=user, name=name, email=email, role=role)
        return UserRow(id=user.id, name=profile.name, role=profile.role, email=profile.email)


gateway = StoreGateway()
