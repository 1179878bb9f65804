"""
Interaction handlers: every write the application performs.

Each handler follows the same steps:
1. Check preconditions locally (signed in, role, non-empty input, confirmed)
2. Issue the store mutation(s)
3. On success, invalidate the touched entity keys and run a fetch cycle
4. On failure, log and return a fault; the cached view is left untouched

Handlers never raise. Callers inspect HandlerResult.ok.
"""
import logging

from django.conf import settings
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError

from .cache import ENTITY_KEYS, feed_cache
from .exceptions import NotFound, StoreError
from .models import Profile
from .results import (
    FORBIDDEN, INVALID, NOT_FOUND, STORE, TRANSPORT, UNAUTHENTICATED, UNCONFIRMED,
    HandlerResult,
)
from .state import Navigate, OpenPost, SignedIn
from .store import gateway as default_gateway

logger = logging.getLogger(__name__)

ROLES = [choice for choice, _ in Profile.ROLE_CHOICES]
UNAVAILABLE = 'Service is temporarily unavailable, please try again'
SIGN_IN_REQUIRED = 'Sign in required'
NOT_CONFIRMED = 'Deletion was not confirmed'


def store_fault(operation, error, failure=''):
    """Convert a StoreError to the fault shown to the caller."""
    if isinstance(error, NotFound):
        logger.info(f"{operation}: {error.message}")
        return HandlerResult.fault(NOT_FOUND, error.message)
    if error.transport:
        logger.error(f"{operation} failed, store unreachable: {error}")
        return HandlerResult.fault(TRANSPORT, UNAVAILABLE)
    logger.error(f"{operation} rejected by store: {error}")
    return HandlerResult.fault(STORE, error.message or failure)


class InteractionHandlers:
    def __init__(self, gateway=None, cache=None):
        self.gateway = gateway or default_gateway
        self.cache = cache or feed_cache

    def _perform(self, operation, keys, mutation, failure):
        """
        Run a mutation and convert its outcome to a HandlerResult.

        mutation returns (message, entity, action); failure is the message
        shown when the mutation fails in an unexpected way.
        """
        try:
            message, entity, action = mutation()
        except StoreError as e:
            return store_fault(operation, e, failure)
        except Exception:
            logger.exception(f"{operation} failed")
            return HandlerResult.fault(TRANSPORT, failure)

        self.cache.invalidate(*keys)
        self.cache.refresh()
        logger.info(f"{operation}: {message}")
        return HandlerResult.success(message=message, entity=entity, action=action)

    # Accounts

    def register(self, email, password, name=None):
        """Create an account with the student role. E-mail addresses are stored lower-cased."""
        email = (email or '').strip()
        if not email or not password:
            return HandlerResult.fault(INVALID, 'Email and password are required')
        try:
            validate_password(password)
        except ValidationError as e:
            return HandlerResult.fault(INVALID, ' '.join(e.messages))
        name = (name or '').strip() or email.split('@')[0]
        email = email.lower()

        def mutation():
            user = self.gateway.create_account(email=email, password=password, name=name)
            return 'registered', user, SignedIn(user)

        return self._perform('register', ('users',), mutation, 'Registration failed')

    # Posts

    def create_post(self, actor, title, body, category=None, image=None):
        if actor is None:
            return HandlerResult.fault(UNAUTHENTICATED, SIGN_IN_REQUIRED)
        if not actor.can_publish:
            return HandlerResult.fault(FORBIDDEN, 'Only teachers and admins can publish posts')
        title = (title or '').strip()
        body = (body or '').strip()
        if not title or not body:
            return HandlerResult.fault(INVALID, 'Title and body are required')
        category = (category or '').strip() or settings.BILIMSHARE['GENERAL_CATEGORY']

        def mutation():
            post = self.gateway.insert_post(
                author_id=actor.id, title=title, body=body, category=category, image=image
            )
            return 'created', post, OpenPost(post.id)

        return self._perform('create post', ('posts', 'users'), mutation,
                             'Could not publish the post')

    def delete_post(self, actor, post_id, confirmed=False):
        if actor is None or not actor.is_admin:
            return HandlerResult.fault(FORBIDDEN, 'Only an admin can delete posts')
        if not confirmed:
            return HandlerResult.fault(UNCONFIRMED, NOT_CONFIRMED)

        def mutation():
            if not self.gateway.delete_post(post_id):
                raise NotFound(f"Post {post_id} not found")
            return 'deleted', None, Navigate('home')

        return self._perform('delete post', ('posts', 'comments', 'likes'), mutation,
                             'Could not delete the post')

    # Likes

    def toggle_like(self, actor, post_id):
        """
        Like the post if the actor has not liked it yet, unlike it otherwise.

        Lookup and write share one transaction but are not serialized against
        a concurrent toggle by the same user; a racing duplicate insert is
        rejected by the store's unique constraint and comes back as a fault.
        """
        if actor is None:
            return HandlerResult.fault(UNAUTHENTICATED, 'Sign in to like posts')

        def mutation():
            self.gateway.get_post(post_id)
            with self.gateway.atomic():
                existing = self.gateway.find_like(post_id, actor.id)
                if existing:
                    self.gateway.delete_like(existing.id)
                    return 'unliked', {'liked': False}, None
                self.gateway.insert_like(post_id, actor.id)
                return 'liked', {'liked': True}, None

        return self._perform('toggle like', ('likes',), mutation, 'Like was not changed')

    # Comments

    def add_comment(self, actor, post_id, text, parent_id=None):
        if actor is None:
            return HandlerResult.fault(UNAUTHENTICATED, SIGN_IN_REQUIRED)
        text = (text or '').strip()
        if not text:
            return HandlerResult.fault(INVALID, 'Comment is empty')

        def mutation():
            self.gateway.get_post(post_id)
            if parent_id is not None:
                parent = self.gateway.get_comment(parent_id)
                if parent.post_id != post_id:
                    raise StoreError('Reply must belong to the same post')
            comment = self.gateway.insert_comment(
                post_id=post_id, author_id=actor.id, text=text, parent_id=parent_id
            )
            return 'created', comment, None

        return self._perform('add comment', ('comments',), mutation, 'Comment was not added')

    def delete_comment(self, actor, comment_id, confirmed=False):
        if actor is None:
            return HandlerResult.fault(UNAUTHENTICATED, SIGN_IN_REQUIRED)
        try:
            comment = self.gateway.get_comment(comment_id)
        except StoreError as e:
            return store_fault('delete comment', e)
        if not (actor.is_admin or actor.id == comment.author_id):
            return HandlerResult.fault(FORBIDDEN, 'Only the author or an admin can delete this comment')
        if not confirmed:
            return HandlerResult.fault(UNCONFIRMED, NOT_CONFIRMED)

        def mutation():
            self.gateway.delete_comment(comment_id)
            return 'deleted', None, None

        return self._perform('delete comment', ('comments',), mutation,
                             'Could not delete the comment')

    # Administration

    def change_role(self, actor, user_id, role):
        if actor is None or not actor.is_admin:
            return HandlerResult.fault(FORBIDDEN, 'Only an admin can change roles')
        if role not in ROLES:
            return HandlerResult.fault(INVALID, f"Unknown role: {role}")

        def mutation():
            self.gateway.update_role(user_id, role)
            return 'updated', self.gateway.get_user(user_id), None

        return self._perform('change role', ('users',), mutation, 'Could not change the role')

    def delete_user(self, actor, user_id, confirmed=False):
        """Delete a user; their posts, comments and likes go with them."""
        if actor is None or not actor.is_admin:
            return HandlerResult.fault(FORBIDDEN, 'Only an admin can delete users')
        if not confirmed:
            return HandlerResult.fault(UNCONFIRMED, NOT_CONFIRMED)

        def mutation():
            if not self.gateway.delete_user(user_id):
                raise NotFound(f"User {user_id} not found")
            return 'deleted', None, None

        return self._perform('delete user', ENTITY_KEYS, mutation, 'Could not delete the user')


handlers = InteractionHandlers()
