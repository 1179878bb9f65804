"""
Tests for the BilimShare application.

Key test coverage:
1. View-model builder: author map, comment index, like aggregate
2. Derived aggregates: category facets, stable popularity ranking, leaderboard
3. Fetch cycle: dependency order, empty-set short-circuit, abort on fault
4. Snapshot cache: invalidation and atomic replacement
5. Interaction handlers: permissions, toggle involution, cascades, faults
6. REST surface end to end
"""
import tempfile
from contextlib import nullcontext
from datetime import datetime, timedelta, timezone as dt_timezone
from pathlib import Path
from unittest import mock

from django.contrib.auth.models import User
from django.core.cache import caches
from django.core.cache.backends.db import DatabaseCache
from django.core.cache.backends.locmem import LocMemCache
from django.core.management import load_command_class
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from .aggregates import (
    category_counts, category_facets, filter_by_category, leaderboard, popular_posts,
)
from .cache import FeedCache, feed_cache
from .exceptions import NotFound, StoreError
from .fetcher import Snapshot, fetch_snapshot
from .handlers import UNAVAILABLE, InteractionHandlers, handlers
from .models import Comment, Like, Post, Profile
from .presentation import comment_tree, time_ago, truncate
from .records import CommentRow, LikeRow, PostRow, UserRow
from .results import (
    FORBIDDEN, INVALID, NOT_FOUND, STORE, TRANSPORT, UNCONFIRMED, HandlerResult,
)
from .state import (
    AppState, Failed, FilterCategory, Navigate, OpenPost, OpenProfile, SignedIn,
    SignedOut, apply, reduce,
)
from .store import gateway
from .viewmodel import LikeAggregate, build_view_model
from .views import fault_response

T0 = datetime(2024, 9, 1, 12, 0, tzinfo=dt_timezone.utc)


def user_row(user_id, role='teacher'):
    return UserRow(id=user_id, name=f'User {user_id}', role=role, email=f'user{user_id}@example.com')


def post_row(post_id, author_id=1, category='Physics'):
    return PostRow(
        id=post_id, title=f'Post {post_id}', body='Body', category=category,
        image='', author_id=author_id, created_at=T0 + timedelta(minutes=post_id)
    )


def comment_row(comment_id, post_id, parent_id=None, author_id=1):
    return CommentRow(
        id=comment_id, text=f'Comment {comment_id}', post_id=post_id, parent_id=parent_id,
        author_id=author_id, created_at=T0 + timedelta(minutes=comment_id)
    )


def likes_for(post_id, *user_ids):
    return [LikeRow(id=post_id * 100 + u, post_id=post_id, user_id=u) for u in user_ids]


def make_user(name, role=Profile.ROLE_STUDENT):
    email = f'{name.lower()}@example.com'
    user = User.objects.create_user(username=email, email=email, password='Str0ng-passw0rd!')
    Profile.objects.create(user=user, name=name, email=email, role=role)
    return user


class FakeGateway:
    """In-memory stand-in for StoreGateway that records the calls it gets."""

    def __init__(self, posts=(), users=(), comments=(), likes=(), fail_on=None, transport=False):
        self.posts = list(posts)
        self.users = list(users)
        self.comments = list(comments)
        self.likes = list(likes)
        self.fail_on = fail_on
        self.transport = transport
        self.calls = []

    def _call(self, name, *args):
        self.calls.append((name, args))
        if self.fail_on == name:
            raise StoreError(f'{name} failed', transport=self.transport)

    def called(self, name):
        return [args for call, args in self.calls if call == name]

    def atomic(self):
        return nullcontext()

    def list_posts(self):
        self._call('list_posts')
        return list(self.posts)

    def users_by_ids(self, ids):
        self._call('users_by_ids', list(ids))
        return [u for u in self.users if u.id in ids]

    def comments_for_posts(self, ids):
        self._call('comments_for_posts', list(ids))
        return [c for c in self.comments if c.post_id in ids]

    def likes_for_posts(self, ids):
        self._call('likes_for_posts', list(ids))
        return [like for like in self.likes if like.post_id in ids]

    def get_post(self, post_id):
        self._call('get_post', post_id)
        for post in self.posts:
            if post.id == post_id:
                return post
        raise NotFound(f'Post {post_id} not found')

    def find_like(self, post_id, user_id):
        self._call('find_like', post_id, user_id)
        return None

    def insert_like(self, post_id, user_id):
        self._call('insert_like', post_id, user_id)
        return LikeRow(id=1, post_id=post_id, user_id=user_id)

    def insert_post(self, **fields):
        self._call('insert_post', fields)
        return post_row(99, author_id=fields['author_id'])


class ViewModelBuilderTest(SimpleTestCase):

    def test_author_map_has_exactly_the_post_authors(self):
        """Authors of posts [1, 2, 1] are fetched once each and mapped by id."""
        gw = FakeGateway(
            posts=[post_row(1, author_id=1), post_row(2, author_id=2), post_row(3, author_id=1)],
            users=[user_row(1), user_row(2), user_row(3)],
        )
        view_model = build_view_model(fetch_snapshot(gw))

        self.assertEqual(gw.called('users_by_ids'), [([1, 2],)])
        self.assertEqual(set(view_model.authors), {1, 2})
        self.assertEqual(view_model.author(2).name, 'User 2')

    def test_comment_index_groups_by_post_in_fetch_order(self):
        comments = [
            comment_row(1, post_id=10),
            comment_row(2, post_id=20),
            comment_row(3, post_id=10, parent_id=1),
            comment_row(4, post_id=10),
        ]
        view_model = build_view_model(Snapshot(comments=tuple(comments)))

        self.assertEqual([c.id for c in view_model.comments_for(10)], [1, 3, 4])
        self.assertEqual([c.id for c in view_model.comments_for(20)], [2])
        self.assertEqual(view_model.comments_for(30), [])

    def test_like_aggregate_counts_rows_per_post(self):
        likes = likes_for(1, 1, 2, 3) + likes_for(2, 2)
        view_model = build_view_model(Snapshot(likes=tuple(likes)))

        for post_id, expected in ((1, 3), (2, 1)):
            aggregate = view_model.likes_for(post_id)
            self.assertEqual(aggregate.count, expected)
            self.assertEqual(len(aggregate.user_ids), expected)
        self.assertTrue(view_model.likes_for(1).liked_by(3))
        self.assertFalse(view_model.likes_for(2).liked_by(3))

    def test_post_without_likes_defaults_to_empty_aggregate(self):
        view_model = build_view_model(Snapshot(posts=(post_row(1),)))
        self.assertEqual(view_model.likes_for(1), LikeAggregate(0, frozenset()))


class DerivedAggregatesTest(SimpleTestCase):

    def test_facets_for_empty_post_set(self):
        facets = category_facets([], defaults=['Mathematics', 'Physics'], general='General')
        self.assertEqual(facets, ['Mathematics', 'Physics', 'General'])

    def test_facets_use_configured_defaults(self):
        facets = category_facets([])
        self.assertEqual(facets[0], 'Mathematics')
        self.assertEqual(facets[-1], 'General')
        self.assertEqual(len(facets), 11)

    def test_facets_append_observed_categories_once(self):
        posts = [
            post_row(1, category='Robotics'),
            post_row(2, category='Physics'),
            post_row(3, category='Astronomy'),
            post_row(4, category='Robotics'),
            post_row(5, category=''),
        ]
        facets = category_facets(posts, defaults=['Mathematics', 'Physics'], general='General')
        self.assertEqual(facets, ['Mathematics', 'Physics', 'Robotics', 'Astronomy', 'General'])

    def test_general_category_is_not_duplicated(self):
        posts = [post_row(1, category='General'), post_row(2, category='Robotics')]
        facets = category_facets(posts, defaults=['Physics'], general='General')
        self.assertEqual(facets, ['Physics', 'General', 'Robotics'])

    def test_category_counts_and_filter(self):
        posts = [post_row(1, category='Physics'), post_row(2, category='Physics'),
                 post_row(3, category='Biology')]
        counts = dict(category_counts(posts, ['Physics', 'Biology', 'General']))
        self.assertEqual(counts, {'Physics': 2, 'Biology': 1, 'General': 0})
        self.assertEqual([p.id for p in filter_by_category(posts, 'Biology')], [3])
        self.assertEqual(len(filter_by_category(posts, None)), 3)

    def test_popularity_ranking_is_stable(self):
        """A(3 likes), B(3 likes), C(5 likes) in fetch order rank as C, A, B."""
        a, b, c = post_row(1), post_row(2), post_row(3)
        likes = likes_for(1, 1, 2, 3) + likes_for(2, 1, 2, 3) + likes_for(3, 1, 2, 3, 4, 5)
        view_model = build_view_model(Snapshot(posts=(a, b, c), likes=tuple(likes)))

        self.assertEqual(popular_posts(view_model), [c, a, b])

    def test_popularity_ranking_keeps_top_five(self):
        posts = tuple(post_row(i) for i in range(1, 8))
        view_model = build_view_model(Snapshot(posts=posts))
        self.assertEqual([p.id for p in popular_posts(view_model)], [1, 2, 3, 4, 5])

    def test_leaderboard_scores_posts_and_likes(self):
        users = (user_row(1), user_row(2), user_row(3))
        posts = (post_row(1, author_id=1), post_row(2, author_id=2), post_row(3, author_id=2))
        likes = tuple(likes_for(1, 1, 2, 3))
        view_model = build_view_model(Snapshot(posts=posts, users=users, likes=likes))

        board = leaderboard(view_model)

        self.assertEqual([e.user.id for e in board], [1, 2, 3])
        self.assertEqual((board[0].posts_count, board[0].likes_received, board[0].score), (1, 3, 5))
        self.assertEqual((board[1].posts_count, board[1].likes_received, board[1].score), (2, 0, 4))
        self.assertEqual(board[2].score, 0)

    def test_leaderboard_ties_keep_order_and_limit(self):
        users = tuple(user_row(i) for i in range(1, 11))
        posts = tuple(post_row(i, author_id=i) for i in range(1, 11))
        view_model = build_view_model(Snapshot(posts=posts, users=users))

        board = leaderboard(view_model)

        self.assertEqual([e.user.id for e in board], [1, 2, 3, 4, 5, 6, 7, 8])


class EntityFetcherTest(SimpleTestCase):

    def test_empty_post_set_skips_dependent_queries(self):
        gw = FakeGateway()
        snapshot = fetch_snapshot(gw)

        self.assertEqual(snapshot, Snapshot())
        self.assertEqual([name for name, _ in gw.calls], ['list_posts'])

    def test_dependent_queries_use_post_ids(self):
        gw = FakeGateway(posts=[post_row(1), post_row(2)], users=[user_row(1)])
        fetch_snapshot(gw)

        self.assertEqual(gw.calls[0][0], 'list_posts')
        self.assertEqual(gw.called('comments_for_posts'), [([1, 2],)])
        self.assertEqual(gw.called('likes_for_posts'), [([1, 2],)])

    def test_fault_in_any_query_aborts_the_cycle(self):
        for failing in ('list_posts', 'users_by_ids', 'comments_for_posts', 'likes_for_posts'):
            with self.subTest(failing=failing):
                gw = FakeGateway(posts=[post_row(1)], users=[user_row(1)], fail_on=failing)
                with self.assertLogs('bilimshare.fetcher', level='ERROR'):
                    with self.assertRaises(StoreError):
                        fetch_snapshot(gw)


class FeedCacheTest(SimpleTestCase):

    def setUp(self):
        self.gw = FakeGateway(posts=[post_row(1)], users=[user_row(1)])
        self.cache = FeedCache(gateway=self.gw, backend=LocMemCache('feed-cache-test', {}), max_age=0)
        self.cache.reset()

    def test_view_model_is_reused_until_invalidated(self):
        self.cache.view_model()
        self.cache.view_model()
        self.assertEqual(len(self.gw.called('list_posts')), 1)

        self.cache.invalidate('likes')
        self.cache.view_model()
        self.assertEqual(len(self.gw.called('list_posts')), 2)

    def test_failed_refresh_keeps_previous_view(self):
        before = self.cache.view_model()
        self.gw.fail_on = 'likes_for_posts'
        self.cache.invalidate()

        with self.assertLogs('bilimshare', level='ERROR'):
            after = self.cache.view_model()

        self.assertIs(after, before)
        self.assertIsInstance(self.cache.last_error, StoreError)

    def test_first_fetch_failure_is_raised(self):
        self.gw.fail_on = 'list_posts'
        with self.assertLogs('bilimshare', level='ERROR'):
            with self.assertRaises(StoreError):
                self.cache.view_model()

    def test_unknown_entity_key_is_rejected(self):
        with self.assertRaises(ValueError):
            self.cache.invalidate('announcements')


class SharedVersionTest(TestCase):
    """Version counters live in the cache every worker process reads."""

    def setUp(self):
        feed_cache.reset()

    def test_default_backend_is_the_database_cache(self):
        self.assertIsInstance(caches['default'], DatabaseCache)

    def test_invalidation_by_one_worker_makes_another_rebuild(self):
        gw = FakeGateway(posts=[post_row(1)], users=[user_row(1)])
        worker_a = FeedCache(gateway=gw, max_age=0)
        worker_b = FeedCache(gateway=gw, max_age=0)
        worker_a.view_model()
        worker_b.view_model()
        self.assertFalse(worker_b.is_stale())

        worker_a.invalidate('likes')

        self.assertTrue(worker_b.is_stale())
        worker_b.view_model()
        self.assertEqual(len(gw.called('list_posts')), 3)


class AppStateTest(SimpleTestCase):

    def test_navigation_actions(self):
        state = apply(AppState(), OpenPost(5))
        self.assertEqual((state.view, state.selected_post_id), ('post', 5))

        state = reduce(state, OpenProfile(7))
        self.assertEqual((state.view, state.selected_user_id), ('profile', 7))

        state = reduce(state, Navigate('home'))
        self.assertEqual(state, AppState())

    def test_sign_in_and_out(self):
        user = user_row(1)
        state = reduce(AppState(view='auth'), SignedIn(user))
        self.assertEqual((state.current_user, state.view), (user, 'home'))
        self.assertIsNone(reduce(state, SignedOut()).current_user)

    def test_filter_and_failure(self):
        state = apply(AppState(), FilterCategory('Physics'), Failed('Comment is empty'))
        self.assertEqual(state.filter_category, 'Physics')
        self.assertEqual(state.last_error, 'Comment is empty')
        self.assertIsNone(reduce(state, FilterCategory('')).filter_category)

    def test_unknown_view_is_rejected(self):
        with self.assertRaises(ValueError):
            reduce(AppState(), Navigate('settings'))

    def test_fault_response_renders_the_failed_state(self):
        result = HandlerResult.fault(FORBIDDEN, 'Admins only')
        response = fault_response(result, AppState(view='admin'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data, {'error': 'Admins only'})


class PresentationTest(SimpleTestCase):

    def test_time_ago(self):
        self.assertEqual(time_ago(T0, T0 + timedelta(seconds=30)), 'just now')
        self.assertEqual(time_ago(T0, T0 + timedelta(minutes=5)), '5 min ago')
        self.assertEqual(time_ago(T0, T0 + timedelta(hours=3)), '3 h ago')
        self.assertEqual(time_ago(T0, T0 + timedelta(days=2)), '2 d ago')
        self.assertEqual(time_ago(None), '')

    def test_truncate(self):
        self.assertEqual(truncate('short'), 'short')
        self.assertEqual(truncate('x' * 130), 'x' * 120 + '...')

    def test_comment_tree_nests_replies(self):
        comments = [
            comment_row(1, post_id=1),
            comment_row(2, post_id=1, parent_id=1),
            comment_row(3, post_id=1, parent_id=2),
            comment_row(4, post_id=1),
            comment_row(5, post_id=1, parent_id=404),
        ]
        view_model = build_view_model(Snapshot(users=(user_row(1),), comments=tuple(comments)))
        state = AppState(current_user=user_row(2, role='student'))

        tree = comment_tree(view_model.comments_for(1), view_model, state, now=T0)

        self.assertEqual([n['id'] for n in tree], [1, 4, 5])
        self.assertEqual([n['id'] for n in tree[0]['replies']], [2])
        self.assertEqual([n['id'] for n in tree[0]['replies'][0]['replies']], [3])
        self.assertFalse(tree[0]['can_delete'])
        self.assertTrue(tree[0]['can_reply'])


class InteractionHandlerTest(TestCase):
    """Handlers against the real store."""

    def setUp(self):
        feed_cache.reset()
        self.student = make_user('Aigerim')
        self.teacher = make_user('Daniyar', Profile.ROLE_TEACHER)
        self.admin = make_user('Admin', Profile.ROLE_ADMIN)
        self.post = Post.objects.create(title='Newton', body='Three laws', category='Physics',
                                        author=self.teacher)

    def actor(self, user):
        return gateway.get_user(user.id)

    def test_toggle_like_is_an_involution(self):
        actor = self.actor(self.student)

        first = handlers.toggle_like(actor, self.post.id)
        self.assertTrue(first.ok)
        self.assertEqual(first.message, 'liked')
        self.assertEqual(feed_cache.view_model().like_count(self.post.id), 1)

        second = handlers.toggle_like(actor, self.post.id)
        self.assertEqual(second.message, 'unliked')
        self.assertFalse(Like.objects.filter(post=self.post).exists())
        self.assertEqual(feed_cache.view_model().like_count(self.post.id), 0)

    def test_racing_duplicate_like_is_a_store_fault(self):
        """A like inserted after the lookup missed it is rejected by the unique constraint."""
        actor = self.actor(self.student)
        Like.objects.create(post=self.post, user=self.student)

        with mock.patch.object(gateway, 'find_like', return_value=None):
            with self.assertLogs('bilimshare', level='WARNING'):
                result = handlers.toggle_like(actor, self.post.id)

        self.assertFalse(result.ok)
        self.assertEqual(result.code, STORE)
        self.assertEqual(Like.objects.filter(post=self.post, user=self.student).count(), 1)

    def test_toggle_like_requires_sign_in_and_existing_post(self):
        self.assertFalse(handlers.toggle_like(None, self.post.id).ok)
        result = handlers.toggle_like(self.actor(self.student), 9999)
        self.assertEqual(result.code, NOT_FOUND)

    def test_student_cannot_create_post(self):
        spy = FakeGateway()
        result = InteractionHandlers(gateway=spy, cache=feed_cache).create_post(
            self.actor(self.student), 'Title', 'Body'
        )
        self.assertEqual(result.code, FORBIDDEN)
        self.assertIn('Only teachers and admins', result.message)
        self.assertEqual(spy.called('insert_post'), [])

    def test_teacher_creates_post_with_defaults(self):
        result = handlers.create_post(self.actor(self.teacher), ' Algebra ', 'Quadratics', '')

        self.assertTrue(result.ok)
        post = Post.objects.get(pk=result.entity.id)
        self.assertEqual(post.title, 'Algebra')
        self.assertEqual(post.category, 'General')
        self.assertTrue(post.image.startswith('https://picsum.photos/seed/'))
        self.assertEqual(result.action, OpenPost(post.id))
        self.assertIsNotNone(feed_cache.view_model().find_post(post.id))

    def test_create_post_requires_title_and_body(self):
        result = handlers.create_post(self.actor(self.teacher), 'Title', '   ')
        self.assertEqual(result.code, INVALID)

    def test_delete_post_requires_admin_and_confirmation(self):
        Comment.objects.create(post=self.post, text='Nice', author=self.student)
        Like.objects.create(post=self.post, user=self.student)

        self.assertEqual(handlers.delete_post(self.actor(self.teacher), self.post.id, True).code,
                         FORBIDDEN)
        self.assertEqual(handlers.delete_post(self.actor(self.admin), self.post.id).code,
                         UNCONFIRMED)

        result = handlers.delete_post(self.actor(self.admin), self.post.id, confirmed=True)
        self.assertTrue(result.ok)
        self.assertFalse(Comment.objects.exists())
        self.assertFalse(Like.objects.exists())

        again = handlers.delete_post(self.actor(self.admin), self.post.id, confirmed=True)
        self.assertEqual(again.code, NOT_FOUND)

    def test_add_comment_and_reply(self):
        actor = self.actor(self.student)
        self.assertEqual(handlers.add_comment(actor, self.post.id, '   ').code, INVALID)

        top = handlers.add_comment(actor, self.post.id, ' Great post ')
        self.assertEqual(top.entity.text, 'Great post')
        reply = handlers.add_comment(self.actor(self.teacher), self.post.id, 'Thanks', top.entity.id)
        self.assertEqual(reply.entity.parent_id, top.entity.id)

        comments = feed_cache.view_model().comments_for(self.post.id)
        self.assertEqual([c.id for c in comments], [top.entity.id, reply.entity.id])

    def test_reply_must_belong_to_same_post(self):
        other = Post.objects.create(title='Cells', body='Biology', author=self.teacher)
        parent = Comment.objects.create(post=other, text='Hi', author=self.student)
        result = handlers.add_comment(self.actor(self.student), self.post.id, 'Reply', parent.id)
        self.assertEqual(result.code, STORE)

    def test_delete_comment_permissions(self):
        comment = Comment.objects.create(post=self.post, text='Mine', author=self.student)
        other = make_user('Bolat')

        self.assertEqual(handlers.delete_comment(self.actor(other), comment.id, True).code, FORBIDDEN)
        self.assertEqual(handlers.delete_comment(self.actor(self.student), comment.id).code,
                         UNCONFIRMED)
        self.assertTrue(handlers.delete_comment(self.actor(self.student), comment.id, True).ok)
        self.assertEqual(handlers.delete_comment(self.actor(self.admin), comment.id, True).code,
                         NOT_FOUND)

    def test_admin_deletes_any_comment(self):
        comment = Comment.objects.create(post=self.post, text='Spam', author=self.student)
        self.assertTrue(handlers.delete_comment(self.actor(self.admin), comment.id, True).ok)

    def test_change_role(self):
        self.assertEqual(
            handlers.change_role(self.actor(self.teacher), self.student.id, 'admin').code, FORBIDDEN
        )
        self.assertEqual(
            handlers.change_role(self.actor(self.admin), self.student.id, 'owner').code, INVALID
        )
        result = handlers.change_role(self.actor(self.admin), self.student.id, 'teacher')
        self.assertTrue(result.ok)
        self.assertEqual(result.entity.role, 'teacher')
        # setting the same role again is harmless
        self.assertTrue(handlers.change_role(self.actor(self.admin), self.student.id, 'teacher').ok)

    def test_delete_user_cascades(self):
        Like.objects.create(post=self.post, user=self.student)
        result = handlers.delete_user(self.actor(self.admin), self.teacher.id, confirmed=True)

        self.assertTrue(result.ok)
        self.assertFalse(Post.objects.exists())
        self.assertFalse(Like.objects.exists())
        self.assertFalse(Profile.objects.filter(pk=self.teacher.id).exists())
        self.assertEqual(feed_cache.view_model().posts, ())

    def test_register_creates_student(self):
        result = handlers.register('Nurlan@Example.com', 'Str0ng-passw0rd!')
        self.assertTrue(result.ok)
        self.assertEqual((result.entity.name, result.entity.role), ('Nurlan', 'student'))
        self.assertEqual(result.action, SignedIn(result.entity))

        duplicate = handlers.register('Nurlan@Example.com', 'Str0ng-passw0rd!')
        self.assertEqual(duplicate.code, STORE)


class HandlerFaultTest(SimpleTestCase):
    """Store faults become result values and leave the cached view alone."""

    def setUp(self):
        self.actor = user_row(1, role='student')

    def test_store_rejection_carries_store_message(self):
        gw = FakeGateway(posts=[post_row(1)], fail_on='insert_like')
        with self.assertLogs('bilimshare.handlers', level='ERROR'):
            result = InteractionHandlers(gateway=gw, cache=FeedCache(gateway=gw)).toggle_like(
                self.actor, 1
            )

        self.assertFalse(result.ok)
        self.assertEqual((result.code, result.message), (STORE, 'insert_like failed'))
        self.assertEqual(result.action, Failed('insert_like failed'))
        self.assertEqual(gw.called('list_posts'), [])

    def test_transport_fault_is_generic(self):
        gw = FakeGateway(posts=[post_row(1)], fail_on='get_post', transport=True)
        with self.assertLogs('bilimshare.handlers', level='ERROR'):
            result = InteractionHandlers(gateway=gw, cache=FeedCache(gateway=gw)).toggle_like(
                self.actor, 1
            )
        self.assertEqual((result.code, result.message), (TRANSPORT, UNAVAILABLE))


class RestApiTest(APITestCase):
    """The public REST surface, end to end."""

    def setUp(self):
        feed_cache.reset()
        self.u1 = make_user('Aigerim')
        self.teacher = make_user('Daniyar', Profile.ROLE_TEACHER)
        self.p1 = Post.objects.create(title='Newton', body='Three laws', category='Physics',
                                      author=self.teacher)

    def test_like_toggle_scenario(self):
        body = {'user_id': self.u1.id, 'post_id': self.p1.id}

        first = self.client.post('/api/like', body, format='json')
        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(first.json(), {'message': 'liked'})

        second = self.client.post('/api/like', body, format='json')
        self.assertEqual(second.json(), {'message': 'unliked'})

        count = self.client.get(f'/api/likes/{self.p1.id}')
        self.assertEqual(count.json(), {'likes': 0})

    def test_like_requires_both_fields(self):
        response = self.client.post('/api/like', {'user_id': self.u1.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Like.objects.exists())

    def test_empty_comment_is_rejected_before_insert(self):
        response = self.client.post(
            '/api/comments', {'text': '', 'post_id': self.p1.id, 'author': self.u1.id}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json(), {'error': 'Comment is empty'})
        self.assertFalse(Comment.objects.exists())

    def test_comment_with_parent(self):
        parent = Comment.objects.create(post=self.p1, text='Question', author=self.u1)
        response = self.client.post(
            '/api/comments',
            {'text': 'Answer', 'post_id': self.p1.id, 'author': self.teacher.id, 'parent_id': parent.id},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.json()['parent_id'], parent.id)

    def test_posts_are_joined_with_author_and_likes(self):
        older = self.p1
        newer = Post.objects.create(title='Cells', body='Biology', category='Biology', author=self.teacher)
        Like.objects.create(post=older, user=self.u1)

        data = self.client.get('/api/posts').json()

        self.assertEqual([p['id'] for p in data], [newer.id, older.id])
        self.assertEqual(data[1]['author_name'], 'Daniyar')
        self.assertEqual(data[1]['likes'], [{'user_id': self.u1.id}])
        self.assertEqual(data[1]['likes_count'], 1)
        self.assertEqual(data[0]['likes_count'], 0)

    def test_signup(self):
        response = self.client.post(
            '/api/signup', {'email': 'nurlan@example.com', 'password': 'Str0ng-passw0rd!'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.json()
        self.assertEqual(data['user']['role'], 'student')
        self.assertEqual(data['view'], 'home')
        self.assertIn('access', data['tokens'])

        me = self.client.get('/api/me', HTTP_AUTHORIZATION=f"Bearer {data['tokens']['access']}")
        self.assertEqual(me.json()['email'], 'nurlan@example.com')

    def test_signup_requires_email_and_password(self):
        for body in ({'email': 'nurlan@example.com'}, {'password': 'Str0ng-passw0rd!'}):
            response = self.client.post('/api/signup', body, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login(self):
        response = self.client.post(
            '/api/login', {'email': 'aigerim@example.com', 'password': 'Str0ng-passw0rd!'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()['user']['name'], 'Aigerim')

        wrong = self.client.post(
            '/api/login', {'email': 'aigerim@example.com', 'password': 'nope'}, format='json'
        )
        self.assertEqual(wrong.status_code, status.HTTP_401_UNAUTHORIZED)

        unknown = self.client.post(
            '/api/login', {'email': 'nobody@example.com', 'password': 'Str0ng-passw0rd!'}, format='json'
        )
        self.assertEqual(unknown.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_email_case_is_ignored_at_signup_and_login(self):
        password = 'Str0ng-passw0rd!'
        signup = self.client.post(
            '/api/signup', {'email': 'Alice@Example.com', 'password': password}, format='json'
        )
        self.assertEqual(signup.status_code, status.HTTP_201_CREATED)
        self.assertEqual(signup.json()['user']['email'], 'alice@example.com')
        self.assertEqual(signup.json()['user']['name'], 'Alice')

        duplicate = self.client.post(
            '/api/signup', {'email': 'alice@example.com', 'password': password}, format='json'
        )
        self.assertEqual(duplicate.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(duplicate.json(), {'error': 'Email already registered'})

        for email in ('alice@example.com', 'ALICE@example.COM'):
            login = self.client.post('/api/login', {'email': email, 'password': password}, format='json')
            self.assertEqual(login.status_code, status.HTTP_200_OK)
            self.assertEqual(login.json()['user']['name'], 'Alice')
            self.assertEqual(login.json()['view'], 'home')

    def test_logout_signs_out(self):
        login = self.client.post(
            '/api/login', {'email': 'aigerim@example.com', 'password': 'Str0ng-passw0rd!'}, format='json'
        ).json()
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {login['tokens']['access']}")

        response = self.client.post('/api/logout', {'refresh': login['tokens']['refresh']}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json(), {'message': 'Logged out successfully', 'view': 'home'})


class ApplicationEndpointTest(APITestCase):
    """Authenticated page and interaction endpoints."""

    def setUp(self):
        feed_cache.reset()
        self.student = make_user('Aigerim')
        self.teacher = make_user('Daniyar', Profile.ROLE_TEACHER)
        self.admin = make_user('Admin', Profile.ROLE_ADMIN)
        self.physics = Post.objects.create(title='Newton', body='Three laws', category='Physics',
                                           author=self.teacher)
        self.robotics = Post.objects.create(title='Arduino', body='Blink', category='Robotics',
                                            author=self.teacher)
        Like.objects.create(post=self.physics, user=self.student)

    def test_home_page(self):
        self.client.force_authenticate(user=self.student)
        data = self.client.get('/api/feed').json()

        self.assertFalse(data['can_publish'])
        self.assertEqual([p['id'] for p in data['posts']], [self.robotics.id, self.physics.id])
        self.assertTrue(data['posts'][1]['liked'])
        names = [c['name'] for c in data['categories']]
        self.assertEqual(names[-2:], ['Robotics', 'General'])
        self.assertEqual(data['popular'][0]['id'], self.physics.id)
        self.assertEqual(data['leaderboard'][0]['score'], 5)

    def test_home_page_category_filter(self):
        data = self.client.get('/api/feed', {'category': 'Robotics'}).json()
        self.assertEqual([p['id'] for p in data['posts']], [self.robotics.id])
        selected = [c['name'] for c in data['categories'] if c['selected']]
        self.assertEqual(selected, ['Robotics'])

    def test_post_page_nests_comments(self):
        first = Comment.objects.create(post=self.physics, text='Why?', author=self.student)
        reply = Comment.objects.create(post=self.physics, text='Because', author=self.teacher,
                                       parent=first)
        second = Comment.objects.create(post=self.physics, text='Thanks', author=self.student)

        self.client.force_authenticate(user=self.student)
        data = self.client.get(f'/api/feed/posts/{self.physics.id}').json()

        self.assertEqual(data['comments_count'], 3)
        self.assertEqual([c['id'] for c in data['comments']], [first.id, second.id])
        self.assertEqual([c['id'] for c in data['comments'][0]['replies']], [reply.id])
        self.assertTrue(data['comments'][0]['can_delete'])
        self.assertFalse(data['comments'][0]['replies'][0]['can_delete'])

    def test_missing_post_page_is_404(self):
        self.assertEqual(self.client.get('/api/feed/posts/9999').status_code, 404)

    def test_profile_page(self):
        data = self.client.get(f'/api/feed/users/{self.teacher.id}').json()
        self.assertEqual(data['user']['name'], 'Daniyar')
        self.assertEqual(len(data['posts']), 2)

        student = self.client.get(f'/api/feed/users/{self.student.id}').json()
        self.assertEqual(student['posts'], [])

    def test_student_post_is_rejected(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.post('/api/posts', {'title': 'Mine', 'body': 'Text'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(Post.objects.count(), 2)

    def test_teacher_publishes_post(self):
        self.client.force_authenticate(user=self.teacher)
        response = self.client.post(
            '/api/posts', {'title': 'Cells', 'body': 'Biology basics', 'category': 'Biology'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.json()
        self.assertEqual((data['view'], data['data']['category']), ('post', 'Biology'))

    def test_like_and_comment_as_current_user(self):
        self.client.force_authenticate(user=self.teacher)
        like = self.client.post(f'/api/posts/{self.robotics.id}/like')
        self.assertEqual(like.json()['message'], 'liked')

        comment = self.client.post(f'/api/posts/{self.robotics.id}/comments', {'text': 'Hello'},
                                   format='json')
        self.assertEqual(comment.status_code, status.HTTP_201_CREATED)

        anonymous = self.client.__class__()
        self.assertEqual(anonymous.post(f'/api/posts/{self.robotics.id}/like').status_code, 401)

    def test_admin_endpoints(self):
        self.client.force_authenticate(user=self.student)
        self.assertEqual(self.client.get('/api/admin').status_code, 403)
        self.assertEqual(self.client.delete(f'/api/posts/{self.physics.id}?confirm=true').status_code, 403)

        self.client.force_authenticate(user=self.admin)
        panel = self.client.get('/api/admin').json()
        self.assertEqual(len(panel['users']), 3)

        unconfirmed = self.client.delete(f'/api/posts/{self.physics.id}')
        self.assertEqual(unconfirmed.status_code, status.HTTP_400_BAD_REQUEST)

        deleted = self.client.delete(f'/api/posts/{self.physics.id}?confirm=true')
        self.assertEqual(deleted.status_code, status.HTTP_200_OK)
        self.assertEqual(deleted.json()['view'], 'home')

        role = self.client.patch(f'/api/users/{self.student.id}/role', {'role': 'teacher'}, format='json')
        self.assertEqual(role.json()['data']['role'], 'teacher')

        removed = self.client.delete(f'/api/users/{self.student.id}?confirm=true')
        self.assertEqual(removed.status_code, status.HTTP_200_OK)
        self.assertFalse(User.objects.filter(pk=self.student.id).exists())

    def test_delete_comment_endpoint(self):
        comment = Comment.objects.create(post=self.physics, text='Oops', author=self.student)
        self.client.force_authenticate(user=self.teacher)
        self.assertEqual(self.client.delete(f'/api/comments/{comment.id}?confirm=true').status_code, 403)

        self.client.force_authenticate(user=self.student)
        self.assertEqual(self.client.delete(f'/api/comments/{comment.id}?confirm=true').status_code, 200)


class EdgeTest(APITestCase):
    """Origin policy and the UI fallback."""

    def setUp(self):
        feed_cache.reset()

    @override_settings(CORS_ALLOWED_ORIGINS=['https://bilimshare.example'], CORS_ALLOW_ALL_ORIGINS=False)
    def test_origin_policy(self):
        self.assertEqual(self.client.get('/api/posts').status_code, 200)
        allowed = self.client.get('/api/posts', HTTP_ORIGIN='https://bilimshare.example')
        self.assertEqual(allowed.status_code, 200)
        with self.assertLogs('bilimshare.middleware', level='WARNING'):
            rejected = self.client.get('/api/posts', HTTP_ORIGIN='https://evil.example')
        self.assertEqual(rejected.status_code, 403)

    def test_non_api_paths_fall_back_to_index(self):
        with tempfile.TemporaryDirectory() as dist:
            Path(dist, 'index.html').write_text('<div id="root"></div>')
            with override_settings(FRONTEND_DIST=Path(dist)):
                response = self.client.get('/profile/42')
                body = b''.join(response.streaming_content)
                response.close()
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'root', body)


class ServeCommandTest(SimpleTestCase):

    @override_settings(PORT=8123)
    def test_serve_listens_on_configured_port(self):
        command = load_command_class('bilimshare', 'serve')
        self.assertEqual(command.default_port, '8123')
