"""
Views for the BilimShare API.

Two groups of endpoints:
1. The public REST surface (/api/posts, /api/likes/<id>, /api/like,
   /api/comments) which identifies the acting user from the request body
2. Application endpoints which act as the JWT-authenticated user and
   render whole pages from the cached view model

Reads go through feed_cache; writes go through the interaction handlers.
"""
from django.conf import settings
from django.http import FileResponse, Http404

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import APIView

from . import presentation
from .cache import feed_cache
from .exceptions import NotFound, StoreError
from .handlers import UNAVAILABLE, handlers
from .results import (
    FORBIDDEN, INVALID, NOT_FOUND, STORE, TRANSPORT, UNAUTHENTICATED, UNCONFIRMED,
)
from .serializers import (
    CommentCreateSerializer, CommentRecordSerializer, LikeToggleSerializer,
    PostCreateSerializer, PostRecordSerializer, ReplySerializer,
    RoleChangeSerializer, UserSerializer,
)
from .state import AppState, FilterCategory, OpenPost, OpenProfile, apply, reduce
from .store import gateway

FAULT_STATUS = {
    UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    FORBIDDEN: status.HTTP_403_FORBIDDEN,
    INVALID: status.HTTP_400_BAD_REQUEST,
    UNCONFIRMED: status.HTTP_400_BAD_REQUEST,
    STORE: status.HTTP_400_BAD_REQUEST,
    NOT_FOUND: status.HTTP_404_NOT_FOUND,
    TRANSPORT: status.HTTP_503_SERVICE_UNAVAILABLE,
}

CONFIRM_VALUES = ('1', 'true', 'yes')


class StoreUnavailable(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = UNAVAILABLE
    default_code = 'store_unavailable'


class StoreRejected(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'store_error'


def raise_for_store(error):
    if isinstance(error, NotFound):
        raise Http404(error.message)
    if error.transport:
        raise StoreUnavailable()
    raise StoreRejected(error.message)


def current_view_model():
    try:
        return feed_cache.view_model()
    except StoreError as e:
        raise_for_store(e)


def actor_for(request):
    """Profile row of the authenticated user, or None."""
    if not request.user or not request.user.is_authenticated:
        return None
    try:
        return gateway.get_user(request.user.id)
    except NotFound:
        return None
    except StoreError as e:
        raise_for_store(e)


def request_state(request, actor=None):
    state = AppState(current_user=actor)
    return reduce(state, FilterCategory(request.query_params.get('category')))


def is_confirmed(request):
    value = request.query_params.get('confirm', request.data.get('confirm', ''))
    return str(value).lower() in CONFIRM_VALUES


def fault_response(result, state=None):
    """Render a failed handler result through the error slot of the state."""
    state = apply(state or AppState(), result.action)
    return Response({'error': state.last_error}, status=FAULT_STATUS.get(result.code, 400))


def result_response(result, state, entity_serializer=None, status_code=status.HTTP_200_OK):
    """Render a handler result, applying the transition it requested."""
    if not result.ok:
        return fault_response(result, state)
    state = apply(state, result.action)
    data = {'message': result.message, 'view': state.view}
    if state.selected_post_id is not None:
        data['post_id'] = state.selected_post_id
    if result.entity is not None:
        data['data'] = entity_serializer(result.entity).data if entity_serializer else result.entity
    return Response(data, status=status_code)


# ----------------------------------------------------------------------
# Public REST surface
# ----------------------------------------------------------------------

class PostListView(APIView):
    """
    GET: all posts, newest first, with author name and like rows.
    POST: publish a post as the authenticated user (teachers and admins).
    """
    def get(self, request):
        return Response(presentation.post_list(current_view_model()))

    def post(self, request):
        serializer = PostCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        actor = actor_for(request)
        result = handlers.create_post(actor, **serializer.validated_data)
        return result_response(result, request_state(request, actor),
                               PostRecordSerializer, status.HTTP_201_CREATED)


class LikeCountView(APIView):
    def get(self, request, post_id):
        try:
            count = gateway.count_likes(post_id)
        except StoreError as e:
            raise_for_store(e)
        return Response({'likes': count})


class LikeToggleView(APIView):
    """
    Toggle the like of user_id on post_id.

    Responds {"message": "liked"} or {"message": "unliked"}.
    """
    def post(self, request):
        serializer = LikeToggleSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'error': 'user_id and post_id required'},
                            status=status.HTTP_400_BAD_REQUEST)
        actor = _user_from_body(serializer.validated_data['user_id'])
        if actor is None:
            return Response({'error': 'Unknown user'}, status=status.HTTP_400_BAD_REQUEST)
        result = handlers.toggle_like(actor, serializer.validated_data['post_id'])
        if not result.ok:
            return fault_response(result)
        return Response({'message': result.message})


class CommentCreateView(APIView):
    def post(self, request):
        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        actor = _user_from_body(data['author'])
        if actor is None:
            return Response({'error': 'Unknown author'}, status=status.HTTP_400_BAD_REQUEST)
        result = handlers.add_comment(actor, data['post_id'], data['text'], data['parent_id'])
        if not result.ok:
            return fault_response(result)
        return Response(CommentRecordSerializer(result.entity).data, status=status.HTTP_201_CREATED)


def _user_from_body(user_id):
    try:
        return gateway.get_user(user_id)
    except NotFound:
        return None
    except StoreError as e:
        raise_for_store(e)


# ----------------------------------------------------------------------
# Application endpoints
# ----------------------------------------------------------------------

class FeedView(APIView):
    """Home page: posts (optionally filtered by ?category=) and side panels."""
    def get(self, request):
        state = request_state(request, actor_for(request))
        return Response(presentation.home_page(state, current_view_model()))


class FeedPostView(APIView):
    """Post page with nested comments."""
    def get(self, request, post_id):
        state = apply(request_state(request, actor_for(request)), OpenPost(post_id))
        page = presentation.post_page(state, current_view_model())
        if page is None:
            raise Http404('Post not found')
        return Response(page)


class FeedProfileView(APIView):
    def get(self, request, user_id):
        state = apply(request_state(request, actor_for(request)), OpenProfile(user_id))
        view_model = current_view_model()
        user = view_model.author(user_id)
        if user is None:
            try:
                user = gateway.get_user(user_id)
            except StoreError as e:
                raise_for_store(e)
        return Response(presentation.profile_page(state, user, view_model))


class AdminView(APIView):
    """Admin panel: every user and every post."""
    def get(self, request):
        actor = actor_for(request)
        if actor is None or not actor.is_admin:
            return Response({'error': 'Admins only'}, status=status.HTTP_403_FORBIDDEN)
        view_model = current_view_model()
        try:
            users = gateway.list_users()
        except StoreError as e:
            raise_for_store(e)
        return Response(presentation.admin_page(request_state(request, actor), users, view_model))


class PostDetailView(APIView):
    def delete(self, request, post_id):
        actor = actor_for(request)
        result = handlers.delete_post(actor, post_id, confirmed=is_confirmed(request))
        return result_response(result, request_state(request, actor))


class PostLikeView(APIView):
    def post(self, request, post_id):
        actor = actor_for(request)
        result = handlers.toggle_like(actor, post_id)
        return result_response(result, apply(request_state(request, actor), OpenPost(post_id)))


class PostCommentView(APIView):
    def post(self, request, post_id):
        serializer = ReplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        actor = actor_for(request)
        result = handlers.add_comment(
            actor, post_id, serializer.validated_data['text'], serializer.validated_data['parent_id']
        )
        return result_response(result, apply(request_state(request, actor), OpenPost(post_id)),
                               CommentRecordSerializer, status.HTTP_201_CREATED)


class CommentDetailView(APIView):
    def delete(self, request, comment_id):
        actor = actor_for(request)
        result = handlers.delete_comment(actor, comment_id, confirmed=is_confirmed(request))
        return result_response(result, request_state(request, actor))


class UserRoleView(APIView):
    def patch(self, request, user_id):
        serializer = RoleChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        actor = actor_for(request)
        result = handlers.change_role(actor, user_id, serializer.validated_data['role'])
        return result_response(result, request_state(request, actor), UserSerializer)


class UserDetailView(APIView):
    def delete(self, request, user_id):
        actor = actor_for(request)
        result = handlers.delete_user(actor, user_id, confirmed=is_confirmed(request))
        return result_response(result, request_state(request, actor))


# ----------------------------------------------------------------------
# Single-page app fallback
# ----------------------------------------------------------------------

def spa_index(request, path=''):
    """Serve the bundled UI's index.html for every non-API path."""
    index = settings.FRONTEND_DIST / 'index.html'
    if not index.is_file():
        raise Http404('UI bundle not found')
    return FileResponse(open(index, 'rb'), content_type='text/html')
