"""
Authentication views: signup, login, logout and the current profile.

Accounts are identified by e-mail; the auth username is the e-mail address,
stored lower-cased and matched case-insensitively at login.
"""
import logging

from django.contrib.auth import authenticate
from django.contrib.auth.models import User

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from .exceptions import NotFound, StoreError
from .handlers import handlers
from .serializers import LoginSerializer, SignupSerializer, UserSerializer
from .state import VIEW_AUTH, AppState, SignedIn, SignedOut, apply, reduce
from .store import gateway
from .views import actor_for, fault_response, raise_for_store

logger = logging.getLogger(__name__)


def session_payload(state, auth_user):
    """Signed-in user, the view to show and a fresh JWT pair."""
    refresh = RefreshToken.for_user(auth_user)
    return {
        'user': UserSerializer(state.current_user).data,
        'view': state.view,
        'tokens': {
            'access': str(refresh.access_token),
            'refresh': str(refresh),
        }
    }


class SignupView(APIView):
    """
    Register a new student account and sign it in.

    400 if email or password is missing or rejected.
    """
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = SignupSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'error': 'email and password required', 'errors': serializer.errors},
                            status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        state = AppState(view=VIEW_AUTH)
        result = handlers.register(data['email'], data['password'], data['name'])
        if not result.ok:
            return fault_response(result, state)

        state = apply(state, result.action)
        auth_user = authenticate(request, username=result.entity.email, password=data['password'])
        return Response(session_payload(state, auth_user), status=status.HTTP_201_CREATED)


class LoginView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'error': 'Email and password are required'},
                status=status.HTTP_400_BAD_REQUEST
            )

        email = serializer.validated_data['email'].strip()
        try:
            auth_user = User.objects.get(username__iexact=email)
        except User.DoesNotExist:
            return Response(
                {'error': 'Invalid credentials'},
                status=status.HTTP_401_UNAUTHORIZED
            )

        if not auth_user.is_active or not auth_user.check_password(serializer.validated_data['password']):
            return Response(
                {'error': 'Invalid credentials'},
                status=status.HTTP_401_UNAUTHORIZED
            )

        try:
            profile = gateway.get_user(auth_user.id)
        except NotFound:
            return Response({'error': 'Profile not found'}, status=status.HTTP_404_NOT_FOUND)
        except StoreError as e:
            raise_for_store(e)

        logger.info(f"User {auth_user.id} signed in")
        state = reduce(AppState(view=VIEW_AUTH), SignedIn(profile))
        return Response(session_payload(state, auth_user))


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        try:
            profile = gateway.get_user(request.user.id)
        except NotFound:
            return Response({'error': 'Profile not found'}, status=status.HTTP_404_NOT_FOUND)
        except StoreError as e:
            raise_for_store(e)
        return Response(UserSerializer(profile).data)


class LogoutView(APIView):
    """
    Logout endpoint - blacklists the refresh token.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        refresh_token = request.data.get('refresh')
        if refresh_token:
            try:
                RefreshToken(refresh_token).blacklist()
            except TokenError as e:
                logger.info(f"Refresh token not blacklisted: {e}")

        state = reduce(AppState(current_user=actor_for(request)), SignedOut())
        logger.info(f"User {request.user.id} signed out")
        return Response({'message': 'Logged out successfully', 'view': state.view})
