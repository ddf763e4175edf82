"""
Authentication endpoints.

Login is by e-mail and password and issues both a DRF token (for the
``Token`` header and the ``?token=`` WebSocket parameter) and a JWT pair.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from monitor.models import User
from monitor.serializers.auth import (
    ChangePasswordSerializer, LoginSerializer, PasswordResetConfirmSerializer, PasswordResetRequestSerializer,
)
from monitor.services import accounts
from monitor.services.audit import audit

logger = logging.getLogger(__name__)


def _profile_summary(user: User) -> dict:
    summary = {
        'id': user.id,
        'email': user.email,
        'name': user.get_full_name() or user.email,
        'role': user.role,
    }
    if user.role == User.ROLE_DOCTOR and hasattr(user, 'doctor_profile'):
        summary['name'] = user.doctor_profile.full_name or summary['name']
        summary['specialization'] = user.doctor_profile.specialization
    elif user.role == User.ROLE_RECEPTIONIST and hasattr(user, 'receptionist_profile'):
        summary['name'] = user.receptionist_profile.full_name or summary['name']
    elif user.role == User.ROLE_PATIENT and hasattr(user, 'patient_record'):
        summary['patient_id'] = str(user.patient_record.id)
    return summary


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    email = s.validated_data['email']
    password = s.validated_data['password']

    # accounts are created with username == email
    user = authenticate(request, username=email, password=password)
    if not user:
        audit(user=None, action='login', object_type='user',
              detail={'result': 'fail', 'email': email, 'ip': request.META.get('REMOTE_ADDR')})
        return Response({'ok': False, 'error': 'Invalid email or password'}, status=400)

    audit(user=user, action='login', object_type='user', object_id=user.id,
          detail={'result': 'ok', 'ip': request.META.get('REMOTE_ADDR')})

    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return Response({
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': _profile_summary(user),
    })

# ScopedRateThrottle reads throttle_scope from the wrapped APIView class
login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def refresh_view(request):
    """Return a new access token from a refresh token."""
    s = TokenRefreshSerializer(data=request.data)
    try:
        s.is_valid(raise_exception=True)
    except TokenError as e:
        raise InvalidToken(e.args[0]) from e
    data = dict(s.validated_data)
    data['jwt_access'] = data.pop('access')
    if 'refresh' in data:
        data['jwt_refresh'] = data.pop('refresh')
    return Response({'ok': True, **data})


def _blacklist_all(user) -> int:
    count = 0
    for token in OutstandingToken.objects.filter(user=user):
        _, created = BlacklistedToken.objects.get_or_create(token=token)
        count += int(created)
    return count


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    """Blacklist the given refresh token, or all of the caller's."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError as e:
            return Response({'ok': False, 'error': str(e)}, status=400)
    else:
        count = _blacklist_all(request.user)
    Token.objects.filter(user=request.user).delete()
    audit(user=request.user, action='logout', object_type='user', object_id=request.user.id)
    return Response({'ok': True, 'blacklisted': count})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response({'ok': True, 'user': _profile_summary(request.user)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_password_view(request):
    s = ChangePasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = request.user
    user.set_password(s.validated_data['new_password'])
    user.save(update_fields=['password'])
    audit(user=user, action='password_change', object_type='user', object_id=user.id)
    return Response({'ok': True})


@api_view(['POST'])
@permission_classes([AllowAny])
def password_reset_request_view(request):
    """Mail a reset link; the reply is the same whether or not the address exists."""
    s = PasswordResetRequestSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        accounts.request_password_reset(s.validated_data['email'])
    except OSError:
        logger.exception('password reset mail could not be sent')
    return Response({'ok': True, 'message': 'If that address is registered, a reset link is on its way.'})

password_reset_request_view.cls.throttle_scope = 'password_reset'


@api_view(['POST'])
@permission_classes([AllowAny])
def password_reset_confirm_view(request):
    s = PasswordResetConfirmSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = accounts.reset_password(
        s.validated_data['uid'], s.validated_data['token'], s.validated_data['new_password'],
    )
    if user is None:
        return Response({'ok': False, 'error': 'Invalid or expired reset link'}, status=400)
    # sign out every existing session
    _blacklist_all(user)
    Token.objects.filter(user=user).delete()
    return Response({'ok': True})

password_reset_confirm_view.cls.throttle_scope = 'password_reset'
