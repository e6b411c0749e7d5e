"""
Authentication views.

``login_view`` issues both a DRF token (used by the websocket ``?token=``
handshake and simple clients) and a JWT pair.  Only staff and patient
accounts are returned a role the messaging endpoints accept.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView

from .serializers.auth import LoginSerializer
from .services.audit import log_action
from .services.identity import format_profile

logger = logging.getLogger(__name__)


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    username = s.validated_data['username']

    user = authenticate(request, username=username, password=s.validated_data['password'])
    if not user:
        # only the username is recorded for failed attempts
        log_action(user_id=None, action='login', object_type='user',
                   detail={'result': 'fail', 'username': username, 'ip': request.META.get('REMOTE_ADDR')})
        return Response({'ok': False, 'error': {'code': 'invalid_credentials', 'message': 'invalid username or password'}},
                        status=400)

    log_action(user_id=user.id, action='login', object_type='user', object_id=user.id,
               detail={'result': 'ok', 'ip': request.META.get('REMOTE_ADDR')})

    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return Response({
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': format_profile(user),
    })

# ScopedRateThrottle reads throttle_scope from the wrapped APIView class
login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from a refresh token."""
    resp = TokenRefreshView.as_view()(request._request)
    if isinstance(resp, Response):
        data = dict(resp.data)
        if 'access' in data and 'jwt_access' not in data:
            data['jwt_access'] = data.pop('access')
        return Response(data, status=resp.status_code)
    return resp


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist the given refresh token, or every outstanding one for the caller."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError as exc:
            return Response({'ok': False, 'error': {'code': 'invalid_token', 'message': str(exc)}}, status=400)
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    Token.objects.filter(user=request.user).delete()
    logger.info("user %s logged out, %d refresh token(s) revoked", request.user.id, count)
    return Response({'ok': True, 'blacklisted': count})
