"""
WebSocket authentication.

Browsers cannot set an ``Authorization`` header on a WebSocket handshake,
so the DRF token travels as ``?token=<key>``.  A valid token replaces the
session user resolved by ``AuthMiddlewareStack``.
"""
from urllib.parse import parse_qs

from channels.auth import AuthMiddlewareStack
from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from rest_framework.authtoken.models import Token


@database_sync_to_async
def _user_for_token(key):
    token = Token.objects.select_related('user').filter(key=key).first()
    if token is None or not token.user.is_active:
        return None
    return token.user


class TokenAuthMiddleware(BaseMiddleware):
    async def __call__(self, scope, receive, send):
        params = parse_qs(scope.get('query_string', b'').decode())
        key = (params.get('token') or [None])[0]
        if key:
            user = await _user_for_token(key)
            if user is not None:
                scope['user'] = user
        return await super().__call__(scope, receive, send)


def TokenAuthMiddlewareStack(inner):
    return AuthMiddlewareStack(TokenAuthMiddleware(inner))
