from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from rest_framework.authtoken.models import Token


@database_sync_to_async
def _user_for_token(key: str):
    token = Token.objects.select_related('user').filter(key=key).first()
    if token is None or not token.user.is_active:
        return None
    return token.user


class QueryTokenAuthMiddleware(BaseMiddleware):
    """Authenticate websocket connections from ``?token=<api token>``.

    Browsers cannot set an Authorization header on a websocket handshake, so
    the token issued by ``/api/auth/login`` is passed in the query string.
    Without a valid token the scope keeps whatever user the session gave.
    """

    async def __call__(self, scope, receive, send):
        params = parse_qs(scope.get('query_string', b'').decode())
        key = (params.get('token') or [None])[0]
        if key:
            user = await _user_for_token(key)
            if user is not None:
                scope = dict(scope, user=user)
        return await super().__call__(scope, receive, send)
