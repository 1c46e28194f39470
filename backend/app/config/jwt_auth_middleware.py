# app/config/jwt_auth_middleware.py
import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from django.contrib.auth.models import AnonymousUser
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError

from app.config.authentication import ChatUserJWTAuthentication

logger = logging.getLogger(__name__)


@database_sync_to_async
def get_chat_user(raw_token: str):
    """
    accessToken 검증 후 채팅 유저 반환. 실패하면 AnonymousUser
    (consumer 가 4401 로 닫는다).
    """
    auth = ChatUserJWTAuthentication()
    try:
        return auth.get_user(auth.get_validated_token(raw_token))
    except (InvalidToken, TokenError, AuthenticationFailed) as e:
        logger.info("websocket token rejected: %s", e)
        return AnonymousUser()


def token_from_scope(scope):
    """
    브라우저 WebSocket 은 헤더를 못 붙이므로 ?token= 우선,
    없으면 Authorization: Bearer 헤더 (서버간/CLI 클라이언트).
    """
    params = parse_qs(scope.get("query_string", b"").decode())
    if params.get("token"):
        return params["token"][0]

    for name, value in scope.get("headers", []):
        if name == b"authorization":
            scheme, _, token = value.decode().partition(" ")
            if scheme.lower() == "bearer" and token:
                return token.strip()
    return None


class JwtAuthMiddleware:
    """scope['user'] 에 토큰의 채팅 유저(또는 AnonymousUser)를 넣는다."""

    def __init__(self, inner):
        self.inner = inner

    async def __call__(self, scope, receive, send):
        token = token_from_scope(scope)
        scope["user"] = await get_chat_user(token) if token else AnonymousUser()
        return await self.inner(scope, receive, send)


def JwtAuthMiddlewareStack(inner):
    return JwtAuthMiddleware(inner)
