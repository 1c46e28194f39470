# app/config/authentication.py
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken
from rest_framework_simplejwt.settings import api_settings

from app.users.models import User


class ChatUserJWTAuthentication(JWTAuthentication):
    """
    SimpleJWT 토큰의 user_id 클레임으로 익명 채팅 유저(users.User)를 찾는다.
    django auth 유저 테이블은 쓰지 않음.
    """

    def get_user(self, validated_token):
        try:
            user_id = validated_token[api_settings.USER_ID_CLAIM]
        except KeyError:
            raise InvalidToken("Token contained no recognizable user identification")

        user = User.objects.filter(pk=user_id).first()
        if not user:
            raise AuthenticationFailed("User not found", code="user_not_found")
        return user
