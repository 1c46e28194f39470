# app/users/serializers.py
from rest_framework import serializers
from .models import User


class UserSerializer(serializers.ModelSerializer):
    """본인에게 돌려주는 전체 정보 (sessionId 포함)."""

    sessionId = serializers.CharField(source="session_id", read_only=True)
    displayName = serializers.CharField(source="display_name", read_only=True)
    isOnline = serializers.BooleanField(source="is_online", read_only=True)
    isSearching = serializers.BooleanField(source="is_searching", read_only=True)
    lastActive = serializers.DateTimeField(source="last_active", read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "sessionId",
            "displayName",
            "isOnline",
            "isSearching",
            "lastActive",
        ]


class PublicUserSerializer(serializers.ModelSerializer):
    # 상대방 조회용: sessionId는 재접속 토큰이라 절대 내보내지 않음
    displayName = serializers.CharField(source="display_name", read_only=True)
    isOnline = serializers.BooleanField(source="is_online", read_only=True)

    class Meta:
        model = User
        fields = ["id", "displayName", "isOnline"]
