# app/matches/serializers.py
from rest_framework import serializers
from .models import ChatSession


class ChatSessionSerializer(serializers.ModelSerializer):
    user1Id = serializers.UUIDField(source="user1_id", read_only=True)
    user2Id = serializers.UUIDField(source="user2_id", read_only=True)
    startedAt = serializers.DateTimeField(source="started_at", read_only=True)
    endedAt = serializers.DateTimeField(source="ended_at", read_only=True)

    class Meta:
        model = ChatSession
        fields = ["id", "user1Id", "user2Id", "status", "startedAt", "endedAt"]
