# app/messaging/serializers.py
from rest_framework import serializers
from .models import Message


class MessageSerializer(serializers.ModelSerializer):
    # FK는 UUID 객체가 아니라 문자열로 (channel layer 직렬화 때문)
    chatSessionId = serializers.UUIDField(source="chat_session_id", read_only=True)
    senderId = serializers.UUIDField(source="sender_id", read_only=True)
    messageText = serializers.CharField(source="message_text", read_only=True)
    sentAt = serializers.DateTimeField(source="sent_at", read_only=True)

    class Meta:
        model = Message
        fields = ["id", "chatSessionId", "senderId", "messageText", "sentAt"]
