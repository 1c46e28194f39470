# app/messaging/models.py
from django.db import models
from django.utils import timezone


class Message(models.Model):
    """
    세션별 append-only 메시지. 생성 후 수정/삭제하지 않음.
    정렬 키: (sent_at, id)
    """

    chat_session = models.ForeignKey(
        "matches.ChatSession", related_name="messages", on_delete=models.CASCADE
    )
    sender = models.ForeignKey(
        "users.User", related_name="sent_messages", on_delete=models.CASCADE
    )
    message_text = models.TextField()
    sent_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["sent_at", "id"]
        indexes = [
            models.Index(
                fields=["chat_session", "sent_at", "id"], name="message_session_order"
            ),
        ]

    def __str__(self):
        return f"{self.sender_id}: {self.message_text[:50]}"
