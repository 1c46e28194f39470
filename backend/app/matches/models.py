# app/matches/models.py
import uuid
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class WaitingQueueEntry(models.Model):
    # user 가 OneToOne(unique) 이라 유저당 대기열 엔트리는 최대 1개
    user = models.OneToOneField(
        "users.User", related_name="queue_entry", on_delete=models.CASCADE
    )
    joined_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["joined_at", "id"]


class ChatSession(models.Model):
    STATUS_ACTIVE = "active"
    STATUS_ENDED = "ended"
    STATUS_CHOICES = (
        (STATUS_ACTIVE, "active"),
        (STATUS_ENDED, "ended"),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # user1 = 매칭을 성사시킨 요청자, user2 = 대기열에 있던 상대
    user1 = models.ForeignKey(
        "users.User", related_name="sessions_as_user1", on_delete=models.CASCADE
    )
    user2 = models.ForeignKey(
        "users.User", related_name="sessions_as_user2", on_delete=models.CASCADE
    )

    status = models.CharField(
        max_length=10, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True
    )
    started_at = models.DateTimeField(default=timezone.now)
    ended_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=~Q(user1=F("user2")), name="chat_session_distinct_users"
            ),
        ]

    @property
    def is_active(self) -> bool:
        return self.status == self.STATUS_ACTIVE

    def has_participant(self, user_id) -> bool:
        return str(user_id) in (str(self.user1_id), str(self.user2_id))


class SessionSeat(models.Model):
    """
    진행중(active) 세션의 참여자 1명 = 1 row.
    user 가 PK 라서 한 유저가 동시에 두 세션에 앉는 건 DB가 막아줌.
    세션 종료 시 삭제.
    """

    user = models.OneToOneField(
        "users.User",
        primary_key=True,
        related_name="seat",
        on_delete=models.CASCADE,
    )
    session = models.ForeignKey(
        ChatSession, related_name="seats", on_delete=models.CASCADE
    )
