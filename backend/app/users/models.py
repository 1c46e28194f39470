# app/users/models.py
import uuid

from django.db import models
from django.utils import timezone


class User(models.Model):
    """
    익명 채팅 유저. session_id(브라우저 로컬 저장)로 재접속 시 같은 유저를 재사용.
    삭제하지 않고 is_online 으로만 presence 표시.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    session_id = models.CharField(max_length=64, unique=True)

    # 한 번만 설정 가능
    display_name = models.CharField(max_length=50, null=True, blank=True)

    is_online = models.BooleanField(default=True)
    is_searching = models.BooleanField(default=False)
    last_active = models.DateTimeField(default=timezone.now, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # DRF IsAuthenticated / channels scope 에서 request.user 로 쓰기 위함
    is_authenticated = True
    is_anonymous = False

    def __str__(self):
        return f"{self.id} {self.session_id}"
