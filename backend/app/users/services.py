# app/users/services.py
import logging
import secrets
import time
from datetime import timedelta

from django.db import transaction
from django.utils import timezone
from rest_framework_simplejwt.tokens import AccessToken

from app.common.exceptions import NotFoundError, StateConflictError, ValidationError
from app.matches.models import WaitingQueueEntry
from app.users.models import User

logger = logging.getLogger(__name__)

SESSION_ID_MAX_LENGTH = 64
DISPLAY_NAME_MAX_LENGTH = 50


def generate_session_id() -> str:
    # session_<ms>_<랜덤 9자>
    return f"session_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


def _clean_display_name(display_name) -> str:
    name = str(display_name or "").strip()
    if not name:
        raise ValidationError("displayName must not be empty")
    if len(name) > DISPLAY_NAME_MAX_LENGTH:
        raise ValidationError(
            f"displayName must be at most {DISPLAY_NAME_MAX_LENGTH} characters"
        )
    return name


def get_user(user_id) -> User:
    user = User.objects.filter(pk=user_id).first()
    if not user:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    return user


def create_or_resume(session_id=None, display_name=None):
    """
    return: (user, created)
      - session_id 가 이미 있으면 같은 유저를 온라인으로 되살림
      - 없으면 새로 만듦 (session_id 미지정 시 서버에서 발급)
    """
    if session_id is not None:
        session_id = str(session_id).strip()
        if len(session_id) > SESSION_ID_MAX_LENGTH:
            raise ValidationError(
                f"sessionId must be at most {SESSION_ID_MAX_LENGTH} characters"
            )
    session_id = session_id or generate_session_id()
    name = _clean_display_name(display_name) if display_name else None
    now = timezone.now()

    # unique(session_id) 덕분에 동시 생성 요청이 와도 한 명만 생김
    user, created = User.objects.get_or_create(
        session_id=session_id,
        defaults={"is_online": True, "last_active": now, "display_name": name},
    )
    if created:
        logger.info("user created user=%s", user.id)
        return user, True

    User.objects.filter(pk=user.pk).update(is_online=True, last_active=now)
    user.is_online = True
    user.last_active = now

    if name and not user.display_name:
        user = set_display_name(user.id, name)
    return user, False


def issue_access_token(user: User) -> str:
    token = AccessToken.for_user(user)
    return str(token)


def set_display_name(user_id, display_name) -> User:
    name = _clean_display_name(display_name)

    # 조건부 update: 아직 비어 있을 때만 한 번 설정
    updated = User.objects.filter(pk=user_id, display_name__isnull=True).update(
        display_name=name
    )
    user = get_user(user_id)
    if not updated:
        raise StateConflictError(
            "displayName is already set", code="DISPLAY_NAME_ALREADY_SET"
        )
    return user


def set_online(user_id, is_online: bool) -> None:
    get_user(user_id)

    fields = {"is_online": bool(is_online), "last_active": timezone.now()}
    with transaction.atomic():
        if not is_online:
            # 오프라인이면 대기열에서도 빠짐
            fields["is_searching"] = False
            WaitingQueueEntry.objects.filter(user_id=user_id).delete()
        User.objects.filter(pk=user_id).update(**fields)


def expire_idle_users(idle_seconds: int) -> int:
    """
    last_active 가 idle_seconds 보다 오래된 온라인 유저를 오프라인 처리하고
    대기열에서 제거. 처리한 유저 수 반환.
    """
    cutoff = timezone.now() - timedelta(seconds=idle_seconds)
    with transaction.atomic():
        idle_ids = list(
            User.objects.filter(is_online=True, last_active__lt=cutoff).values_list(
                "id", flat=True
            )
        )
        if not idle_ids:
            return 0
        WaitingQueueEntry.objects.filter(user_id__in=idle_ids).delete()
        User.objects.filter(pk__in=idle_ids).update(
            is_online=False, is_searching=False
        )

    logger.info("expired %d idle users", len(idle_ids))
    return len(idle_ids)
