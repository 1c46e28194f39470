# app/messaging/services.py
import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from app.common.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    SessionNotActive,
    ValidationError,
)
from app.matches.models import ChatSession
from app.matches.services import get_session
from app.messaging.delivery import publish_message
from app.messaging.models import Message
from app.users.models import User

logger = logging.getLogger(__name__)


def _clean_text(text) -> str:
    if not isinstance(text, str):
        raise ValidationError("messageText must be a string")
    body = text.strip()
    if not body:
        raise ValidationError("messageText must not be empty")
    if len(body) > settings.CHAT_MESSAGE_MAX_LENGTH:
        raise ValidationError(
            f"messageText must be at most {settings.CHAT_MESSAGE_MAX_LENGTH} characters"
        )
    return body


def send_message(session_id, sender_id, text) -> Message:
    body = _clean_text(text)

    with transaction.atomic():
        # 세션 row 잠금: 종료 요청과 교차하지 않게
        session = ChatSession.objects.select_for_update().filter(pk=session_id).first()
        if not session:
            raise NotFoundError("chat session not found", code="SESSION_NOT_FOUND")
        if not session.has_participant(sender_id):
            raise PermissionDeniedError("sender is not a participant of this session")
        if not session.is_active:
            raise SessionNotActive()

        message = Message.objects.create(
            chat_session=session,
            sender_id=sender_id,
            message_text=body,
            sent_at=timezone.now(),
        )
        User.objects.filter(pk=sender_id).update(last_active=message.sent_at)

        # 커밋된 뒤에만 push (롤백된 메시지가 보이면 안 됨)
        transaction.on_commit(lambda: publish_message(message))

    logger.debug("message appended session=%s message=%s", session_id, message.id)
    return message


def load_messages(session_id, after_id=None):
    """
    세션 전체 히스토리 (sent_at, id) 오름차순.
    after_id 가 주어지면 id 가 그보다 큰 것만 (polling 용).

    tail 은 sent_at 이 아니라 id 로 자름: 서버마다 시계가 달라도
    세션 row 잠금 덕분에 세션 안에서 id 는 커밋 순서대로 증가한다.
    """
    get_session(session_id)

    qs = Message.objects.filter(chat_session_id=session_id)
    if after_id is not None:
        qs = qs.filter(id__gt=after_id)
    return list(qs.order_by("sent_at", "id"))
