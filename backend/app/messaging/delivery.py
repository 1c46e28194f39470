# app/messaging/delivery.py
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from app.common.exceptions import DeliveryDegraded
from app.messaging.serializers import MessageSerializer

logger = logging.getLogger(__name__)


def group_name(session_id) -> str:
    return f"chat_{session_id}"


def _group_send(session_id, event: dict) -> None:
    layer = get_channel_layer()
    if layer is None:
        raise DeliveryDegraded("no channel layer configured")
    try:
        async_to_sync(layer.group_send)(group_name(session_id), event)
    except Exception as e:  # redis 연결 끊김, ChannelFull 등 backend 마다 다름
        raise DeliveryDegraded(f"{type(e).__name__}: {e}") from e


def publish_message(message) -> bool:
    """
    새 메시지를 세션 구독자 전원에게 push.
    at-least-once / 서버측 dedup 없음 (클라가 id 로 걸러냄).
    실패해도 보낸 사람 요청은 성공으로 두고, 클라 polling fallback 에 맡긴다.
    """
    event = {
        "type": "message.inserted",  # handler: message_inserted
        "sessionId": str(message.chat_session_id),
        "message": dict(MessageSerializer(message).data),
    }
    try:
        _group_send(message.chat_session_id, event)
    except DeliveryDegraded as e:
        logger.warning(
            "push delivery degraded session=%s message=%s: %s",
            message.chat_session_id,
            message.id,
            e,
        )
        return False
    return True


def publish_session_ended(session) -> bool:
    event = {
        "type": "session.ended",  # handler: session_ended
        "sessionId": str(session.id),
        "payload": {
            "status": session.status,
            "endedAt": session.ended_at.isoformat() if session.ended_at else None,
        },
    }
    try:
        _group_send(session.id, event)
    except DeliveryDegraded as e:
        logger.warning("push delivery degraded session=%s: %s", session.id, e)
        return False
    return True
