# app/matches/redis_store.py
import json
import logging

import redis
from django.conf import settings
from django.utils import timezone

from app.common.redis_client import get_redis

logger = logging.getLogger(__name__)


def session_key(session_id: str) -> str:
    return f"chat:session:{session_id}"


def save_session_state(session):
    """
    websocket 구독 시 DB 안 가고 참여자 확인할 수 있게 세션 상태를 캐시.
    캐시는 best-effort: Redis 장애여도 요청은 실패시키지 않는다.
    """
    payload = {
        "sessionId": str(session.id),
        "status": session.status,
        "user1Id": str(session.user1_id),
        "user2Id": str(session.user2_id),
        "updatedAt": timezone.now().isoformat(),
    }
    r = get_redis()
    if r is None:
        return payload
    try:
        r.set(
            session_key(str(session.id)),
            json.dumps(payload),
            ex=settings.CHAT_SESSION_STATE_TTL_SEC,
        )
    except redis.RedisError as e:
        logger.warning("session state cache write failed session=%s: %s", session.id, e)
    return payload


def load_session_state(session_id: str):
    r = get_redis()
    if r is None:
        return None
    try:
        raw = r.get(session_key(str(session_id)))
    except redis.RedisError as e:
        logger.warning("session state cache read failed session=%s: %s", session_id, e)
        return None
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None
