import logging
import uuid

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from app.matches.models import ChatSession
from app.matches.redis_store import load_session_state, save_session_state
from app.messaging.delivery import group_name

logger = logging.getLogger(__name__)

CLOSE_UNAUTHORIZED = 4401
CLOSE_FORBIDDEN = 4403
CLOSE_NOT_FOUND = 4404
CLOSE_SESSION_ENDED = 4409


class ChatMessageConsumer(AsyncJsonWebsocketConsumer):
    """
    세션별 메시지 push 채널
      - URL: ws://<host>/ws/chat/<chatSessionId>/?token=<accessToken>
      - 구독 성공 시: {"type": "subscribed", "sessionId": "..."}
      - 새 메시지:   {"type": "message", "sessionId": "...", "message": {...}}
      - 세션 종료:   {"type": "session-ended", "sessionId": "...", "payload": {...}}

    at-least-once. 같은 메시지가 두 번 올 수 있으니 클라는 message.id 로 dedup.
    """

    async def connect(self):
        try:
            # group 이름이 publish 쪽과 같도록 소문자 UUID 로 정규화
            self.session_id = str(uuid.UUID(self.scope["url_route"]["kwargs"]["session_id"]))
        except ValueError:
            await self.close(code=CLOSE_NOT_FOUND)
            return

        # 1) 인증: JwtAuthMiddleware 가 scope["user"] 채움
        user = self.scope.get("user")
        if not user or not getattr(user, "is_authenticated", False):
            await self.close(code=CLOSE_UNAUTHORIZED)
            return
        self.user_id = str(user.id)

        # 2) 참여자 확인 (Redis 캐시 -> DB)
        state = await self._session_state()
        if state is None:
            await self.close(code=CLOSE_NOT_FOUND)
            return
        if self.user_id not in (state["user1Id"], state["user2Id"]):
            await self.close(code=CLOSE_FORBIDDEN)
            return
        if state["status"] != ChatSession.STATUS_ACTIVE:
            await self.close(code=CLOSE_SESSION_ENDED)
            return

        # 3) group join
        self.room_group_name = group_name(self.session_id)
        await self.channel_layer.group_add(self.room_group_name, self.channel_name)
        await self.accept()

        await self.send_json({"type": "subscribed", "sessionId": self.session_id})
        logger.debug("subscribed session=%s user=%s", self.session_id, self.user_id)

    async def disconnect(self, close_code):
        # connect 실패한 케이스 방어
        room = getattr(self, "room_group_name", None)
        if not room:
            return
        await self.channel_layer.group_discard(room, self.channel_name)

    async def receive_json(self, content, **kwargs):
        msg_type = (content or {}).get("type")

        # 연결 살아있는지 확인용
        if msg_type == "ping":
            await self.send_json({"type": "pong", "sessionId": self.session_id})
            return

        if msg_type == "leave":
            await self.close(code=1000)
            return

        # 메시지 전송은 HTTP(/api/messages/send)로만. 그 외는 무시

    # ---- group handlers ----

    async def message_inserted(self, event):
        await self.send_json(
            {
                "type": "message",
                "sessionId": event.get("sessionId"),
                "message": event.get("message") or {},
            }
        )

    async def session_ended(self, event):
        await self.send_json(
            {
                "type": "session-ended",
                "sessionId": event.get("sessionId"),
                "payload": event.get("payload") or {},
            }
        )

    # ---- helpers ----

    @database_sync_to_async
    def _session_state(self):
        state = load_session_state(self.session_id)
        if state:
            return state

        session = ChatSession.objects.filter(pk=self.session_id).first()
        if not session:
            return None
        return save_session_state(session)
