# app/client/controller.py
import itertools
import logging
import threading
from datetime import datetime, timezone

from app.client.api import ApiError
from app.client.poller import Poller
from app.client.reconcile import (
    add_provisional,
    drop_provisional,
    last_confirmed_id,
    merge_history,
    merge_incoming,
)

logger = logging.getLogger(__name__)

SEARCH_INTERVAL_SEC = 2.0
MESSAGE_POLL_INTERVAL_SEC = 2.0
PUSH_SUBSCRIBE_TIMEOUT_SEC = 5.0


class ClientSyncController:
    """
    유저 1명의 화면 상태를 서버와 맞춰주는 컨트롤러.

      - 매칭: start_search() 즉시 1회 + search_interval 마다 재시도, 매칭되면 중단
      - 전송: provisional 먼저 표시 -> 성공 시 서버 메시지로 교체, 실패 시 롤백
      - 수신: push(handle_push_event) 와 polling(refresh_messages) 둘 다 merge_incoming 으로
      - push 구독 확인이 push_subscribe_timeout 안에 안 오거나 끊기면 polling 으로 대체

    push transport(websocket 등)는 밖에서 붙이고 이벤트만 handle_push_event 로 넘긴다.
    """

    def __init__(
        self,
        api,
        user_id,
        *,
        search_interval=SEARCH_INTERVAL_SEC,
        message_poll_interval=MESSAGE_POLL_INTERVAL_SEC,
        push_subscribe_timeout=PUSH_SUBSCRIBE_TIMEOUT_SEC,
        poller_factory=Poller,
        on_matched=None,
        on_change=None,
    ):
        self.api = api
        self.user_id = str(user_id)
        self.search_interval = search_interval
        self.message_poll_interval = message_poll_interval
        self.push_subscribe_timeout = push_subscribe_timeout
        self.poller_factory = poller_factory
        self.on_matched = on_matched
        self.on_change = on_change

        self.messages = []
        self.compose_text = ""
        self.chat_session = None
        self.is_searching = False
        self.push_healthy = False
        # teardown 이후에는 어떤 루프/타이머도 새로 시작하지 않음
        self._closed = False

        # poller 스레드와 호출 스레드가 같은 view 를 만지므로
        self._lock = threading.RLock()
        self._search_poller = None
        self._message_poller = None
        self._push_timer = None
        self._temp_ids = itertools.count(1)

    # ---- state helpers ----

    @property
    def is_connected(self) -> bool:
        return bool(self.chat_session) and self.chat_session.get("status") == "active"

    @property
    def is_polling_messages(self) -> bool:
        return self._message_poller is not None

    def _changed(self):
        if self.on_change:
            self.on_change(self)

    # ---- search loop ----

    def start_search(self) -> bool:
        """즉시 한 번 시도하고, 안 되면 주기적으로 재시도. 매칭되면 True."""
        with self._lock:
            if self._closed:
                return False
            self.is_searching = True
        if self._try_match():
            return True

        with self._lock:
            if self.is_searching and not self._closed and self._search_poller is None:
                self._search_poller = self.poller_factory(
                    self.search_interval, self._try_match, name="search"
                ).start()
        return False

    def resume(self) -> bool:
        """
        재접속 시 서버에 남아 있는 진행중 세션으로 복귀. 있으면 True.
        """
        try:
            chat_session = self.api.active_session(self.user_id)
        except ApiError as e:
            logger.warning("active session lookup failed: %s", e)
            return False
        if not chat_session:
            return False
        self._on_matched(chat_session)
        return self.is_connected

    def _try_match(self) -> bool:
        if not self.is_searching or self._closed:
            return True
        try:
            data = self.api.start_search(self.user_id)
        except ApiError as e:
            # 다음 tick 에서 다시
            logger.warning("search attempt failed: %s", e)
            return False

        if not data.get("matched"):
            return False
        self._on_matched(data["chatSession"])
        return True

    def _stop_search_poller(self):
        poller, self._search_poller = self._search_poller, None
        if poller is not None:
            poller.stop()

    def _on_matched(self, chat_session: dict):
        with self._lock:
            closed = self._closed
            if not closed:
                self.is_searching = False
                self.chat_session = dict(chat_session)
                self.messages = []
                self.push_healthy = False
                self._stop_search_poller()

        if closed:
            # teardown 중에 늦게 도착한 매칭 결과: 상대가 세션에 갇히지 않게 바로 종료
            logger.info("matched after teardown, ending session=%s", chat_session.get("id"))
            try:
                self.api.end_chat(chat_session["id"], self.user_id)
            except ApiError as e:
                logger.warning("ending late session failed: %s", e)
            return

        logger.info("matched session=%s", chat_session.get("id"))
        self.refresh_messages()
        self._await_push()
        if self.on_matched:
            self.on_matched(self.chat_session)
        self._changed()

    # ---- push / polling duality ----

    def _await_push(self):
        self._cancel_push_timer()
        with self._lock:
            if self._closed:
                return
            timer = threading.Timer(self.push_subscribe_timeout, self._push_ack_timeout)
            timer.daemon = True
            self._push_timer = timer
            timer.start()

    def _cancel_push_timer(self):
        timer, self._push_timer = self._push_timer, None
        if timer is not None:
            timer.cancel()

    def _push_ack_timeout(self):
        if not self.push_healthy and self.is_connected:
            logger.warning(
                "push subscription not confirmed in %ss, falling back to polling",
                self.push_subscribe_timeout,
            )
            self._start_message_polling()

    def _start_message_polling(self):
        with self._lock:
            if self._message_poller is None and self.is_connected and not self._closed:
                self._message_poller = self.poller_factory(
                    self.message_poll_interval, self._poll_messages_tick, name="messages"
                ).start()

    def _stop_message_polling(self):
        with self._lock:
            poller, self._message_poller = self._message_poller, None
        if poller is not None:
            poller.stop()

    def _poll_messages_tick(self) -> bool:
        if not self.is_connected:
            return True
        self.refresh_messages()
        return not self.is_connected

    def push_subscribed(self):
        """push 구독 확인(ack). polling 중이었으면 중단하고 빈틈을 한 번 메운다."""
        self.push_healthy = True
        self._cancel_push_timer()
        was_polling = self.is_polling_messages
        self._stop_message_polling()
        if was_polling:
            self.refresh_messages()

    def push_closed(self, reason=None):
        """push 채널이 닫히거나 타임아웃. 에러로 올리지 않고 polling 으로 전환."""
        self.push_healthy = False
        self._cancel_push_timer()
        logger.warning("push channel degraded: %s", reason or "closed")
        self._start_message_polling()

    def handle_push_event(self, event: dict) -> None:
        event_type = (event or {}).get("type")
        if event_type == "subscribed":
            self.push_subscribed()
        elif event_type == "message":
            self.receive_message(event.get("message") or {})
        elif event_type == "session-ended":
            self.session_ended()

    def receive_message(self, message: dict) -> bool:
        if not message or not self.chat_session:
            return False
        if str(message.get("chatSessionId")) != str(self.chat_session.get("id")):
            return False
        with self._lock:
            changed = merge_incoming(self.messages, message)
        if changed:
            self._changed()
        return changed

    def refresh_messages(self) -> int:
        session = self.chat_session
        if not session:
            return 0
        with self._lock:
            after_id = last_confirmed_id(self.messages)
        try:
            history = self.api.load_messages(session["id"], after_id=after_id)
        except ApiError as e:
            logger.warning("loading messages failed: %s", e)
            return 0

        with self._lock:
            added = merge_history(self.messages, history)
        if added:
            self._changed()
        return added

    def session_ended(self):
        with self._lock:
            if self.chat_session:
                self.chat_session["status"] = "ended"
        self._cancel_push_timer()
        self._stop_message_polling()
        self._changed()

    # ---- optimistic send ----

    def send(self, text=None):
        """
        text 가 없으면 compose_text 를 보냄.
        성공: 서버 메시지 dict 반환. 실패: None (입력창 텍스트 복구).
        """
        body = (self.compose_text if text is None else text).strip()
        if not body or not self.is_connected:
            return None

        session_id = self.chat_session["id"]
        temp_id = f"tmp-{next(self._temp_ids)}"
        with self._lock:
            add_provisional(
                self.messages, temp_id, self.user_id, body, datetime.now(timezone.utc)
            )
            self.compose_text = ""
        self._changed()

        try:
            message = self.api.send_message(session_id, self.user_id, body)
        except ApiError as e:
            logger.warning("send failed: %s", e)
            with self._lock:
                drop_provisional(self.messages, temp_id)
                self.compose_text = body
            if e.code == "SESSION_NOT_ACTIVE":
                self.session_ended()
            self._changed()
            return None

        with self._lock:
            merge_incoming(self.messages, message)
        self._changed()
        return message

    # ---- skip / teardown ----

    def _end_active_session(self):
        session = self.chat_session
        if not session or session.get("status") != "active":
            return
        try:
            self.api.end_chat(session["id"], self.user_id)
        except ApiError as e:
            logger.warning("ending chat failed: %s", e)
        self.session_ended()

    def skip(self) -> bool:
        """현재 대화 종료 후 바로 새 상대 찾기."""
        self._end_active_session()
        with self._lock:
            self.chat_session = None
            self.messages = []
            self.push_healthy = False
        return self.start_search()

    def teardown(self) -> None:
        """
        종료 순서: 세션 종료 -> 검색 중단 -> 오프라인.
        단계별로 독립 시도 (앞 단계 실패가 뒤 단계를 막지 않음).
        """
        with self._lock:
            self._closed = True
            was_searching = self.is_searching
            self.is_searching = False
        self._stop_search_poller()
        self._cancel_push_timer()
        self._stop_message_polling()

        self._end_active_session()

        if was_searching:
            try:
                self.api.stop_search(self.user_id)
            except ApiError as e:
                logger.warning("stopping search failed: %s", e)

        try:
            self.api.set_online(self.user_id, False)
        except ApiError as e:
            logger.warning("setting offline failed: %s", e)
