# app/client/reconcile.py
"""
Local message view merge.

Push and polling both feed ``merge_incoming``; it is safe to apply the same
server message any number of times.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Union

PROVISIONAL = "provisional"
CONFIRMED = "confirmed"


def parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        return value
    # DRF 는 UTC 를 "Z" 로 내려줌
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass
class LocalMessage:
    id: Union[int, str]
    sender_id: str
    message_text: str
    sent_at: datetime
    state: str = CONFIRMED

    @property
    def is_provisional(self) -> bool:
        return self.state == PROVISIONAL

    @property
    def order_key(self):
        return (self.sent_at, str(self.id) if self.is_provisional else self.id)

    @classmethod
    def from_server(cls, data: dict) -> "LocalMessage":
        return cls(
            id=data["id"],
            sender_id=str(data["senderId"]),
            message_text=data["messageText"],
            sent_at=parse_timestamp(data["sentAt"]),
        )


def add_provisional(
    view: List[LocalMessage], temp_id: str, sender_id, text: str, sent_at=None
) -> LocalMessage:
    message = LocalMessage(
        id=temp_id,
        sender_id=str(sender_id),
        message_text=text,
        sent_at=sent_at or datetime.now(timezone.utc),
        state=PROVISIONAL,
    )
    view.append(message)
    return message


def drop_provisional(view: List[LocalMessage], temp_id: str) -> bool:
    for i, m in enumerate(view):
        if m.id == temp_id and m.is_provisional:
            del view[i]
            return True
    return False


def _find_provisional(view, sender_id: str, text: str) -> Optional[int]:
    for i, m in enumerate(view):
        if m.is_provisional and m.sender_id == sender_id and m.message_text == text:
            return i
    return None


def _insert_ordered(view: List[LocalMessage], message: LocalMessage) -> None:
    # 확정 메시지는 (sent_at, id) 순서 유지, 대기중(provisional)은 맨 아래에 둔다
    idx = len(view)
    while idx > 0:
        prev = view[idx - 1]
        if prev.is_provisional or prev.order_key > message.order_key:
            idx -= 1
            continue
        break
    view.insert(idx, message)


def merge_incoming(view: List[LocalMessage], incoming) -> bool:
    """
    서버에서 온 메시지 1개를 view 에 반영. view 가 바뀌었으면 True.

      1) 같은 id 가 이미 있으면 버림 (at-least-once 중복)
      2) 같은 sender + text 의 provisional 이 있으면 첫 번째 것을 그 자리에서 교체
      3) 아니면 순서대로 삽입
    """
    message = incoming if isinstance(incoming, LocalMessage) else LocalMessage.from_server(incoming)

    if any(m.id == message.id for m in view):
        return False

    idx = _find_provisional(view, message.sender_id, message.message_text)
    if idx is not None:
        view[idx] = message
        return True

    _insert_ordered(view, message)
    return True


def merge_history(view: List[LocalMessage], messages) -> int:
    """polling 결과(여러 개)를 반영. 새로 반영된 개수 반환."""
    return sum(1 for m in messages if merge_incoming(view, m))


def last_confirmed_id(view: List[LocalMessage]):
    # 서버는 afterId 를 id 로 자르므로 순서가 아니라 가장 큰 id
    confirmed = [m.id for m in view if not m.is_provisional]
    return max(confirmed) if confirmed else None
