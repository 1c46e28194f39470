# app/matches/services.py
import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, OperationalError, transaction
from django.utils import timezone

from app.common.exceptions import NotFoundError, PermissionDeniedError
from app.matches.models import ChatSession, SessionSeat, WaitingQueueEntry
from app.matches.redis_store import save_session_state
from app.messaging.delivery import publish_session_ended
from app.users.models import User
from app.users.services import get_user

logger = logging.getLogger(__name__)


class PairingConflict(Exception):
    """다른 요청이 후보를 먼저 가져갔거나, 둘 중 한 명이 이미 세션에 앉아 있음."""

    def __init__(self, candidate: Optional[WaitingQueueEntry]):
        who = candidate.user_id if candidate is not None else "-"
        super().__init__(f"candidate user={who} could not be claimed")
        self.candidate = candidate


@dataclass
class SearchResult:
    matched: bool
    session: Optional[ChatSession] = None


def active_session_for(user_id) -> Optional[ChatSession]:
    seat = SessionSeat.objects.select_related("session").filter(user_id=user_id).first()
    return seat.session if seat else None


def start_search(user_id) -> SearchResult:
    """
    한 번의 매칭 시도. 클라이언트는 matched 가 될 때까지 주기적으로 다시 호출한다.

    모든 교차-유저 불변식은 DB 제약으로 지킨다:
      - 대기열: user unique
      - 진행중 세션: SessionSeat.user PK
      - 후보 claim: 조건부 delete (지운 row 수 0 이면 다른 요청이 먼저 가져감)
    """
    user = get_user(user_id)

    # 1) 이미 진행중 세션이 있으면 그대로 반환 (재시도/재접속). 쓰기 없음
    session = active_session_for(user.pk)
    if session:
        return SearchResult(matched=True, session=session)

    # 2) 검색중 표시 (+ heartbeat)
    User.objects.filter(pk=user.pk).update(
        is_searching=True, last_active=timezone.now()
    )

    # 3) 가장 오래 기다린 다른 유저부터 claim 시도
    tried = set()
    for _ in range(settings.CHAT_PAIRING_ATTEMPTS):
        try:
            session = _claim_and_pair(user.pk, exclude=tried)
        except PairingConflict as e:
            logger.info("pairing conflict user=%s: %s", user.pk, e)

            # 그 사이 누가 나를 매칭했으면 그 세션으로
            session = active_session_for(user.pk)
            if session:
                return SearchResult(matched=True, session=session)

            if e.candidate is not None:
                tried.add(e.candidate.pk)
                _drop_stale_entry(e.candidate.user_id)
            continue

        if session is None:
            break

        save_session_state(session)
        logger.info(
            "matched session=%s user1=%s user2=%s",
            session.id,
            session.user1_id,
            session.user2_id,
        )
        return SearchResult(matched=True, session=session)

    # 4) 후보 없음 -> 대기열 등록
    return _enqueue(user.pk)


def _claim_and_pair(user_id, *, exclude) -> Optional[ChatSession]:
    """
    후보 claim + 세션 생성 + 좌석 2개 + 양쪽 대기열 삭제 + is_searching 해제를
    하나의 트랜잭션으로. 중간에 하나라도 실패하면 전부 롤백.
    """
    candidate = None
    try:
        with transaction.atomic():
            # 잠금 순서 고정: 내 엔트리 -> 후보 엔트리.
            # 서로를 후보로 잡는 두 요청이 교차 대기(deadlock)하지 않고,
            # 내가 잠근 엔트리는 상대 쪽 skip_locked 에서 건너뛰어짐
            list(
                WaitingQueueEntry.objects.select_for_update().filter(user_id=user_id)
            )

            # 다른 요청이 잠근 row 는 건너뜀 (같은 사람 동시에 잡는 문제 줄임)
            candidate = (
                WaitingQueueEntry.objects.select_for_update(skip_locked=True)
                .exclude(user_id=user_id)
                .exclude(pk__in=exclude)
                .order_by("joined_at", "id")
                .first()
            )
            if candidate is None:
                return None

            claimed, _ = WaitingQueueEntry.objects.filter(pk=candidate.pk).delete()
            if not claimed:
                raise PairingConflict(candidate)

            session = ChatSession.objects.create(
                user1_id=user_id,
                user2_id=candidate.user_id,
                status=ChatSession.STATUS_ACTIVE,
            )
            SessionSeat.objects.bulk_create(
                [
                    SessionSeat(user_id=user_id, session=session),
                    SessionSeat(user_id=candidate.user_id, session=session),
                ]
            )
            WaitingQueueEntry.objects.filter(user_id=user_id).delete()
            User.objects.filter(pk__in=[user_id, candidate.user_id]).update(
                is_searching=False
            )
    except IntegrityError as e:
        # 좌석 unique 위반 = 둘 중 누군가 이미 다른 세션에 들어감
        raise PairingConflict(candidate) from e
    except OperationalError as e:
        # deadlock / serialization 실패는 경합일 뿐: 롤백됐으니 다음 후보로
        if not is_lock_conflict(e):
            raise
        raise PairingConflict(candidate) from e

    return session


# deadlock_detected, serialization_failure
LOCK_CONFLICT_SQLSTATES = {"40P01", "40001"}


def is_lock_conflict(exc: OperationalError) -> bool:
    cause = exc.__cause__
    # psycopg2: pgcode / psycopg3: sqlstate
    code = getattr(cause, "pgcode", None) or getattr(cause, "sqlstate", None)
    if code in LOCK_CONFLICT_SQLSTATES:
        return True
    # sqlite: 쓰기 잠금 대기 시간 초과
    return "database is locked" in str(exc)


def _drop_stale_entry(user_id) -> None:
    # 이미 진행중 세션이 있는 유저의 대기열 엔트리는 남아 있으면 안 됨
    if SessionSeat.objects.filter(user_id=user_id).exists():
        deleted, _ = WaitingQueueEntry.objects.filter(user_id=user_id).delete()
        if deleted:
            logger.info("dropped stale queue entry user=%s", user_id)


def _enqueue(user_id) -> SearchResult:
    # unique(user) 기반 insert-if-absent
    _, created = WaitingQueueEntry.objects.get_or_create(
        user_id=user_id, defaults={"joined_at": timezone.now()}
    )

    # 등록하는 사이에 다른 요청이 나를 매칭했으면 방금 엔트리는 정리
    session = active_session_for(user_id)
    if session:
        WaitingQueueEntry.objects.filter(user_id=user_id).delete()
        User.objects.filter(pk=user_id).update(is_searching=False)
        return SearchResult(matched=True, session=session)

    if created:
        logger.info("queued user=%s", user_id)
    return SearchResult(matched=False)


def stop_search(user_id) -> None:
    """대기열에서 빠지고 is_searching 해제. 멈출 게 없어도 에러 아님."""
    get_user(user_id)
    with transaction.atomic():
        WaitingQueueEntry.objects.filter(user_id=user_id).delete()
        User.objects.filter(pk=user_id).update(is_searching=False)


def get_session(session_id) -> ChatSession:
    session = ChatSession.objects.filter(pk=session_id).first()
    if not session:
        raise NotFoundError("chat session not found", code="SESSION_NOT_FOUND")
    return session


def end_session(session_id, user_id) -> ChatSession:
    """
    active -> ended. 이미 ended 면 아무것도 안 함 (에러 아님).
    """
    session = get_session(session_id)
    if not session.has_participant(user_id):
        raise PermissionDeniedError("not your session")

    with transaction.atomic():
        ended = ChatSession.objects.filter(
            pk=session.pk, status=ChatSession.STATUS_ACTIVE
        ).update(status=ChatSession.STATUS_ENDED, ended_at=timezone.now())
        # 이미 ended 였으면 손대지 않음: 늦게 온 end 가 새 검색 상태를 지우면 안 됨
        if ended:
            SessionSeat.objects.filter(session_id=session.pk).delete()
            User.objects.filter(pk=user_id).update(is_searching=False)

    session.refresh_from_db()
    if ended:
        logger.info("session ended session=%s by user=%s", session.pk, user_id)
        save_session_state(session)
        transaction.on_commit(lambda: publish_session_ended(session))
    return session
