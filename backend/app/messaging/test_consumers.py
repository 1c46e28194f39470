import pytest
from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator

from app.config.jwt_auth_middleware import JwtAuthMiddlewareStack
from app.matches.services import end_session, start_search
from app.messaging.delivery import publish_message
from app.messaging.routing import websocket_urlpatterns
from app.messaging.services import send_message
from app.users.services import create_or_resume, issue_access_token


pytestmark = pytest.mark.django_db(transaction=True)

application = JwtAuthMiddlewareStack(URLRouter(websocket_urlpatterns))


def _user():
    user, _ = create_or_resume()
    return user


@pytest.fixture
def chat():
    a, b = _user(), _user()
    start_search(a.pk)
    session = start_search(b.pk).session
    return a, b, session


def _communicator(session_id, user=None):
    path = f"/ws/chat/{session_id}/"
    if user is not None:
        path += f"?token={issue_access_token(user)}"
    return WebsocketCommunicator(application, path)


def test_participant_receives_pushed_messages(chat):
    a, b, session = chat

    async def scenario():
        communicator = _communicator(session.pk, b)
        connected, _ = await communicator.connect()
        assert connected
        assert await communicator.receive_json_from() == {
            "type": "subscribed",
            "sessionId": str(session.pk),
        }

        # send_message 가 커밋 후 한 번 push 함
        message = await database_sync_to_async(send_message)(session.pk, a.pk, "hello")
        # at-least-once: 재전송돼도 서버는 그대로 전달 (dedup 은 클라 몫)
        await database_sync_to_async(publish_message)(message)

        first = await communicator.receive_json_from()
        second = await communicator.receive_json_from()
        assert first["type"] == "message"
        assert first["message"]["id"] == message.pk
        assert first["message"]["messageText"] == "hello"
        assert second["message"]["id"] == message.pk

        await communicator.disconnect()

    async_to_sync(scenario)()


def test_session_end_is_pushed(chat):
    a, b, session = chat

    async def scenario():
        communicator = _communicator(session.pk, a)
        connected, _ = await communicator.connect()
        assert connected
        await communicator.receive_json_from()

        # end_session 이 커밋 후 push
        await database_sync_to_async(end_session)(session.pk, b.pk)

        event = await communicator.receive_json_from()
        assert event["type"] == "session-ended"
        assert event["payload"]["status"] == "ended"
        await communicator.disconnect()

    async_to_sync(scenario)()


def test_ping_pong(chat):
    a, _, session = chat

    async def scenario():
        communicator = _communicator(session.pk, a)
        await communicator.connect()
        await communicator.receive_json_from()

        await communicator.send_json_to({"type": "ping"})
        assert (await communicator.receive_json_from())["type"] == "pong"
        await communicator.disconnect()

    async_to_sync(scenario)()


def test_bearer_header_is_accepted(chat):
    a, _, session = chat
    headers = [(b"authorization", f"Bearer {issue_access_token(a)}".encode())]

    async def scenario():
        communicator = WebsocketCommunicator(
            application, f"/ws/chat/{session.pk}/", headers=headers
        )
        connected, _ = await communicator.connect()
        assert connected
        assert (await communicator.receive_json_from())["type"] == "subscribed"
        await communicator.disconnect()

    async_to_sync(scenario)()


@pytest.mark.parametrize(
    "who, expected_code",
    [("anonymous", 4401), ("stranger", 4403)],
)
def test_rejects_non_participants(chat, who, expected_code):
    _, _, session = chat
    user = _user() if who == "stranger" else None

    async def scenario():
        communicator = _communicator(session.pk, user)
        connected, code = await communicator.connect()
        assert not connected
        assert code == expected_code

    async_to_sync(scenario)()


def test_rejects_unknown_and_ended_sessions(chat):
    a, b, session = chat
    end_session(session.pk, b.pk)

    async def scenario():
        unknown = _communicator("00000000-0000-0000-0000-000000000000", a)
        connected, code = await unknown.connect()
        assert (connected, code) == (False, 4404)

        ended = _communicator(session.pk, a)
        connected, code = await ended.connect()
        assert (connected, code) == (False, 4409)

    async_to_sync(scenario)()
