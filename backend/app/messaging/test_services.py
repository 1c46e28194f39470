from datetime import timedelta
from unittest import mock

import pytest
from django.utils import timezone

from app.common.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    SessionNotActive,
    StateConflictError,
    ValidationError,
)
from app.matches.services import end_session, start_search
from app.messaging import delivery, services
from app.messaging.models import Message


pytestmark = pytest.mark.django_db


@pytest.fixture
def chat(make_user):
    a, b = make_user(), make_user()
    start_search(a.pk)
    session = start_search(b.pk).session
    return a, b, session


class TestSendMessage:
    def test_appends_trimmed_text(self, chat):
        a, _, session = chat

        message = services.send_message(session.pk, a.pk, "  hi there \n")

        assert message.message_text == "hi there"
        assert message.sender_id == a.pk
        assert Message.objects.count() == 1

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_text_is_rejected(self, chat, text):
        a, _, session = chat

        with pytest.raises(ValidationError):
            services.send_message(session.pk, a.pk, text)
        assert not Message.objects.exists()

    def test_too_long_text_is_rejected(self, chat, settings):
        settings.CHAT_MESSAGE_MAX_LENGTH = 5
        a, _, session = chat

        with pytest.raises(ValidationError):
            services.send_message(session.pk, a.pk, "123456")

    def test_sender_must_be_participant(self, chat, make_user):
        _, _, session = chat

        with pytest.raises(PermissionDeniedError):
            services.send_message(session.pk, make_user().pk, "hello")

    def test_unknown_session(self, chat):
        a, _, _ = chat

        with pytest.raises(NotFoundError):
            services.send_message("00000000-0000-0000-0000-000000000000", a.pk, "hello")

    def test_ended_session_rejects(self, chat):
        a, b, session = chat
        end_session(session.pk, b.pk)

        with pytest.raises(SessionNotActive) as exc_info:
            services.send_message(session.pk, a.pk, "hello?")

        assert isinstance(exc_info.value, StateConflictError)
        assert not Message.objects.exists()

    def test_push_happens_after_commit(self, chat, django_capture_on_commit_callbacks):
        a, _, session = chat

        with mock.patch.object(services, "publish_message") as publish:
            with django_capture_on_commit_callbacks(execute=True):
                message = services.send_message(session.pk, a.pk, "hello")

        publish.assert_called_once_with(message)


class TestLoadMessages:
    def test_history_keeps_send_order(self, chat):
        a, b, session = chat
        for sender, text in ((a, "m1"), (b, "m2"), (a, "m3")):
            services.send_message(session.pk, sender.pk, text)

        history = services.load_messages(session.pk)

        assert [m.message_text for m in history] == ["m1", "m2", "m3"]

    def test_equal_timestamps_order_by_id(self, chat):
        a, b, session = chat
        same = timezone.now()
        later = Message.objects.create(
            chat_session=session, sender=b, message_text="later", sent_at=same + timedelta(seconds=1)
        )
        first = Message.objects.create(chat_session=session, sender=a, message_text="x", sent_at=same)
        second = Message.objects.create(chat_session=session, sender=b, message_text="y", sent_at=same)

        history = services.load_messages(session.pk)

        assert [m.pk for m in history] == [first.pk, second.pk, later.pk]

    def test_after_id_returns_only_the_tail(self, chat):
        a, b, session = chat
        m1 = services.send_message(session.pk, a.pk, "m1")
        services.send_message(session.pk, b.pk, "m2")
        services.send_message(session.pk, a.pk, "m3")

        tail = services.load_messages(session.pk, after_id=m1.pk)

        assert [m.message_text for m in tail] == ["m2", "m3"]

    def test_is_read_only_and_repeatable(self, chat):
        a, _, session = chat
        services.send_message(session.pk, a.pk, "m1")

        assert services.load_messages(session.pk) == services.load_messages(session.pk)
        assert Message.objects.count() == 1

    def test_unknown_session(self):
        with pytest.raises(NotFoundError):
            services.load_messages("00000000-0000-0000-0000-000000000000")


class TestDelivery:
    def test_publish_sends_to_session_group(self, chat):
        a, _, session = chat
        message = services.send_message(session.pk, a.pk, "hello")
        layer = mock.Mock()
        layer.group_send = mock.AsyncMock()

        with mock.patch.object(delivery, "get_channel_layer", return_value=layer):
            assert delivery.publish_message(message) is True

        group, event = layer.group_send.call_args.args
        assert group == f"chat_{session.pk}"
        assert event["type"] == "message.inserted"
        assert event["message"]["id"] == message.pk
        assert event["message"]["messageText"] == "hello"
        assert event["message"]["senderId"] == str(a.pk)

    def test_broken_channel_layer_is_logged_not_raised(self, chat, caplog):
        a, _, session = chat
        message = services.send_message(session.pk, a.pk, "hello")
        layer = mock.Mock()
        layer.group_send = mock.AsyncMock(side_effect=ConnectionError("redis down"))

        with mock.patch.object(delivery, "get_channel_layer", return_value=layer):
            with caplog.at_level("WARNING", logger="app.messaging.delivery"):
                assert delivery.publish_message(message) is False

        assert "push delivery degraded" in caplog.text

    def test_missing_channel_layer_degrades(self, chat):
        _, b, session = chat
        ended = end_session(session.pk, b.pk)

        with mock.patch.object(delivery, "get_channel_layer", return_value=None):
            assert delivery.publish_session_ended(ended) is False


def test_after_id_tail_ignores_server_clock_skew(chat):
    a, b, session = chat
    now = timezone.now()
    seen = Message.objects.create(chat_session=session, sender=a, message_text="m1", sent_at=now)
    # 나중에 커밋됐지만 시계가 뒤처진 서버가 찍은 메시지
    late = Message.objects.create(
        chat_session=session, sender=b, message_text="m2", sent_at=now - timedelta(seconds=10)
    )

    tail = services.load_messages(session.pk, after_id=seen.pk)

    assert [m.pk for m in tail] == [late.pk]
