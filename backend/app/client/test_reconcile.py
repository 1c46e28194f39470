from datetime import datetime, timedelta, timezone

from app.client.reconcile import (
    LocalMessage,
    add_provisional,
    drop_provisional,
    last_confirmed_id,
    merge_history,
    merge_incoming,
)

T0 = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def server_msg(id, sender, text, seconds=0):
    return {
        "id": id,
        "chatSessionId": "s-1",
        "senderId": sender,
        "messageText": text,
        "sentAt": (T0 + timedelta(seconds=seconds)).isoformat().replace("+00:00", "Z"),
    }


def texts(view):
    return [(m.sender_id, m.message_text, m.state) for m in view]


def test_provisional_is_replaced_by_authoritative_copy():
    view = []
    add_provisional(view, "tmp-1", "u", "hi", T0)

    changed = merge_incoming(view, server_msg(10, "u", "hi"))

    assert changed is True
    assert texts(view) == [("u", "hi", "confirmed")]
    assert view[0].id == 10


def test_push_and_http_response_for_the_same_message_do_not_duplicate():
    view = []
    add_provisional(view, "tmp-1", "u", "hi", T0)

    merge_incoming(view, server_msg(10, "u", "hi"))  # push
    merge_incoming(view, server_msg(10, "u", "hi"))  # HTTP 응답
    merge_history(view, [server_msg(10, "u", "hi")])  # poll

    assert texts(view) == [("u", "hi", "confirmed")]


def test_first_provisional_match_wins():
    view = []
    add_provisional(view, "tmp-1", "u", "hi", T0)
    add_provisional(view, "tmp-2", "u", "hi", T0 + timedelta(seconds=1))

    merge_incoming(view, server_msg(10, "u", "hi"))

    assert [m.id for m in view] == [10, "tmp-2"]
    assert view[1].is_provisional


def test_same_text_from_peer_does_not_reconcile_my_provisional():
    view = []
    add_provisional(view, "tmp-1", "me", "hi", T0)

    merge_incoming(view, server_msg(10, "peer", "hi"))

    assert texts(view) == [("peer", "hi", "confirmed"), ("me", "hi", "provisional")]


def test_out_of_order_delivery_is_sorted():
    view = []
    merge_history(view, [server_msg(1, "a", "m1", 0), server_msg(3, "a", "m3", 2)])

    merge_incoming(view, server_msg(2, "b", "m2", 1))

    assert [m.message_text for m in view] == ["m1", "m2", "m3"]


def test_drop_provisional_only_touches_provisional_entries():
    view = [LocalMessage.from_server(server_msg(1, "a", "m1"))]
    add_provisional(view, "tmp-1", "a", "oops", T0)

    assert drop_provisional(view, "tmp-1") is True
    assert drop_provisional(view, "tmp-1") is False
    assert [m.id for m in view] == [1]


def test_last_confirmed_id_ignores_provisional():
    view = []
    assert last_confirmed_id(view) is None

    merge_history(view, [server_msg(5, "a", "m1", 0), server_msg(7, "a", "m2", 1)])
    add_provisional(view, "tmp-1", "a", "pending", T0 + timedelta(seconds=5))

    assert last_confirmed_id(view) == 7


def test_last_confirmed_id_is_the_highest_id_even_with_skewed_clocks():
    view = []
    # id 9 는 시계가 늦은 서버에서 찍혀 sent_at 이 더 이름
    merge_history(view, [server_msg(8, "a", "m1", 5), server_msg(9, "b", "m2", 1)])

    assert [m.id for m in view] == [9, 8]
    assert last_confirmed_id(view) == 9
