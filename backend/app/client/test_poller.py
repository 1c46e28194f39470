import threading

from app.client.poller import Poller


def test_stops_itself_when_fn_returns_truthy():
    calls = []
    done = threading.Event()

    def tick():
        calls.append(1)
        if len(calls) == 3:
            done.set()
            return True
        return False

    poller = Poller(0.01, tick, name="test").start()

    assert done.wait(2)
    poller._thread.join(2)
    assert len(calls) == 3
    assert poller.running is False


def test_failing_tick_does_not_kill_the_loop():
    calls = []
    done = threading.Event()

    def tick():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("flaky")
        done.set()
        return True

    poller = Poller(0.01, tick).start()

    assert done.wait(2)
    poller.stop()
    assert len(calls) == 2


def test_stop_before_first_tick():
    calls = []
    poller = Poller(60, lambda: calls.append(1)).start()

    poller.stop()

    assert poller.running is False
    assert calls == []
