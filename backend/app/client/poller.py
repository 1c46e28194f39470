# app/client/poller.py
import logging
import threading

logger = logging.getLogger(__name__)


class Poller:
    """
    interval 마다 fn() 을 호출하는 백그라운드 루프.
    fn 이 truthy 를 반환하면 스스로 종료, stop() 으로도 즉시 종료.
    """

    def __init__(self, interval: float, fn, name: str = "poller"):
        self.interval = interval
        self.fn = fn
        self.name = name
        self._stop = threading.Event()
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def start(self) -> "Poller":
        if self._thread is not None:
            return self
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        thread = self._thread
        # tick 안에서 자기 자신을 stop 하는 경우 join 하면 안 됨
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self):
        while not self._stop.wait(self.interval):
            try:
                done = self.fn()
            except Exception:
                # 한 번 실패해도 다음 tick 에서 다시 시도
                logger.exception("%s tick failed", self.name)
                continue
            if done:
                self._stop.set()
                break
