import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class ScheduledJob:
    """A periodic callback on a daemon thread.

    ``cancel()`` only signals the thread; it never joins, so it is safe to
    call while holding locks the callback may also need. A call already in
    flight may still complete, so callbacks must tolerate running once
    after cancellation.
    """

    def __init__(self, interval: float, fn: Callable[[], None], name: str) -> None:
        self.interval = interval
        self._fn = fn
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> "ScheduledJob":
        self._thread.start()
        return self

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _run(self) -> None:
        while not self._cancelled.wait(self.interval):
            try:
                self._fn()
            except Exception:
                logger.exception("Scheduled job %s failed", self._thread.name)


class ThreadScheduler:
    """Clock used by recording sessions: one thread per periodic job."""

    def every(
        self, interval: float, fn: Callable[[], None], name: str = "job"
    ) -> ScheduledJob:
        return ScheduledJob(interval, fn, name=f"lecture-mate-{name}").start()
