import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass
class GovernorStats:
    admitted: int
    dropped: int
    last_backlog: float


class PerformanceGovernor:
    """Admission control: drop a frame whose capture is too far behind ``now``.

    A frame is dropped when ``now - timestamp`` is strictly greater than the
    threshold. Dropped frames are gone; nothing is queued or retried.
    """

    def __init__(
        self,
        threshold_sec: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ):
        self.threshold_sec = threshold_sec
        self.clock = clock
        self.log = logger or logging.getLogger(__name__)
        self.admitted = 0
        self.dropped = 0
        self.last_backlog = 0.0
        self._lock = threading.Lock()

    def backlog(self, timestamp: float) -> float:
        return self.clock() - timestamp

    def admit(self, timestamp: float, threshold_sec: Optional[float] = None) -> bool:
        limit = self.threshold_sec if threshold_sec is None else threshold_sec
        backlog = self.backlog(timestamp)
        with self._lock:
            self.last_backlog = backlog
            if backlog > limit:
                self.dropped += 1
                drop = True
            else:
                self.admitted += 1
                drop = False
        if drop:
            self.log.debug("dropping frame ts=%.6f backlog=%.3fs > %.3fs", timestamp, backlog, limit)
        return not drop

    def stats(self) -> GovernorStats:
        with self._lock:
            return GovernorStats(self.admitted, self.dropped, self.last_backlog)
