import math
import threading
from typing import Optional, Sequence

Point = tuple[float, float]

FULL_START: Point = (0.0, 0.0)
FULL_END: Point = (1.0, 1.0)


def _as_point(p: Optional[Sequence[float]]) -> Optional[Point]:
    if p is None:
        return None
    try:
        x, y = float(p[0]), float(p[1])
    except (TypeError, ValueError, IndexError):
        return None
    if not (math.isfinite(x) and math.isfinite(y)):
        return None
    # A (0, 0) point counts as unset.
    if x == 0.0 and y == 0.0:
        return None
    return x, y


class RoiTracker:
    """Normalized region of interest shared with downstream stages.

    Invalid or null input resets to the full frame. Valid bounds are kept as
    given; ordering and clamping are the caller's job.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._start: Point = FULL_START
        self._end: Point = FULL_END

    def set_roi(self, start: Optional[Sequence[float]], end: Optional[Sequence[float]]) -> None:
        s, e = _as_point(start), _as_point(end)
        with self._lock:
            if s is None or e is None:
                self._start, self._end = FULL_START, FULL_END
            else:
                self._start, self._end = s, e

    def reset(self) -> None:
        self.set_roi(None, None)

    @property
    def bounds(self) -> tuple[Point, Point]:
        with self._lock:
            return self._start, self._end
