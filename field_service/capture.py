import time
import re
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import cv2
import numpy as np

from field_pipeline.strategies.detect_aruco import get_dict

TimedImage = tuple[float, np.ndarray]


class BaseCapture(ABC):
    """Acquisition side of the input channel: yields (timestamp, image) pairs.

    Timestamps come from ``clock``, which must be the processor's clock.
    """

    clock: Callable[[], float] = staticmethod(time.monotonic)

    @abstractmethod
    def start(self) -> None: ...

    @abstractmethod
    def next_frame(self) -> Optional[TimedImage]: ...

    @abstractmethod
    def stop(self) -> None: ...


class USBOpenCVCapture(BaseCapture):
    def __init__(self, device: int | str, fps: int, width: int, height: int):
        self.device = device
        self.fps = fps
        self.width = width
        self.height = height
        self.cap: Any = None
        self.idx = 0

    def start(self) -> None:
        if isinstance(self.device, int):
            self.cap = cv2.VideoCapture(self.device, cv2.CAP_V4L2)
        else:
            dev_str = str(self.device)
            match = re.match(r"^/dev/video(\d+)$", dev_str)
            if match:
                dev_idx = int(match.group(1))
                self.cap = cv2.VideoCapture(dev_idx, cv2.CAP_V4L2)
            else:
                self.cap = cv2.VideoCapture(dev_str)

        self.cap.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*"MJPG"))
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self.cap.set(cv2.CAP_PROP_FPS, self.fps)

        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open camera: {self.device}")

    def next_frame(self) -> Optional[TimedImage]:
        ok, img = self.cap.read()
        if not ok:
            return None
        self.idx += 1
        return self.clock(), img

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class VideoFileCapture(BaseCapture):
    """Replays a recorded video; ``next_frame`` returns None at the end."""

    def __init__(self, path: str, fps: int = 0):
        self.path = path
        self.fps = fps
        self.cap: Any = None
        self.idx = 0
        self._last = 0.0

    def start(self) -> None:
        self.cap = cv2.VideoCapture(str(self.path))
        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video: {self.path}")
        self._last = time.monotonic()

    def next_frame(self) -> Optional[TimedImage]:
        if self.fps > 0:
            wait = max(0.0, (1.0 / self.fps) - (time.monotonic() - self._last))
            if wait > 0:
                time.sleep(wait)
        self._last = time.monotonic()
        ok, img = self.cap.read()
        if not ok:
            return None
        self.idx += 1
        return self.clock(), img

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


def render_marker_scene(
    width: int,
    height: int,
    marker_id: int,
    side_px: int,
    dict_name: str = "4x4_250",
    border_bits: int = 2,
    top_left: Optional[tuple[int, int]] = None,
) -> np.ndarray:
    """White BGR canvas with one marker pasted at ``top_left`` (default centered)."""
    canvas = np.full((height, width, 3), 255, dtype=np.uint8)
    marker = cv2.aruco.generateImageMarker(get_dict(dict_name), marker_id, side_px, borderBits=border_bits)
    if top_left is None:
        top_left = ((width - side_px) // 2, (height - side_px) // 2)
    x, y = top_left
    canvas[y:y + side_px, x:x + side_px] = cv2.cvtColor(marker, cv2.COLOR_GRAY2BGR)
    return canvas


class SyntheticCapture(BaseCapture):
    def __init__(self, fps: int, width: int, height: int, scene: Optional[np.ndarray] = None):
        self.fps = fps
        self.width = width
        self.height = height
        self.scene = scene
        self.idx = 0
        self._last = 0.0

    def start(self) -> None:
        self._last = time.monotonic()

    def next_frame(self) -> Optional[TimedImage]:
        now = time.monotonic()
        if self.fps > 0:
            wait = max(0.0, (1.0 / self.fps) - (now - self._last))
            if wait > 0:
                time.sleep(wait)
        self._last = time.monotonic()
        self.idx += 1
        if self.scene is not None:
            img = self.scene.copy()
        else:
            img = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        return self.clock(), img

    def stop(self) -> None:
        return None
