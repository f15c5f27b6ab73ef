from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Frame:
    idx: int
    timestamp: float  # seconds, same clock as the processor's "now"
    image: Any  # numpy array
    undistorted: bool = False

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def layout(self) -> str:
        if self.image.ndim == 2 or self.image.shape[2] == 1:
            return "gray"
        return "bgra" if self.image.shape[2] == 4 else "bgr"


@dataclass
class Detection:
    marker_id: int
    corners: Any  # (4,2) float32 ndarray, full-resolution pixels


@dataclass
class Pose:
    rvec: Any  # (3,1)
    tvec: Any  # (3,1)


@dataclass
class Marker:
    marker_id: int
    corners: Any  # (4,2) float32 ndarray
    center: tuple[float, float, float]  # corner centroid x/y, depth z
    rvec: Any  # (3,) float32
    tvec: Any  # (3,) float32

    @property
    def depth(self) -> float:
        return self.center[2]


@dataclass
class FieldData:
    """Output record emitted once per admitted frame."""

    timestamp: float
    processing_time: float
    input: Any
    undistorted: bool
    width: int
    height: int
    markers: list[Marker] = field(default_factory=list)
    collection_marker: Optional[Marker] = None
    valid_gaze_estimate: bool = False


class ConfigError(ValueError):
    """Invalid pipeline configuration."""
