from ..fp_types import Frame
from ..services.calibration_cache import CalibrationCache
from .preprocess import PreprocessStrategy


class CachedUndistort(PreprocessStrategy):
    """Sanitize the calibration cache for the frame size, then remap if enabled.

    The cache is sanitized even when undistortion is off, since pose
    estimation on distorted frames reads its intrinsics.
    """

    def __init__(self, cache: CalibrationCache, enabled: bool = True):
        self.cache = cache
        self.enabled = enabled

    def apply(self, f: Frame) -> Frame:
        self.cache.sanitize(f.size)
        if not self.enabled:
            return Frame(f.idx, f.timestamp, f.image, False)
        return Frame(f.idx, f.timestamp, self.cache.undistort(f.image), True)
