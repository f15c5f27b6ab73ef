"""Camera intrinsics and undistortion maps, recomputed lazily per frame size."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Optional

import cv2
import numpy as np

from .calib import CalibrationError, load_calib, rescale_intrinsics, same_aspect, synthetic_intrinsics


class CacheState(Enum):
    STALE = "stale"
    VALID = "valid"


class CalibrationCache:
    """
    Owns the camera matrix, distortion coefficients and rectification maps.

    ``sanitize(size)`` is the single entry point: it returns immediately when
    the cache is valid for ``size``, otherwise it reloads the calibration
    file (or synthesizes a pinhole model) and rebuilds the maps.
    ``invalidate()`` forces the next ``sanitize`` to recompute.
    """

    def __init__(self, calibration_path: Optional[str], logger: Optional[logging.Logger] = None):
        self.calibration_path = calibration_path
        self.log = logger or logging.getLogger(__name__)
        self.camera_matrix: Optional[np.ndarray] = None
        self.dist_coeffs: Optional[np.ndarray] = None
        self.image_size: Optional[tuple[int, int]] = None
        self.map1: Optional[np.ndarray] = None
        self.map2: Optional[np.ndarray] = None
        self.synthetic = False
        self.recomputations = 0
        self._force = False
        self._lock = threading.Lock()

    @property
    def state(self) -> CacheState:
        if self._force or self.map1 is None or self.map2 is None:
            return CacheState.STALE
        return CacheState.VALID

    def invalidate(self, calibration_path: Optional[str] = None) -> None:
        with self._lock:
            if calibration_path is not None:
                self.calibration_path = calibration_path
            self._force = True

    def _maps_empty(self) -> bool:
        return self.map1 is None or self.map2 is None or self.map1.size == 0

    def sanitize(self, size: tuple[int, int]) -> bool:
        """Make the cache valid for ``size``; returns True if it recomputed."""
        size = (int(size[0]), int(size[1]))
        with self._lock:
            force, self._force = self._force, False
        if not force and size == self.image_size and not self._maps_empty():
            return False

        K, dist = self._intrinsics_for(size)
        if np.any(dist):
            # alpha=1 keeps every source pixel (no cropping).
            new_K, _roi = cv2.getOptimalNewCameraMatrix(K, dist, size, 1, size)
        else:
            new_K = K
        self.map1, self.map2 = cv2.initUndistortRectifyMap(K, dist, None, new_K, size, cv2.CV_16SC2)
        self.camera_matrix, self.dist_coeffs, self.image_size = K, dist, size
        self.recomputations += 1
        return True

    def _intrinsics_for(self, size: tuple[int, int]):
        stored = None
        if self.calibration_path:
            try:
                stored = load_calib(self.calibration_path)
            except (FileNotFoundError, CalibrationError, cv2.error) as exc:
                self.log.info("Calibration unavailable (%s)", exc)

        if stored is not None and same_aspect(stored[2], size):
            K, dist, stored_size = stored
            self.log.info("Found intrinsic parameters for %dx%d, using them at %dx%d", *stored_size, *size)
            self.synthetic = False
            return rescale_intrinsics(K, stored_size, size), dist

        if stored is not None:
            self.log.info(
                "Calibration size %dx%d does not match aspect of %dx%d",
                *stored[2], *size,
            )
        self.log.info("No valid intrinsic parameters available, using synthetic pinhole model")
        self.synthetic = True
        return synthetic_intrinsics(size)

    def undistort(self, image):
        return cv2.remap(image, self.map1, self.map2, cv2.INTER_LINEAR)
