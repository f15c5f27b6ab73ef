import cv2
import numpy as np

from ..fp_types import ConfigError, Detection, Frame

DICT_NAMES = {
    "4x4_50": cv2.aruco.DICT_4X4_50,
    "4x4_100": cv2.aruco.DICT_4X4_100,
    "4x4_250": cv2.aruco.DICT_4X4_250,
    "4x4_1000": cv2.aruco.DICT_4X4_1000,
    "5x5_50": cv2.aruco.DICT_5X5_50,
    "5x5_100": cv2.aruco.DICT_5X5_100,
    "5x5_250": cv2.aruco.DICT_5X5_250,
    "5x5_1000": cv2.aruco.DICT_5X5_1000,
    "6x6_50": cv2.aruco.DICT_6X6_50,
    "6x6_100": cv2.aruco.DICT_6X6_100,
    "6x6_250": cv2.aruco.DICT_6X6_250,
    "6x6_1000": cv2.aruco.DICT_6X6_1000,
    "7x7_50": cv2.aruco.DICT_7X7_50,
    "7x7_100": cv2.aruco.DICT_7X7_100,
    "7x7_250": cv2.aruco.DICT_7X7_250,
    "7x7_1000": cv2.aruco.DICT_7X7_1000,
}


def normalize_dict_name(name: str) -> str:
    key = (name or "").strip()
    if key.upper().startswith("DICT_"):
        key = key[5:]
    return key.lower()


def get_dict(name: str):
    """Resolve an ArUco dictionary by name ("4x4_250" or "DICT_4X4_250")."""
    key = normalize_dict_name(name)
    if key not in DICT_NAMES:
        raise ConfigError(f"Unknown ArUco dictionary: {name}")
    return cv2.aruco.getPredefinedDictionary(DICT_NAMES[key])


def make_params(border_bits: int = 2, min_perimeter_rate: float = 0.10):
    params = cv2.aruco.DetectorParameters()
    params.markerBorderBits = int(border_bits)
    params.minMarkerPerimeterRate = float(min_perimeter_rate)
    return params


class ArucoDetect:
    """
    Strategy: detect ArUco markers in a frame.

    With a downscaling factor k > 1 the search runs on a copy shrunk by k and
    the returned corners are scaled back by the actual resize ratio, so callers get
    full-resolution pixel coordinates. Lower ``min_perimeter_rate`` finds
    smaller (farther) markers at the cost of more false positives.
    Pose is estimated later by the Localize strategy.
    """

    def __init__(
        self,
        dict_name: str = "4x4_250",
        border_bits: int = 2,
        min_perimeter_rate: float = 0.10,
        downscaling_factor: float = 1.0,
    ):
        self.dictionary = get_dict(dict_name)
        self.params = make_params(border_bits, min_perimeter_rate)
        self.downscaling_factor = float(downscaling_factor)
        self._detector = cv2.aruco.ArucoDetector(self.dictionary, self.params)

    def _downscale(self, image):
        """Return the search image and the per-axis factors back to full size."""
        if self.downscaling_factor <= 1.0:
            return image, 1.0, 1.0
        h, w = image.shape[:2]
        # Never shrink below one pixel per axis.
        dw = max(1, int(round(w / self.downscaling_factor)))
        dh = max(1, int(round(h / self.downscaling_factor)))
        small = cv2.resize(image, (dw, dh), interpolation=cv2.INTER_AREA)
        return small, w / dw, h / dh

    def detect(self, f: Frame) -> list[Detection]:
        image, sx, sy = self._downscale(f.image)
        corners, ids, _rej = self._detector.detectMarkers(image)

        dets: list[Detection] = []
        if ids is not None and len(ids) > 0:
            scale = np.array([sx, sy], dtype=np.float32)
            for i, mid in enumerate(ids.flatten()):
                pts = np.asarray(corners[i], dtype=np.float32).reshape(4, 2) * scale
                dets.append(Detection(int(mid), pts))
        return dets
