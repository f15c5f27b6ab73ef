from pathlib import Path
from typing import Tuple

import cv2
import numpy as np


class CalibrationError(ValueError):
    pass


def load_calib(path: str) -> Tuple[np.ndarray, np.ndarray, tuple[int, int]]:
    if not Path(path).exists():
        raise FileNotFoundError(f"Calibration not found: {path}")
    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
    try:
        if not fs.isOpened():
            raise CalibrationError(f"Cannot open calibration file: {path}")
        K = fs.getNode("camera_matrix").mat()
        dist = fs.getNode("dist_coeffs").mat()
        w = int(fs.getNode("image_width").real())
        h = int(fs.getNode("image_height").real())
    finally:
        fs.release()
    if K is None or dist is None or K.shape != (3, 3) or dist.size == 0:
        raise CalibrationError(f"Calibration file lacks camera_matrix/dist_coeffs: {path}")
    if w <= 0 or h <= 0:
        raise CalibrationError(f"Calibration file lacks image size: {path}")
    return K.astype(np.float64), dist.astype(np.float64), (w, h)


def save_calib(path: str, K, dist, size: tuple[int, int]) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_WRITE)
    fs.write("camera_matrix", np.asarray(K, dtype=np.float64))
    fs.write("dist_coeffs", np.asarray(dist, dtype=np.float64).reshape(1, -1))
    fs.write("image_width", int(size[0]))
    fs.write("image_height", int(size[1]))
    fs.release()


def synthetic_intrinsics(size: tuple[int, int]) -> Tuple[np.ndarray, np.ndarray]:
    """Pinhole model with f = width, principal point at the image center, no distortion."""
    w, h = size
    K = np.array(
        [[w, 0.0, 0.5 * w],
         [0.0, w, 0.5 * h],
         [0.0, 0.0, 1.0]],
        dtype=np.float64,
    )
    dist = np.zeros((1, 4), dtype=np.float64)
    return K, dist


def same_aspect(a: tuple[int, int], b: tuple[int, int]) -> bool:
    return a[0] * b[1] == a[1] * b[0]


def rescale_intrinsics(K, from_size: tuple[int, int], to_size: tuple[int, int]) -> np.ndarray:
    rx = from_size[0] / float(to_size[0])
    ry = from_size[1] / float(to_size[1])
    out = np.array(K, dtype=np.float64, copy=True)
    out[0, 0] /= rx
    out[0, 2] /= rx
    out[1, 1] /= ry
    out[1, 2] /= ry
    return out
