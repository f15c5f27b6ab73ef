import cv2, numpy as np

from ..fp_types import Detection, Frame, Pose
from ..services.calib import synthetic_intrinsics
from ..services.calibration_cache import CalibrationCache


def marker_object_points(length: float) -> np.ndarray:
    half = length / 2.0
    # Same corner order as the detector: TL, TR, BR, BL.
    return np.array(
        [[-half, half, 0.0],
         [half, half, 0.0],
         [half, -half, 0.0],
         [-half, -half, 0.0]],
        dtype=np.float32,
    )


class PnPLocalize:
    def __init__(self, cache: CalibrationCache, marker_length_m: float):
        self.cache, self.L = cache, marker_length_m
        self._obj = marker_object_points(marker_length_m)

    def camera_model(self, f: Frame):
        # Undistorted frames already had the lens model removed by the remap;
        # solve against a plain pinhole of the processed size instead.
        if f.undistorted:
            return synthetic_intrinsics(f.size)
        return self.cache.camera_matrix, self.cache.dist_coeffs

    def estimate(self, detections: list[Detection], f: Frame) -> list[Pose]:
        poses = []
        if self.L <= 0 or not detections: return poses
        K, dist = self.camera_model(f)
        for det in detections:
            img_pts = np.asarray(det.corners, dtype=np.float32).reshape(4, 2)
            ok, rvec, tvec = cv2.solvePnP(self._obj, img_pts, K, dist, flags=cv2.SOLVEPNP_IPPE_SQUARE)
            if not ok:
                rvec = np.full((3, 1), np.nan)
                tvec = np.full((3, 1), np.nan)
            poses.append(Pose(rvec.reshape(3, 1), tvec.reshape(3, 1)))
        return poses
