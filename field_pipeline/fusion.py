import math
from typing import Iterable, Optional

import numpy as np

from .fp_types import Detection, Marker, Pose


def build_marker(det: Detection, pose: Pose) -> Marker:
    corners = np.asarray(det.corners, dtype=np.float32).reshape(4, 2)
    cx, cy = corners.mean(axis=0)
    tvec = np.asarray(pose.tvec, dtype=np.float32).reshape(3)
    rvec = np.asarray(pose.rvec, dtype=np.float32).reshape(3)
    return Marker(det.marker_id, corners, (float(cx), float(cy), float(tvec[2])), rvec, tvec)


def select_collection_marker(markers: Iterable[Marker], collection_id: int) -> Optional[Marker]:
    """Closest instance of ``collection_id`` wins; ties keep the first seen.

    Farther copies of the same marker (a reflection, a printout in the
    background) are ignored, and so are instances whose pose failed (NaN
    depth). Returns None when no instance with a usable depth was detected.
    """
    chosen = None
    for marker in markers:
        if marker.marker_id != collection_id or not math.isfinite(marker.depth):
            continue
        if chosen is None or marker.depth < chosen.depth:
            chosen = marker
    return chosen
