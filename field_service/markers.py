#!/usr/bin/env python3
"""Print ArUco markers matching the detector settings of a camera config.

The border width must match ``marker_border_bits`` or the detector will not
decode the printed markers.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import cv2
import numpy as np

from field_pipeline.config import load_pipeline_config
from field_pipeline.strategies.detect_aruco import get_dict


def create_marker_image(
    marker_id: int,
    aruco_dict,
    size_px: int = 400,
    border_bits: int = 2,
    margin_px: int = 40,
) -> np.ndarray:
    """Marker with a white quiet zone of ``margin_px`` around it (grayscale)."""
    marker_img = cv2.aruco.generateImageMarker(aruco_dict, marker_id, size_px, borderBits=border_bits)
    if margin_px <= 0:
        return marker_img
    return cv2.copyMakeBorder(
        marker_img, margin_px, margin_px, margin_px, margin_px,
        cv2.BORDER_CONSTANT, value=255,
    )


def write_markers(
    ids: list[int],
    out_dir: str | Path,
    dict_name: str = "4x4_250",
    border_bits: int = 2,
    size_px: int = 400,
) -> list[Path]:
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    dictionary = get_dict(dict_name)
    paths = []
    for marker_id in ids:
        img = create_marker_image(marker_id, dictionary, size_px, border_bits)
        p = out / f"marker_{dict_name}_{marker_id:04d}.png"
        if not cv2.imwrite(str(p), img):
            raise RuntimeError(f"Failed to write {p}")
        paths.append(p)
    return paths


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Generate printable ArUco markers")
    parser.add_argument("ids", nargs="*", type=int, help="Marker ids (default: the collection marker)")
    parser.add_argument("--config-dir", default="config")
    parser.add_argument("--camera-id", default="field")
    parser.add_argument("--out", default="markers")
    parser.add_argument("--size", type=int, default=400, help="Marker side in pixels")
    args = parser.parse_args(argv)

    cfg = load_pipeline_config(args.config_dir, args.camera_id)
    ids = args.ids or [cfg.collection_marker_id]
    for p in write_markers(ids, args.out, cfg.aruco_dict, cfg.marker_border_bits, args.size):
        print(p)
    return 0


if __name__ == "__main__":
    sys.exit(main())
