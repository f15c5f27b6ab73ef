from unittest.mock import patch

import numpy as np
import pytest

from field_pipeline.fp_types import ConfigError, Detection, Frame
from field_pipeline.services.calibration_cache import CalibrationCache
from field_pipeline.strategies import preprocess as preprocess_mod
from field_pipeline.strategies.detect_aruco import ArucoDetect, get_dict
from field_pipeline.strategies.localize_pnp import PnPLocalize
from field_pipeline.strategies.preprocess import FlipFrame, ResizeFrame
from field_pipeline.strategies.undistort import CachedUndistort


def _frame(image, undistorted=False):
    return Frame(1, 0.0, image, undistorted)


def test_resize_frame_changes_size():
    out = ResizeFrame(320, 240).apply(_frame(np.zeros((480, 640, 3), dtype=np.uint8)))
    assert out.size == (320, 240)


def test_resize_frame_skips_same_size():
    frame = _frame(np.zeros((240, 320, 3), dtype=np.uint8))
    with patch.object(preprocess_mod.cv2, "resize") as mock_resize:
        out = ResizeFrame(320, 240).apply(frame)
    assert out is frame
    mock_resize.assert_not_called()


@pytest.mark.parametrize(
    "mode,expected",
    [
        ("horizontal", [[2, 1], [4, 3]]),
        ("vertical", [[3, 4], [1, 2]]),
        ("both", [[4, 3], [2, 1]]),
    ],
)
def test_flip_frame_modes(mode, expected):
    image = np.array([[1, 2], [3, 4]], dtype=np.uint8)
    out = FlipFrame(mode).apply(_frame(image))
    assert out.image.tolist() == expected


def test_flip_frame_rejects_unknown_mode():
    with pytest.raises(ValueError):
        FlipFrame("sideways")


def test_cached_undistort_sanitizes_even_when_disabled(missing_calib):
    cache = CalibrationCache(missing_calib)
    frame = _frame(np.zeros((240, 320, 3), dtype=np.uint8))

    out = CachedUndistort(cache, enabled=False).apply(frame)

    assert out.undistorted is False
    assert cache.image_size == (320, 240)
    assert out.image is frame.image


def test_cached_undistort_marks_frame(missing_calib):
    cache = CalibrationCache(missing_calib)
    frame = _frame(np.zeros((240, 320, 3), dtype=np.uint8))
    out = CachedUndistort(cache, enabled=True).apply(frame)
    assert out.undistorted is True
    assert out.size == (320, 240)


def test_get_dict_accepts_opencv_names():
    assert get_dict("DICT_4X4_250") is not None
    with pytest.raises(ConfigError):
        get_dict("9x9_1")


def test_aruco_detect_finds_rendered_marker(marker_scene):
    image = marker_scene(640, 480, marker_id=7, side_px=120)
    dets = ArucoDetect("4x4_250", border_bits=2).detect(_frame(image))

    assert [d.marker_id for d in dets] == [7]
    assert dets[0].corners.shape == (4, 2)
    # Marker occupies [260, 380) x [180, 300)
    xs, ys = dets[0].corners[:, 0], dets[0].corners[:, 1]
    assert xs.min() == pytest.approx(260, abs=2)
    assert xs.max() == pytest.approx(380, abs=2)
    assert ys.min() == pytest.approx(180, abs=2)
    assert ys.max() == pytest.approx(300, abs=2)


def test_aruco_detect_params_follow_config():
    detector = ArucoDetect("4x4_50", border_bits=3, min_perimeter_rate=0.05)
    assert detector.params.markerBorderBits == 3
    assert detector.params.minMarkerPerimeterRate == pytest.approx(0.05)


def test_aruco_detect_extreme_downscale_keeps_one_pixel():
    image = np.full((480, 640, 3), 255, dtype=np.uint8)
    small, sx, sy = ArucoDetect(downscaling_factor=5000.0)._downscale(image)
    assert small.shape[:2] == (1, 1)
    assert (sx, sy) == (640.0, 480.0)
    assert ArucoDetect(downscaling_factor=5000.0).detect(_frame(image)) == []


def test_aruco_detect_empty_frame():
    image = np.full((480, 640, 3), 255, dtype=np.uint8)
    assert ArucoDetect().detect(_frame(image)) == []


def test_downscaled_detection_returns_full_resolution_corners(marker_scene):
    """Detecting at 1/2 scale and rescaling must match full-resolution corners."""
    image = marker_scene(1280, 720, marker_id=3, side_px=128, top_left=(400, 200))
    full = ArucoDetect(downscaling_factor=1.0).detect(_frame(image))
    half = ArucoDetect(downscaling_factor=2.0).detect(_frame(image))

    assert len(full) == 1 and len(half) == 1
    assert half[0].marker_id == full[0].marker_id == 3
    assert np.allclose(half[0].corners, full[0].corners, atol=2.5)


def test_pnp_localize_depth_from_rendered_marker(marker_scene, missing_calib):
    """0.05 m marker imaged 64 px wide with f = 1280 sits about 1 m away."""
    image = marker_scene(1280, 720, marker_id=5, side_px=64)
    frame = _frame(image)
    cache = CalibrationCache(missing_calib)
    cache.sanitize(frame.size)
    dets = ArucoDetect().detect(frame)

    poses = PnPLocalize(cache, 0.05).estimate(dets, frame)

    assert len(poses) == 1
    assert poses[0].tvec.shape == (3, 1)
    assert poses[0].tvec[2, 0] == pytest.approx(1.0, rel=0.05)
    assert abs(poses[0].tvec[0, 0]) < 0.01
    assert abs(poses[0].tvec[1, 0]) < 0.01


def test_pnp_localize_camera_model_branches(tmp_path):
    from field_pipeline.services.calib import save_calib

    path = tmp_path / "cam_calibration.yml"
    K = np.array([[2000.0, 0.0, 640.0], [0.0, 2000.0, 360.0], [0.0, 0.0, 1.0]])
    save_calib(str(path), K, np.array([[0.2, 0.0, 0.0, 0.0]]), (1280, 720))
    cache = CalibrationCache(str(path))
    cache.sanitize((1280, 720))
    loc = PnPLocalize(cache, 0.05)
    image = np.zeros((720, 1280, 3), dtype=np.uint8)

    K_raw, dist_raw = loc.camera_model(_frame(image, undistorted=False))
    assert K_raw[0, 0] == pytest.approx(2000.0)
    assert dist_raw.reshape(-1)[0] == pytest.approx(0.2)

    K_und, dist_und = loc.camera_model(_frame(image, undistorted=True))
    assert np.array_equal(K_und, [[1280, 0, 640], [0, 1280, 360], [0, 0, 1]])
    assert not np.any(dist_und)


def test_pnp_localize_returns_empty_without_detections(missing_calib):
    cache = CalibrationCache(missing_calib)
    cache.sanitize((64, 64))
    frame = _frame(np.zeros((64, 64, 3), dtype=np.uint8))
    assert PnPLocalize(cache, 0.05).estimate([], frame) == []


def test_pnp_localize_solves_each_detection(missing_calib):
    cache = CalibrationCache(missing_calib)
    cache.sanitize((640, 480))
    frame = _frame(np.zeros((480, 640, 3), dtype=np.uint8))
    square = np.array([[300, 220], [340, 220], [340, 260], [300, 260]], dtype=np.float32)
    dets = [Detection(1, square), Detection(1, square + 100)]

    poses = PnPLocalize(cache, 0.05).estimate(dets, frame)

    assert len(poses) == 2
    assert poses[0].tvec[2, 0] == pytest.approx(0.8, rel=0.01)
    assert poses[1].tvec[2, 0] == pytest.approx(0.8, rel=0.01)


def test_frame_properties():
    color = Frame(1, 0.0, np.zeros((48, 64, 3), dtype=np.uint8))
    gray = Frame(2, 0.0, np.zeros((48, 64), dtype=np.uint8))
    assert color.size == (64, 48)
    assert color.layout == "bgr"
    assert gray.layout == "gray"
