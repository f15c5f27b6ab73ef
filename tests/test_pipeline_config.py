import json
import threading

import pytest

from field_pipeline.config import (
    ConfigError,
    ConfigStore,
    PipelineConfig,
    load_pipeline_config,
)


def test_defaults_are_valid():
    cfg = PipelineConfig().validate()
    assert cfg.aruco_dict == "4x4_250"
    assert cfg.marker_border_bits == 2
    assert cfg.min_marker_perimeter_rate == pytest.approx(0.10)
    assert cfg.max_backlog_sec == pytest.approx(0.1)
    assert cfg.input_size is None


def test_config_is_immutable():
    cfg = PipelineConfig()
    with pytest.raises(Exception):
        cfg.flip = "both"


@pytest.mark.parametrize(
    "changes",
    [
        {"flip": "diagonal"},
        {"processing_downscaling_factor": 0.5},
        {"collection_marker_size_m": 0.0},
        {"aruco_dict": "3x3_10"},
        {"marker_detection_method": "apriltag"},
        {"input_width": -1},
        {"marker_border_bits": 0},
        {"min_marker_perimeter_rate": 0.0},
    ],
)
def test_invalid_values_fail_validation(changes):
    with pytest.raises(ConfigError):
        PipelineConfig(**changes).validate()


def test_load_missing_file_gives_defaults(tmp_path):
    cfg = load_pipeline_config(tmp_path, "field")
    assert cfg.camera_id == "field"
    assert cfg.calibration_path == str(tmp_path / "field_calibration.yml")


def test_load_yaml(tmp_path):
    (tmp_path / "scene.yaml").write_text(
        "input_width: 640\n"
        "input_height: 480\n"
        "flip: Both\n"
        "undistort: true\n"
        "collection_marker_id: 12\n"
        "collection_marker_size_m: 0.08\n"
        "processing_downscaling_factor: 2\n"
        "unknown_key: 1\n",
        encoding="utf-8",
    )
    cfg = load_pipeline_config(tmp_path, "scene")
    assert cfg.input_size == (640, 480)
    assert cfg.flip == "both"
    assert cfg.undistort is True
    assert cfg.collection_marker_id == 12
    assert cfg.collection_marker_size_m == pytest.approx(0.08)
    assert cfg.processing_downscaling_factor == pytest.approx(2.0)


def test_load_json_with_string_bool(tmp_path):
    (tmp_path / "scene.json").write_text(json.dumps({"undistort": "false", "aruco_dict": "DICT_5X5_100"}))
    cfg = load_pipeline_config(tmp_path, "scene")
    assert cfg.undistort is False
    assert cfg.aruco_dict == "DICT_5X5_100"


def test_load_malformed_values_raise(tmp_path):
    (tmp_path / "scene.json").write_text(json.dumps({"collection_marker_id": "abc"}))
    with pytest.raises(ConfigError):
        load_pipeline_config(tmp_path, "scene")


def test_store_swaps_snapshots_and_bumps_generation(tmp_path):
    store = ConfigStore(PipelineConfig(camera_id="scene"), config_dir=tmp_path)
    first, gen0 = store.snapshot()

    store.update(flip="vertical")
    second, gen1 = store.snapshot()

    assert first.flip == "none"
    assert second.flip == "vertical"
    assert gen1 == gen0 + 1

    (tmp_path / "scene.json").write_text(json.dumps({"flip": "horizontal"}))
    store.load()
    assert store.current.flip == "horizontal"
    assert store.generation == gen1 + 1


def test_store_rejects_invalid_update():
    store = ConfigStore()
    with pytest.raises(ConfigError):
        store.update(processing_downscaling_factor=0.1)
    assert store.generation == 0


def test_store_load_without_dir():
    with pytest.raises(ConfigError):
        ConfigStore().load()


def test_concurrent_updates_keep_store_consistent():
    store = ConfigStore()

    def worker(mode):
        for _ in range(200):
            store.update(flip=mode)

    threads = [threading.Thread(target=worker, args=(m,)) for m in ("vertical", "both")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.generation == 400
    assert store.current.flip in ("vertical", "both")
