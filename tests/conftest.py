import numpy as np
import pytest

from field_pipeline.config import ConfigStore, PipelineConfig
from field_pipeline.fp_types import Marker
from field_service.capture import render_marker_scene


@pytest.fixture
def missing_calib(tmp_path):
    """Path to a calibration file that does not exist."""
    return str(tmp_path / "nope_calibration.yml")


@pytest.fixture
def make_store(missing_calib):
    def _make(**overrides):
        overrides.setdefault("calibration_path", missing_calib)
        return ConfigStore(PipelineConfig(**overrides))

    return _make


@pytest.fixture
def marker_scene():
    return render_marker_scene


def make_marker(marker_id, depth, x=0.0, y=0.0):
    corners = np.array([[x, y], [x + 10, y], [x + 10, y + 10], [x, y + 10]], dtype=np.float32)
    return Marker(
        marker_id,
        corners,
        (x + 5.0, y + 5.0, depth),
        np.zeros(3, dtype=np.float32),
        np.array([0.0, 0.0, depth], dtype=np.float32),
    )


@pytest.fixture
def marker_factory():
    return make_marker
