from __future__ import annotations

import json
import threading
from dataclasses import dataclass, asdict, fields, replace
from pathlib import Path
from typing import Any, Optional

from .fp_types import ConfigError
from .strategies.detect_aruco import DICT_NAMES, normalize_dict_name

FLIP_MODES = ("none", "horizontal", "vertical", "both")
DETECTION_METHODS = ("aruco", "none")
CONFIG_SUFFIXES = (".yaml", ".yml", ".json")


@dataclass(frozen=True)
class PipelineConfig:
    camera_id: str = "field"
    calibration_path: str = "config/field_calibration.yml"
    input_width: int = 0  # 0 keeps the native size
    input_height: int = 0
    flip: str = "none"
    marker_detection_method: str = "aruco"
    aruco_dict: str = "4x4_250"
    marker_border_bits: int = 2
    min_marker_perimeter_rate: float = 0.10
    processing_downscaling_factor: float = 1.0
    undistort: bool = False
    collection_marker_id: int = 0
    collection_marker_size_m: float = 0.05
    max_backlog_sec: float = 0.1

    @property
    def input_size(self) -> Optional[tuple[int, int]]:
        if self.input_width > 0 and self.input_height > 0:
            return self.input_width, self.input_height
        return None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def validate(self) -> "PipelineConfig":
        if self.input_width < 0 or self.input_height < 0:
            raise ConfigError("input_width/input_height must be >= 0")
        if self.flip not in FLIP_MODES:
            raise ConfigError(f"flip must be one of {FLIP_MODES}, got {self.flip!r}")
        if self.marker_detection_method not in DETECTION_METHODS:
            raise ConfigError(
                f"marker_detection_method must be one of {DETECTION_METHODS}, "
                f"got {self.marker_detection_method!r}"
            )
        if normalize_dict_name(self.aruco_dict) not in DICT_NAMES:
            raise ConfigError(f"Unknown ArUco dictionary: {self.aruco_dict}")
        if self.marker_border_bits < 1:
            raise ConfigError("marker_border_bits must be >= 1")
        if not 0.0 < self.min_marker_perimeter_rate <= 4.0:
            raise ConfigError("min_marker_perimeter_rate must be in (0, 4]")
        if self.processing_downscaling_factor < 1.0:
            raise ConfigError("processing_downscaling_factor must be >= 1")
        if self.collection_marker_size_m <= 0:
            raise ConfigError("collection_marker_size_m must be > 0")
        if self.max_backlog_sec <= 0:
            raise ConfigError("max_backlog_sec must be > 0")
        return self


def load_mapping(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "YAML config requested but PyYAML is not installed. "
                "Install with: pip install pyyaml"
            ) from exc
        with p.open("r", encoding="utf-8") as fp:
            raw = yaml.safe_load(fp) or {}
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a JSON/YAML object")
    return raw


def _coerce(name: str, value: Any, default: Any) -> Any:
    try:
        if isinstance(default, bool):
            if isinstance(value, str):
                return value.strip().lower() in {"1", "true", "yes", "on"}
            return bool(value)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        return str(value).strip().lower() if name in {"flip", "marker_detection_method"} else str(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for {name}: {value!r}") from exc


def config_from_mapping(raw: dict[str, Any], **defaults: Any) -> PipelineConfig:
    base = PipelineConfig(**defaults)
    values = {}
    for f in fields(PipelineConfig):
        if f.name in raw and raw[f.name] is not None:
            values[f.name] = _coerce(f.name, raw[f.name], getattr(base, f.name))
    return replace(base, **values).validate()


def find_config_file(config_dir: str | Path, camera_id: str) -> Optional[Path]:
    root = Path(config_dir)
    for suffix in CONFIG_SUFFIXES:
        candidate = root / f"{camera_id}{suffix}"
        if candidate.exists():
            return candidate
    return None


def default_calibration_path(config_dir: str | Path, camera_id: str) -> str:
    return str(Path(config_dir) / f"{camera_id}_calibration.yml")


def load_pipeline_config(config_dir: str | Path, camera_id: str) -> PipelineConfig:
    """Read the persisted settings for ``camera_id``.

    A missing file yields the defaults; a malformed one raises ConfigError.
    """
    defaults = {
        "camera_id": camera_id,
        "calibration_path": default_calibration_path(config_dir, camera_id),
    }
    path = find_config_file(config_dir, camera_id)
    if path is None:
        return PipelineConfig(**defaults).validate()
    return config_from_mapping(load_mapping(path), **defaults)


class ConfigStore:
    """Atomically swapped handle on the current PipelineConfig.

    Readers call ``snapshot()`` once per frame and keep that reference.
    Every swap bumps ``generation`` so consumers can tell a reload happened.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        config_dir: Optional[str | Path] = None,
    ):
        self.config_dir = config_dir
        self._lock = threading.Lock()
        self._config = (config or PipelineConfig()).validate()
        self._generation = 0

    @property
    def current(self) -> PipelineConfig:
        return self._config

    @property
    def generation(self) -> int:
        return self._generation

    def snapshot(self) -> tuple[PipelineConfig, int]:
        with self._lock:
            return self._config, self._generation

    def replace(self, config: PipelineConfig) -> PipelineConfig:
        config.validate()
        with self._lock:
            self._config = config
            self._generation += 1
        return config

    def update(self, **changes: Any) -> PipelineConfig:
        with self._lock:
            base = self._config
        return self.replace(replace(base, **changes))

    def load(self) -> PipelineConfig:
        if self.config_dir is None:
            raise ConfigError("ConfigStore has no config_dir to load from")
        return self.replace(load_pipeline_config(self.config_dir, self._config.camera_id))
