from __future__ import annotations

from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Optional

from field_pipeline.config import ConfigError, load_mapping

SOURCES = ("synthetic", "device", "file", "external")


@dataclass
class ServiceConfig:
    camera_id: str = "field"
    config_dir: str = "config"
    source: str = "device"  # "device", "file", "synthetic", "external" (frames via submit())
    device: int | str = 0
    video_path: Optional[str] = None
    fps: int = 30
    width: int = 1280
    height: int = 720
    session_root: str = "data/sessions"
    duration_sec: float = 0.0  # 0 runs until stopped or the source ends
    max_frames: Optional[int] = None
    queue_size: int = 4
    write_csv: bool = True
    save_frames: bool = False

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "ServiceConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self

    def validate(self) -> "ServiceConfig":
        if self.source not in SOURCES:
            raise ConfigError(f"source must be one of {SOURCES}, got {self.source!r}")
        if self.source == "file" and not self.video_path:
            raise ConfigError("source 'file' needs video_path")
        if self.queue_size < 1:
            raise ConfigError("queue_size must be >= 1")
        return self


def load_service_config(path: str | Path) -> ServiceConfig:
    raw = load_mapping(path)

    cfg = ServiceConfig()
    cfg.camera_id = str(raw.get("camera_id", cfg.camera_id))
    cfg.config_dir = str(raw.get("config_dir", cfg.config_dir))
    cfg.source = str(raw.get("source", cfg.source))
    cfg.device = raw.get("device", cfg.device)
    if isinstance(cfg.device, str) and cfg.device.isdigit():
        cfg.device = int(cfg.device)
    cfg.video_path = raw.get("video_path", cfg.video_path)
    cfg.fps = int(raw.get("fps", cfg.fps))
    cfg.width = int(raw.get("width", cfg.width))
    cfg.height = int(raw.get("height", cfg.height))
    cfg.session_root = str(raw.get("session_root", cfg.session_root))
    cfg.duration_sec = float(raw.get("duration_sec", cfg.duration_sec))
    cfg.max_frames = raw.get("max_frames", cfg.max_frames)
    if cfg.max_frames is not None:
        cfg.max_frames = int(cfg.max_frames)
    cfg.queue_size = int(raw.get("queue_size", cfg.queue_size))
    cfg.write_csv = bool(raw.get("write_csv", cfg.write_csv))
    cfg.save_frames = bool(raw.get("save_frames", cfg.save_frames))
    return cfg.validate()
