from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Optional

SUPPORTED_MODELS = ("posenet", "blazepose", "movenet")
SOURCE_TYPES = ("video", "camera", "synthetic")


@dataclass
class DetectorConfig:
    """Everything needed to (re)build a pose detector.

    Compared by value: the lifecycle manager swaps the live detector whenever
    the requested config differs from the current one.
    """

    model: str = "blazepose"
    backend: str = "mediapipe-gpu"  # "<runtime>-<device>", e.g. "tfjs-webgl"
    model_type: str = "full"  # lite/full/heavy, lightning/thunder, ...
    max_poses: int = 1
    score_threshold: float = 0.65  # overlay only; anomaly gating is fixed
    flags: dict[str, Any] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)

    @property
    def runtime(self) -> str:
        return self.backend.split("-")[0]

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class MonitorConfig:
    name: str = "monitor"
    source: str = "video"
    video_path: Optional[str] = None
    device: int | str = 0
    fps: int = 30
    width: int = 640
    height: int = 480
    max_frames: Optional[int] = None
    duration_sec: Optional[float] = None
    record_path: Optional[str] = None
    log_path: Optional[str] = None
    warm_up: bool = True
    render: bool = True
    mirror: bool = False
    detector: DetectorConfig = field(default_factory=DetectorConfig)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "MonitorConfig":
        for key, value in kwargs.items():
            if value is None:
                continue
            if hasattr(self, key):
                setattr(self, key, value)
            elif hasattr(self.detector, key):
                setattr(self.detector, key, value)
        return self


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        import yaml  # type: ignore
    except Exception as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "YAML config requested but PyYAML is not installed. "
            "Install with: pip install pyyaml"
        ) from exc
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config root must be a mapping")
    return data


def parse_detector_config(raw: Any) -> DetectorConfig:
    if raw is None:
        return DetectorConfig()
    if not isinstance(raw, dict):
        raise ValueError("detector must be a mapping")

    det = DetectorConfig()
    det.model = str(raw.get("model", det.model)).lower()
    if det.model not in SUPPORTED_MODELS:
        raise ValueError(
            f"Unsupported model {det.model!r}; expected one of {', '.join(SUPPORTED_MODELS)}"
        )
    det.backend = str(raw.get("backend", det.backend)).lower()
    det.model_type = str(raw.get("model_type", det.model_type)).lower()
    det.max_poses = int(raw.get("max_poses", det.max_poses))
    if det.max_poses < 1:
        raise ValueError("max_poses must be >= 1")
    det.score_threshold = float(raw.get("score_threshold", det.score_threshold))

    flags = raw.get("flags", {})
    if not isinstance(flags, dict):
        raise ValueError("detector.flags must be a mapping")
    det.flags = dict(flags)
    options = raw.get("options", {})
    if not isinstance(options, dict):
        raise ValueError("detector.options must be a mapping")
    det.options = dict(options)
    return det


def load_config(path: str | Path) -> MonitorConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON/YAML object")

    cfg = MonitorConfig()
    cfg.name = str(raw.get("name", cfg.name))
    cfg.source = str(raw.get("source", cfg.source)).lower()
    if cfg.source not in SOURCE_TYPES:
        raise ValueError(f"source must be one of {', '.join(SOURCE_TYPES)}")
    cfg.video_path = raw.get("video_path", cfg.video_path)
    if cfg.video_path is not None:
        cfg.video_path = str(cfg.video_path)
    cfg.device = raw.get("device", cfg.device)
    cfg.fps = int(raw.get("fps", cfg.fps))
    cfg.width = int(raw.get("width", cfg.width))
    cfg.height = int(raw.get("height", cfg.height))
    cfg.max_frames = raw.get("max_frames", cfg.max_frames)
    if cfg.max_frames is not None:
        cfg.max_frames = int(cfg.max_frames)
    cfg.duration_sec = raw.get("duration_sec", cfg.duration_sec)
    if cfg.duration_sec is not None:
        cfg.duration_sec = float(cfg.duration_sec)
    cfg.record_path = raw.get("record_path", cfg.record_path)
    cfg.log_path = raw.get("log_path", cfg.log_path)
    cfg.warm_up = bool(raw.get("warm_up", cfg.warm_up))
    cfg.render = bool(raw.get("render", cfg.render))
    cfg.mirror = bool(raw.get("mirror", cfg.mirror))
    cfg.detector = parse_detector_config(raw.get("detector"))
    return cfg
