from __future__ import annotations

import logging
from typing import Callable

import numpy as np

from ..config import DetectorConfig
from ..errors import DetectorConfigError
from .base import PoseDetector
from .mediapipe_detector import MediaPipePoseDetector
from .options import DetectorOptions, detector_options
from .synthetic import SyntheticPoseDetector

log = logging.getLogger(__name__)

DetectorFactory = Callable[[DetectorOptions, DetectorConfig], PoseDetector]

_FACTORIES: dict[tuple[str, str], DetectorFactory] = {
    ("blazepose", "mediapipe"): lambda opts, cfg: MediaPipePoseDetector(opts),
}


def register_detector_factory(model: str, runtime: str, factory: DetectorFactory) -> None:
    """Make ``model`` on ``runtime`` buildable, e.g. a MoveNet TFLite adapter."""
    _FACTORIES[(model, runtime)] = factory


def create_detector(config: DetectorConfig) -> PoseDetector:
    if config.runtime == "synthetic":
        try:
            return SyntheticPoseDetector(**config.options)
        except TypeError as exc:
            raise DetectorConfigError(f"Invalid synthetic detector options: {exc}") from exc

    opts = detector_options(config)
    factory = _FACTORIES.get((config.model, config.runtime))
    if factory is None:
        raise DetectorConfigError(
            f"No detector available for model {config.model!r} on runtime {config.runtime!r}"
        )
    detector = factory(opts, config)
    log.info("detector created: %s (%s)", detector.name(), opts)
    return detector


def warm_up(detector: PoseDetector, height: int, width: int, max_poses: int = 1) -> None:
    """Run one inference on a blank frame so the first real frame is not slow."""
    blank = np.zeros((height, width, 3), dtype=np.uint8)
    detector.estimate(blank, max_poses=max_poses, flip_horizontal=False)
