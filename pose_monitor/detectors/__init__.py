"""Pose detector adapters.

Every model family is described by its own option bundle so a config can be
validated before anything heavy is loaded; ``create_detector`` turns a
``DetectorConfig`` into a live detector.
"""

from .base import PoseDetector
from .factory import create_detector, register_detector_factory, warm_up
from .options import (
    BlazePoseOptions,
    MoveNetOptions,
    PoseNetOptions,
    detector_options,
)

__all__ = [
    "PoseDetector",
    "create_detector",
    "register_detector_factory",
    "warm_up",
    "BlazePoseOptions",
    "MoveNetOptions",
    "PoseNetOptions",
    "detector_options",
]
