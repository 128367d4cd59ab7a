from __future__ import annotations

import math

import numpy as np

from ..pm_types import Keypoint, PoseSample
from .base import PoseDetector

# Rest positions as fractions of (width, height).
_SKELETON = {
    "nose": (0.50, 0.20),
    "left_shoulder": (0.42, 0.32),
    "right_shoulder": (0.58, 0.32),
    "left_elbow": (0.38, 0.45),
    "right_elbow": (0.62, 0.45),
    "left_hip": (0.45, 0.58),
    "right_hip": (0.55, 0.58),
    "left_knee": (0.45, 0.75),
    "right_knee": (0.55, 0.75),
}


class SyntheticPoseDetector(PoseDetector):
    """Deterministic stand-in used for dry runs and tests.

    Produces one subject that sways slightly every frame and jumps sideways
    every ``jump_every`` frames so anomaly handling can be exercised without
    a model.
    """

    def __init__(self, jump_every: int = 90, score: float = 0.9):
        self.jump_every = jump_every
        self.score = score
        self.calls = 0
        self.disposed = False

    def name(self) -> str:
        return "synthetic"

    def estimate(
        self,
        image: np.ndarray,
        max_poses: int = 1,
        flip_horizontal: bool = False,
    ) -> list[PoseSample]:
        if self.disposed:
            raise RuntimeError("estimate() called on a disposed detector")
        self.calls += 1
        h, w = image.shape[:2]
        sway = 0.2 * math.sin(self.calls / 10.0)  # pixels, stays under the anomaly threshold
        jump = 0.25 * w if self.jump_every and self.calls % self.jump_every == 0 else 0.0

        keypoints = []
        for name, (fx, fy) in _SKELETON.items():
            x = fx * w + sway + jump
            if flip_horizontal:
                x = w - x
            keypoints.append(Keypoint(name, x, fy * h, 0.0, self.score))
        return [PoseSample(keypoints, score=self.score)][:max_poses]

    def dispose(self) -> None:
        self.disposed = True
