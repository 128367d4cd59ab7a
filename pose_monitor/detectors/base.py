from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from ..pm_types import PoseSample


class PoseDetector(ABC):
    """Model adapter interface.

    Implementations take a BGR image (H,W,3 uint8) and return one PoseSample
    per detected subject, keypoints in pixel coordinates.
    """

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def estimate(
        self,
        image: np.ndarray,
        max_poses: int = 1,
        flip_horizontal: bool = False,
    ) -> list[PoseSample]: ...

    @abstractmethod
    def dispose(self) -> None: ...
