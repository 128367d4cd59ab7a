from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

GATED_KEYPOINTS = ("left_shoulder", "right_shoulder", "left_hip", "right_hip", "nose")


class Classification(str, Enum):
    ANOMALY = "anomaly"
    NORMAL = "normal"


@dataclass
class Frame:
    idx: int
    ts: float
    image: Any  # numpy array


@dataclass
class Keypoint:
    name: str
    x: float
    y: float
    z: float = 0.0
    score: float = 0.0


@dataclass
class PoseSample:
    keypoints: list[Keypoint] = field(default_factory=list)
    score: Optional[float] = None

    def get(self, name: str) -> Optional[Keypoint]:
        for kp in self.keypoints:
            if kp.name == name:
                return kp
        return None


@dataclass
class AnomalyEvent:
    std_dev: float
    mean: float
    classification: Classification
    timestamp: float
    keypoint: str = ""

    @property
    def is_anomaly(self) -> bool:
        return self.classification is Classification.ANOMALY


class DispersionState(dict):
    """Last dispersion value seen per keypoint name. Missing names read as 0."""

    def last(self, name: str) -> float:
        return self.get(name, 0.0)


@dataclass
class DisplayState:
    last_anomaly_time: float = 0.0
    last_update_time: float = 0.0
