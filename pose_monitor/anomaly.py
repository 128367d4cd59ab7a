"""Per-keypoint dispersion tracking.

Each gated keypoint is reduced to the population standard deviation of its
absolute per-axis coordinates. A sample is flagged when that value moves by
at least ``THRESHOLD`` relative to the last value stored for the same
keypoint name.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

import numpy as np

from .pm_types import (
    GATED_KEYPOINTS,
    AnomalyEvent,
    Classification,
    DispersionState,
    PoseSample,
)

THRESHOLD = 0.65
MIN_SCORE = 0.7

log = logging.getLogger(__name__)


def calculate_standard_deviation(values: Sequence[float]) -> float:
    return float(np.std(np.asarray(values, dtype=np.float64)))


def calculate_mean(values: Sequence[float]) -> float:
    return float(np.mean(np.asarray(values, dtype=np.float64)))


def classify(std_dev: float, last_std_dev: float, threshold: float = THRESHOLD) -> Classification:
    if abs(std_dev - last_std_dev) >= threshold:
        return Classification.ANOMALY
    return Classification.NORMAL


class AnomalyDetector:
    def __init__(
        self,
        keypoints: Iterable[str] = GATED_KEYPOINTS,
        threshold: float = THRESHOLD,
        min_score: float = MIN_SCORE,
        logger: Optional[logging.Logger] = None,
    ):
        self.keypoints = frozenset(keypoints)
        self.threshold = threshold
        self.min_score = min_score
        self.logger = logger or log

    def observe(
        self,
        poses: Sequence[PoseSample],
        now: float,
        state: DispersionState,
    ) -> list[AnomalyEvent]:
        events: list[AnomalyEvent] = []
        for pose in poses:
            for kp in pose.keypoints:
                if kp.name not in self.keypoints or not kp.score > self.min_score:
                    continue

                norms = np.abs(np.array([kp.x, kp.y, kp.z], dtype=np.float64))
                std_dev = calculate_standard_deviation(norms)
                mean = calculate_mean(norms)

                label = classify(std_dev, state.last(kp.name), self.threshold)
                # Baseline always follows the latest sample, anomalous or not.
                state[kp.name] = std_dev

                if label is Classification.ANOMALY:
                    self.logger.info(
                        "anomaly detected keypoint=%s std=%.3f mean=%.3f",
                        kp.name, std_dev, mean,
                    )
                events.append(AnomalyEvent(std_dev, mean, label, now, kp.name))
        return events
