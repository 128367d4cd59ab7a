from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .pm_types import AnomalyEvent, Classification, DisplayState

ANOMALY_DISPLAY_DURATION = 0.5  # seconds an anomaly message stays up
UPDATE_INTERVAL = 0.010  # minimum spacing between routine messages

ANOMALY_LABEL = "Anomaly detected"
NORMAL_LABEL = "No significant movement detected"


@dataclass(frozen=True)
class RenderableMessage:
    std_dev: float
    mean: float
    label: str
    classification: Classification

    @classmethod
    def from_event(cls, event: AnomalyEvent) -> "RenderableMessage":
        label = ANOMALY_LABEL if event.is_anomaly else NORMAL_LABEL
        return cls(event.std_dev, event.mean, label, event.classification)

    def lines(self) -> list[str]:
        return [
            f"The standard deviation is: {self.std_dev:.2f}",
            f"The mean of the vector is: {self.mean:.2f}",
            f"Patient state: {self.label}",
        ]

    def text(self) -> str:
        return "\n".join(self.lines())


class DisplayArbiter:
    """Chooses at most one message per tick.

    Anomalies are surfaced immediately. Routine status is held back for
    ``anomaly_display_duration`` after the last anomaly and throttled to one
    message per ``update_interval``.
    """

    def __init__(
        self,
        anomaly_display_duration: float = ANOMALY_DISPLAY_DURATION,
        update_interval: float = UPDATE_INTERVAL,
    ):
        self.anomaly_display_duration = anomaly_display_duration
        self.update_interval = update_interval

    def decide(
        self,
        events: Sequence[AnomalyEvent],
        now: float,
        state: DisplayState,
    ) -> Optional[RenderableMessage]:
        anomalies = [e for e in events if e.is_anomaly]
        if anomalies:
            state.last_anomaly_time = now
            return RenderableMessage.from_event(anomalies[-1])

        if not events:
            return None
        if now - state.last_anomaly_time <= self.anomaly_display_duration:
            return None
        if now - state.last_update_time <= self.update_interval:
            return None

        # Only the first routine event can pass the throttle within one tick.
        state.last_update_time = now
        return RenderableMessage.from_event(events[0])
