from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

PANEL_UPDATE_SECONDS = 1.0


@dataclass
class InferenceStatsState:
    latency_sum: float = 0.0
    count: int = 0
    last_flush: float = 0.0


class InferenceStatsTracker:
    """Averages inference latency and turns it into an FPS figure.

    Only the time spent inside the detector counts; capture and rendering are
    excluded.
    """

    def __init__(
        self,
        flush_interval: float = PANEL_UPDATE_SECONDS,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.flush_interval = flush_interval
        self.clock = clock
        self.state = InferenceStatsState()

    def begin(self) -> float:
        return self.clock()

    def end(self, token: Optional[float]) -> float:
        if token is None:
            raise ValueError("end() called without a matching begin()")
        elapsed = self.clock() - token
        self.state.latency_sum += elapsed
        self.state.count += 1
        return elapsed

    def maybe_flush(self, now: float) -> Optional[float]:
        s = self.state
        if s.count == 0 or now - s.last_flush < self.flush_interval:
            return None
        average = s.latency_sum / s.count
        fps = 1.0 / average if average > 0 else float("inf")
        s.latency_sum = 0.0
        s.count = 0
        s.last_flush = now
        return fps
