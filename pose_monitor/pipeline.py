"""Per-frame driver.

One asyncio task runs every tick to completion before the next one is
scheduled: wait for the frame clock, reconcile a pending detector swap,
check for end of stream, run inference, feed anomaly detection and display
arbitration, then render.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .anomaly import AnomalyDetector
from .backend import BackendConfigurator
from .capture import BaseCapture, SyntheticCapture, USBOpenCVCapture, VideoFileCapture
from .config import DetectorConfig, MonitorConfig
from .detectors import warm_up
from .display import DisplayArbiter
from .errors import DetectorSwapError, PipelineSetupError
from .lifecycle import DetectorLifecycleManager
from .logging_utils import setup_logger
from .output import (
    DisplaySink,
    LogDisplay,
    LogStatsPanel,
    NullRenderer,
    OverlayRenderer,
    Renderer,
    StatsSink,
    VideoRecorder,
)
from .pm_types import DispersionState, DisplayState
from .stats import InferenceStatsTracker

FPS_PANEL_MAX = 120


@dataclass
class PipelineSummary:
    frames_processed: int
    anomalies: int
    messages_shown: int
    swaps: int
    avg_fps: float
    errors: int
    halted: bool = False
    error: Optional[str] = None


class FrameClock:
    """Fixed-rate tick source standing in for a display refresh callback.

    ``schedule()`` arms exactly one pending tick; ``cancel()`` drops it and
    wakes any waiter with ``False``.
    """

    def __init__(self, fps: float):
        self.interval = 1.0 / fps if fps and fps > 0 else 0.0
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tick: Optional[asyncio.Future] = None
        self._last: Optional[float] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        loop = asyncio.get_running_loop()
        self.cancel()
        self._tick = loop.create_future()
        delay = 0.0
        if self._last is not None:
            delay = max(0.0, self._last + self.interval - loop.time())
        self._handle = loop.call_later(delay, self._fire, loop)

    def _fire(self, loop: asyncio.AbstractEventLoop) -> None:
        self._handle = None
        self._last = loop.time()
        if self._tick is not None and not self._tick.done():
            self._tick.set_result(True)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._tick is not None and not self._tick.done():
            self._tick.set_result(False)

    async def wait(self) -> bool:
        if self._tick is None:
            return False
        tick = self._tick
        try:
            return await tick
        finally:
            if self._tick is tick:
                self._tick = None


def build_capture(config: MonitorConfig) -> BaseCapture:
    if config.source == "synthetic":
        return SyntheticCapture(config.fps, config.width, config.height, config.max_frames)
    if config.source == "camera":
        return USBOpenCVCapture(config.device, config.fps, config.width, config.height)
    if not config.video_path:
        raise ValueError("source 'video' requires video_path")
    return VideoFileCapture(config.video_path)


class FramePipeline:
    def __init__(
        self,
        config: MonitorConfig,
        capture: BaseCapture,
        lifecycle: DetectorLifecycleManager,
        display: DisplaySink,
        stats_panel: StatsSink,
        renderer: Renderer,
        recorder: Optional[VideoRecorder] = None,
        logger: Optional[logging.Logger] = None,
        clock: Optional[FrameClock] = None,
        now: Callable[[], float] = time.time,
    ):
        self.config = config
        self.capture = capture
        self.lifecycle = lifecycle
        self.display = display
        self.stats_panel = stats_panel
        self.renderer = renderer
        self.recorder = recorder
        self.logger = logger or setup_logger(config.name)
        self.clock = clock or FrameClock(config.fps)
        self.now = now

        self.anomaly_detector = AnomalyDetector(logger=self.logger)
        self.arbiter = DisplayArbiter()
        self.stats = InferenceStatsTracker()
        self.dispersion = DispersionState()
        self.display_state = DisplayState()

        self.frames = 0
        self.anomalies = 0
        self.messages = 0
        self.errors = 0
        self.last_fps: Optional[float] = None
        self._stopping = False
        self._t0: Optional[float] = None

        self.lifecycle.on_swap_start(self.clock.cancel)

    @classmethod
    def from_config(cls, config: MonitorConfig, logger: Optional[logging.Logger] = None) -> "FramePipeline":
        logger = logger or setup_logger(config.name)
        backend = BackendConfigurator()
        lifecycle = DetectorLifecycleManager(config.detector, backend.configure, logger=logger)
        recorder = VideoRecorder(config.record_path) if config.record_path else None
        if config.render:
            renderer: Renderer = OverlayRenderer(config.detector.score_threshold, recorder)
        else:
            renderer = NullRenderer()
        return cls(
            config,
            build_capture(config),
            lifecycle,
            LogDisplay(logger),
            LogStatsPanel(logger),
            renderer,
            recorder=recorder,
            logger=logger,
        )

    def stop(self) -> None:
        """Stop after the current tick. An in-flight inference still completes."""
        self._stopping = True
        self.clock.cancel()

    def request_reconfigure(self, config: Optional[DetectorConfig] = None, **changed: Any) -> bool:
        return self.lifecycle.request(config, **changed)

    def _limit_reached(self) -> bool:
        if self.config.max_frames is not None and self.frames >= self.config.max_frames:
            return True
        if self.config.duration_sec and self._t0 is not None:
            return (time.time() - self._t0) >= self.config.duration_sec
        return False

    def _end_of_stream(self) -> None:
        if self.recorder is not None:
            self.recorder.stop()
        self.display.clear()
        self.renderer.clear()
        self.renderer.reveal()
        self.logger.info("end of stream after %d frames", self.frames)

    async def _prepare(self) -> None:
        if not self.lifecycle.has_detector:
            await self.lifecycle.start()
        try:
            self.capture.start()

            if self.config.warm_up:
                self.display.status("Warming up model.")
                height = self.capture.height or self.config.height
                width = self.capture.width or self.config.width
                await asyncio.to_thread(
                    warm_up, self.lifecycle.detector, height, width, self.lifecycle.config.max_poses
                )
                self.display.status("Model is warmed up.")

            if self.recorder is not None:
                size = (self.capture.width or self.config.width, self.capture.height or self.config.height)
                self.recorder.start(size, self.capture.fps or self.config.fps)
        except Exception as exc:
            raise PipelineSetupError(f"Pipeline setup failed: {exc}") from exc

    async def step(self) -> bool:
        """Run one tick. Returns False once the stream has ended."""
        await self.lifecycle.reconcile()

        if self.capture.ended or self._limit_reached():
            self._end_of_stream()
            return False

        frame = self.capture.next_frame()
        if frame is None:
            if self.capture.ended:
                self._end_of_stream()
                return False
            self.errors += 1
            self.logger.debug("no frame available")
            return True

        detector = self.lifecycle.detector
        det_cfg = self.lifecycle.config

        # FPS only counts the time spent inside the detector.
        token = self.stats.begin()
        poses = await asyncio.to_thread(
            detector.estimate, frame.image, det_cfg.max_poses, self.config.mirror
        )
        self.stats.end(token)
        fps = self.stats.maybe_flush(self.stats.clock())
        if fps is not None:
            self.last_fps = fps
            self.stats_panel.update(fps, FPS_PANEL_MAX)

        now = self.now()
        events = self.anomaly_detector.observe(poses, now, self.dispersion)
        self.anomalies += sum(1 for e in events if e.is_anomaly)
        message = self.arbiter.decide(events, now, self.display_state)
        if message is not None:
            self.display.show(message)
            self.messages += 1

        # Results computed by a detector that is being replaced are not drawn.
        overlay = bool(poses) and not self.lifecycle.is_changing
        self.renderer.draw(frame, poses if overlay else [])

        self.frames += 1
        return True

    async def run(self) -> PipelineSummary:
        self.logger.info("pipeline started: %s", self.config.as_dict())
        self._t0 = time.time()
        halted = False
        error: Optional[str] = None

        try:
            await self._prepare()
            self.clock.schedule()
            while not self._stopping and await self.clock.wait():
                if not await self.step():
                    break
                if not self._stopping:
                    self.clock.schedule()
        except DetectorSwapError as exc:
            self.logger.exception("pipeline halted: %s", exc)
            self.display.status(f"Failed to load model: {exc}")
            halted = True
            error = str(exc)
        except PipelineSetupError as exc:
            self.logger.exception("pipeline halted: %s", exc)
            self.display.status(f"Failed to start: {exc}")
            halted = True
            error = str(exc)
        finally:
            self.clock.cancel()
            try:
                self.capture.stop()
            except Exception as exc:
                self.logger.warning("capture stop failed: %s", exc)
            if self.recorder is not None:
                self.recorder.stop()
            self.lifecycle.close()

        elapsed = max(1e-6, time.time() - self._t0)
        avg = self.frames / elapsed
        self.logger.info(
            "summary frames=%d anomalies=%d avg_fps=%.2f errors=%d",
            self.frames, self.anomalies, avg, self.errors,
        )
        return PipelineSummary(
            self.frames,
            self.anomalies,
            self.messages,
            self.lifecycle.swaps,
            avg,
            self.errors,
            halted,
            error,
        )
