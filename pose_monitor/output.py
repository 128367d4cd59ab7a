from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import cv2
import numpy as np

from .display import RenderableMessage
from .pm_types import Frame, PoseSample

# Subset of BlazePose/COCO edges drawn between keypoints that share names.
SKELETON_EDGES = (
    ("left_shoulder", "right_shoulder"),
    ("left_shoulder", "left_elbow"),
    ("left_elbow", "left_wrist"),
    ("right_shoulder", "right_elbow"),
    ("right_elbow", "right_wrist"),
    ("left_shoulder", "left_hip"),
    ("right_shoulder", "right_hip"),
    ("left_hip", "right_hip"),
    ("left_hip", "left_knee"),
    ("left_knee", "left_ankle"),
    ("right_hip", "right_knee"),
    ("right_knee", "right_ankle"),
)


class DisplaySink(ABC):
    @abstractmethod
    def show(self, message: RenderableMessage) -> None: ...

    @abstractmethod
    def status(self, text: str) -> None: ...

    @abstractmethod
    def clear(self) -> None: ...


class LogDisplay(DisplaySink):
    """Results panel backed by the session logger. Keeps the last message."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.last_message: Optional[RenderableMessage] = None
        self.last_status: Optional[str] = None
        self.shown = 0

    def show(self, message: RenderableMessage) -> None:
        self.last_message = message
        self.shown += 1
        self.logger.debug("results: %s", " | ".join(message.lines()))

    def status(self, text: str) -> None:
        self.last_status = text
        self.logger.info("status: %s", text)

    def clear(self) -> None:
        self.last_message = None


class StatsSink(ABC):
    @abstractmethod
    def update(self, fps: float, max_value: float) -> None: ...


class LogStatsPanel(StatsSink):
    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.last_fps: Optional[float] = None

    def update(self, fps: float, max_value: float) -> None:
        self.last_fps = min(fps, max_value)
        self.logger.debug("inference fps=%.1f", fps)


class VideoRecorder:
    """Writes rendered frames to a video file with OpenCV."""

    def __init__(self, path: str, fourcc: str = "mp4v"):
        self.path = path
        self.fourcc = fourcc
        self._writer: Any = None

    @property
    def recording(self) -> bool:
        return self._writer is not None

    def start(self, size: tuple[int, int], fps: float) -> None:
        self._writer = cv2.VideoWriter(
            self.path, cv2.VideoWriter_fourcc(*self.fourcc), float(fps or 30.0), size
        )
        if not self._writer.isOpened():
            self._writer = None
            raise RuntimeError(f"Failed to open recorder: {self.path}")

    def write(self, image: np.ndarray) -> None:
        if self._writer is not None:
            self._writer.write(image)

    def stop(self) -> None:
        if self._writer is not None:
            self._writer.release()
            self._writer = None


class Renderer(ABC):
    @abstractmethod
    def draw(self, frame: Frame, poses: Sequence[PoseSample]) -> None: ...

    @abstractmethod
    def clear(self) -> None: ...

    @abstractmethod
    def reveal(self) -> None: ...


class OverlayRenderer(Renderer):
    """Draws keypoints and skeleton edges over the frame with OpenCV.

    The composed image is kept in ``canvas`` and, when a recorder is attached
    and started, appended to the recording. After ``reveal()`` the raw video
    is passed through without overlay.
    """

    def __init__(
        self,
        score_threshold: float = 0.65,
        recorder: Optional[VideoRecorder] = None,
        radius: int = 4,
    ):
        self.score_threshold = score_threshold
        self.recorder = recorder
        self.radius = radius
        self.canvas: Optional[np.ndarray] = None
        self.overlay_visible = True

    def draw(self, frame: Frame, poses: Sequence[PoseSample]) -> None:
        canvas = frame.image.copy()
        if self.overlay_visible:
            for pose in poses:
                self._draw_pose(canvas, pose)
        self.canvas = canvas
        if self.recorder is not None:
            self.recorder.write(canvas)

    def _draw_pose(self, canvas: np.ndarray, pose: PoseSample) -> None:
        visible = {
            kp.name: (int(round(kp.x)), int(round(kp.y)))
            for kp in pose.keypoints
            if kp.score >= self.score_threshold
        }
        for a, b in SKELETON_EDGES:
            if a in visible and b in visible:
                cv2.line(canvas, visible[a], visible[b], (255, 255, 255), 2, cv2.LINE_AA)
        for pt in visible.values():
            cv2.circle(canvas, pt, self.radius, (0, 0, 255), -1, cv2.LINE_AA)

    def clear(self) -> None:
        self.canvas = None

    def reveal(self) -> None:
        self.overlay_visible = False


class NullRenderer(Renderer):
    def draw(self, frame: Frame, poses: Sequence[PoseSample]) -> None:
        return None

    def clear(self) -> None:
        return None

    def reveal(self) -> None:
        return None
