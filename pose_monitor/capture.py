from __future__ import annotations

import re
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import cv2
import numpy as np

from .pm_types import Frame


class BaseCapture(ABC):
    fps: float = 30.0
    width: int = 0
    height: int = 0

    @abstractmethod
    def start(self) -> None: ...

    @abstractmethod
    def next_frame(self) -> Frame | None: ...

    @property
    @abstractmethod
    def ended(self) -> bool: ...

    @abstractmethod
    def stop(self) -> None: ...


class VideoFileCapture(BaseCapture):
    """Plays a video file from the start; ends when the decoder runs dry."""

    def __init__(self, path: str):
        self.path = path
        self.cap: Any = None
        self.idx = 0
        self._ended = False

    def start(self) -> None:
        self.cap = cv2.VideoCapture(self.path)
        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video: {self.path}")
        self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
        self.fps = float(self.cap.get(cv2.CAP_PROP_FPS) or 30.0)
        self.width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.idx = 0
        self._ended = False

    def next_frame(self) -> Frame | None:
        if self.cap is None or self._ended:
            return None
        ok, img = self.cap.read()
        if not ok:
            self._ended = True
            return None
        self.idx += 1
        return Frame(self.idx, time.time(), img)

    @property
    def ended(self) -> bool:
        return self._ended

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None
        self._ended = True


class USBOpenCVCapture(BaseCapture):
    def __init__(self, device: int | str, fps: int, width: int, height: int):
        self.device = device
        self.fps = fps
        self.width = width
        self.height = height
        self.cap: Any = None
        self.idx = 0
        self._stopped = False

    def start(self) -> None:
        if isinstance(self.device, int):
            self.cap = cv2.VideoCapture(self.device, cv2.CAP_V4L2)
        else:
            dev_str = str(self.device)
            match = re.match(r"^/dev/video(\d+)$", dev_str)
            if match:
                self.cap = cv2.VideoCapture(int(match.group(1)), cv2.CAP_V4L2)
            else:
                self.cap = cv2.VideoCapture(dev_str)

        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self.cap.set(cv2.CAP_PROP_FPS, self.fps)

        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open camera: {self.device}")
        self._stopped = False

    def next_frame(self) -> Frame | None:
        if self.cap is None:
            return None
        ok, img = self.cap.read()
        if not ok:
            return None
        self.idx += 1
        return Frame(self.idx, time.time(), img)

    @property
    def ended(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None
        self._stopped = True


class SyntheticCapture(BaseCapture):
    """Blank frames at a fixed rate. Ends after ``max_frames`` when set."""

    def __init__(self, fps: int, width: int, height: int, max_frames: Optional[int] = None):
        self.fps = fps
        self.width = width
        self.height = height
        self.max_frames = max_frames
        self.idx = 0

    def start(self) -> None:
        self.idx = 0

    def next_frame(self) -> Frame | None:
        if self.ended:
            return None
        self.idx += 1
        img = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        return Frame(self.idx, time.time(), img)

    @property
    def ended(self) -> bool:
        return self.max_frames is not None and self.idx >= self.max_frames

    def stop(self) -> None:
        return None
