from __future__ import annotations

import cv2
import numpy as np

from ..pm_types import Keypoint, PoseSample
from .base import PoseDetector
from .options import BlazePoseOptions

MODEL_COMPLEXITY = {"lite": 0, "full": 1, "heavy": 2}


class MediaPipePoseDetector(PoseDetector):
    """BlazePose through the MediaPipe ``solutions.pose`` graph.

    Notes:
    - MediaPipe reports normalized coordinates; they are scaled to pixels
      (z uses the image width, matching MediaPipe's own convention).
    - ``visibility`` is used as the keypoint score.
    - The graph tracks a single subject, so ``max_poses`` is capped at 1.
    """

    def __init__(
        self,
        options: BlazePoseOptions,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ) -> None:
        try:
            import mediapipe as mp  # type: ignore
        except Exception as e:
            raise RuntimeError(
                "MediaPipe is not installed. Install pose deps with: pip install 'pose-monitor[mediapipe]'"
            ) from e

        self.options = options
        self._mp_pose = mp.solutions.pose
        self._pose = self._mp_pose.Pose(
            static_image_mode=False,
            model_complexity=MODEL_COMPLEXITY.get(options.model_type, 1),
            enable_segmentation=False,
            smooth_landmarks=True,
            min_detection_confidence=float(min_detection_confidence),
            min_tracking_confidence=float(min_tracking_confidence),
        )
        self._landmark_names = [lm.name.lower() for lm in self._mp_pose.PoseLandmark]

    def name(self) -> str:
        return f"blazepose-mediapipe-{self.options.model_type}"

    def estimate(
        self,
        image: np.ndarray,
        max_poses: int = 1,
        flip_horizontal: bool = False,
    ) -> list[PoseSample]:
        if self._pose is None:
            raise RuntimeError("estimate() called on a disposed detector")

        h, w = image.shape[:2]
        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        res = self._pose.process(rgb)
        if not res or not getattr(res, "pose_landmarks", None):
            return []

        keypoints = []
        for name, lm in zip(self._landmark_names, res.pose_landmarks.landmark):
            x = lm.x * w
            if flip_horizontal:
                x = w - x
            keypoints.append(Keypoint(name, x, lm.y * h, lm.z * w, float(lm.visibility)))
        return [PoseSample(keypoints)]

    def dispose(self) -> None:
        if self._pose is not None:
            self._pose.close()
            self._pose = None
