"""Keypoint anomaly monitoring over a live pose-estimation stream."""

from .config import MonitorConfig
from .pipeline import FramePipeline

__all__ = ["MonitorConfig", "FramePipeline"]
