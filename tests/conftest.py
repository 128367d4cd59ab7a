import pytest

from pose_monitor.pm_types import Keypoint, PoseSample


def make_pose(*keypoints):
    """Build a PoseSample from (name, x, y, z, score) tuples."""
    return PoseSample([Keypoint(*kp) for kp in keypoints])


@pytest.fixture
def pose_factory():
    return make_pose
