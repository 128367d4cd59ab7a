import math

import pytest

from pose_monitor.anomaly import (
    THRESHOLD,
    AnomalyDetector,
    calculate_mean,
    calculate_standard_deviation,
    classify,
)
from pose_monitor.pm_types import Classification, DispersionState

from conftest import make_pose


def _nose_with_std(std: float, score: float = 0.9):
    """Nose keypoint whose per-axis values have the given population std."""
    spread = std * math.sqrt(1.5)
    return make_pose(("nose", 5.0 - spread, 5.0, 5.0 + spread, score))


@pytest.mark.parametrize("values", [(1.0, 2.0, 3.0), (0.0, 0.0, 9.5), (4.2, 0.1, 7.7)])
def test_standard_deviation_is_non_negative(values):
    assert calculate_standard_deviation(values) >= 0.0


def test_standard_deviation_zero_for_equal_values():
    assert calculate_standard_deviation([3.3, 3.3, 3.3]) == 0.0


def test_standard_deviation_is_population_form():
    # sample std of (1, 2, 3) would be 1.0
    assert calculate_standard_deviation([1.0, 2.0, 3.0]) == pytest.approx(math.sqrt(2.0 / 3.0))
    assert calculate_mean([1.0, 2.0, 3.0]) == pytest.approx(2.0)


def test_classify_threshold_is_inclusive():
    assert classify(1.0, 1.0 - THRESHOLD) is Classification.ANOMALY
    assert classify(1.0, 0.5) is Classification.NORMAL
    assert classify(0.0, 1.0) is Classification.ANOMALY


def test_first_sample_anomalous_then_small_change_normal():
    """A jump from the default baseline is flagged; a small follow-up is not."""
    detector = AnomalyDetector()
    state = DispersionState()

    events = detector.observe([_nose_with_std(1.0)], 10.0, state)
    assert len(events) == 1
    assert events[0].classification is Classification.ANOMALY
    assert events[0].std_dev == pytest.approx(1.0)
    assert events[0].mean == pytest.approx(5.0)
    assert events[0].timestamp == 10.0
    assert state["nose"] == pytest.approx(1.0)

    events = detector.observe([_nose_with_std(1.2)], 10.1, state)
    assert events[0].classification is Classification.NORMAL
    assert state["nose"] == pytest.approx(1.2)


def test_repeated_sample_is_normal_second_time():
    detector = AnomalyDetector()
    state = DispersionState({"nose": 0.9})
    poses = [_nose_with_std(1.0)]

    first = detector.observe(poses, 1.0, state)
    second = detector.observe(poses, 2.0, state)
    assert first[0].classification is Classification.NORMAL
    assert second[0].classification is Classification.NORMAL

    state = DispersionState()
    first = detector.observe(poses, 1.0, state)
    second = detector.observe(poses, 2.0, state)
    assert first[0].classification is Classification.ANOMALY
    assert second[0].classification is Classification.NORMAL


def test_baseline_is_overwritten_on_anomaly():
    detector = AnomalyDetector()
    state = DispersionState()
    detector.observe([_nose_with_std(2.0)], 1.0, state)
    detector.observe([_nose_with_std(4.0)], 2.0, state)
    assert state["nose"] == pytest.approx(4.0)


def test_uses_absolute_value_per_axis():
    detector = AnomalyDetector()
    state = DispersionState()
    events = detector.observe([make_pose(("left_hip", -3.0, 0.0, 3.0, 0.8))], 1.0, state)
    assert events[0].std_dev == pytest.approx(math.sqrt(2.0))
    assert events[0].mean == pytest.approx(2.0)


def test_ungated_keypoint_is_ignored():
    detector = AnomalyDetector()
    state = DispersionState()
    events = detector.observe([make_pose(("left_knee", 100.0, 0.0, 50.0, 0.95))], 1.0, state)
    assert events == []
    assert "left_knee" not in state


@pytest.mark.parametrize("score", [0.7, 0.5, 0.0])
def test_low_score_keeps_stale_state(score):
    detector = AnomalyDetector()
    state = DispersionState({"nose": 0.4})
    events = detector.observe([_nose_with_std(3.0, score=score)], 1.0, state)
    assert events == []
    assert state["nose"] == 0.4


def test_empty_input_yields_no_events():
    detector = AnomalyDetector()
    state = DispersionState()
    assert detector.observe([], 1.0, state) == []
    assert detector.observe([make_pose()], 1.0, state) == []
    assert state == {}


def test_multiple_subjects_share_state_by_name():
    detector = AnomalyDetector()
    state = DispersionState()
    events = detector.observe([_nose_with_std(1.0), _nose_with_std(1.1)], 1.0, state)
    assert [e.classification for e in events] == [Classification.ANOMALY, Classification.NORMAL]
    assert [e.keypoint for e in events] == ["nose", "nose"]
