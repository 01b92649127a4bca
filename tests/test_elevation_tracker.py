"""Tests for elevation baseline calibration and hysteresis."""

import pytest

from motioncoach.cv.elevation_tracker import ElevationBaselineTracker, ElevationState


@pytest.fixture
def tracker(settings) -> ElevationBaselineTracker:
    return ElevationBaselineTracker(up_threshold=0.02, down_threshold=0.005, settings=settings)


def _feed(tracker, values):
    return [tracker.update(y) for y in values]


def _calibrate(tracker, y: float = 0.8):
    _feed(tracker, [y] * 20)
    assert tracker.is_calibrated


# ============================================================================
# Calibration
# ============================================================================

class TestCalibration:

    def test_still_window_calibrates(self, tracker):
        readings = _feed(tracker, [0.8] * 19)
        assert not tracker.is_calibrated
        assert all(r.elevation is None for r in readings)
        assert all(r.state is ElevationState.CALIBRATING_REST for r in readings)

        reading = tracker.update(0.8)
        assert tracker.is_calibrated
        assert reading.state is ElevationState.REST
        assert reading.baseline == pytest.approx(0.8)
        assert reading.elevation == pytest.approx(0.0)

    def test_baseline_is_lowest_point_of_window(self, tracker):
        # Sub-tolerance jitter; the largest image y wins
        _feed(tracker, [0.8, 0.8005, 0.8001, 0.8004] * 5)
        assert tracker.is_calibrated
        assert tracker.baseline == pytest.approx(0.8005)

    def test_noisy_input_never_calibrates(self, tracker):
        readings = _feed(tracker, [0.8, 0.81] * 50)
        assert not tracker.is_calibrated
        assert all(r.elevation is None for r in readings)

    def test_movement_restarts_window(self, tracker):
        _feed(tracker, [0.8] * 15 + [0.75] + [0.8] * 10)
        assert not tracker.is_calibrated

    def test_missing_input_keeps_state(self, tracker):
        reading = tracker.update(None)
        assert reading.elevation is None
        assert reading.state is ElevationState.CALIBRATING_REST


# ============================================================================
# Hysteresis
# ============================================================================

class TestHysteresis:

    def test_rest_to_up_within_three_frames(self, tracker):
        _calibrate(tracker)
        readings = _feed(tracker, [0.77] * 3)

        assert [r.state for r in readings] == [ElevationState.REST, ElevationState.REST, ElevationState.UP]
        assert readings[-1].elevation == pytest.approx(0.03)

    def test_long_rest_then_rise(self, tracker):
        readings = _feed(tracker, [0.8] * 25)
        assert readings[-1].state is ElevationState.REST

        readings = _feed(tracker, [0.77] * 5)
        assert readings[2].state is ElevationState.UP
        assert readings[-1].state is ElevationState.UP

    def test_single_spike_does_not_leave_rest(self, tracker):
        _calibrate(tracker)
        readings = _feed(tracker, [0.77, 0.8, 0.77, 0.8])
        assert all(r.state is ElevationState.REST for r in readings)

    def test_up_to_moving_to_rest(self, tracker):
        _calibrate(tracker)
        _feed(tracker, [0.77] * 5)

        readings = _feed(tracker, [0.8] * 12)
        assert readings[0].state is ElevationState.MOVING
        assert readings[-1].state is ElevationState.REST

    def test_elevation_follows_signal_in_every_state(self, tracker):
        _calibrate(tracker)
        readings = _feed(tracker, [0.79, 0.77, 0.77, 0.77, 0.8])
        assert [r.elevation for r in readings] == pytest.approx([0.01, 0.03, 0.03, 0.03, 0.0])

    def test_reset(self, tracker):
        _calibrate(tracker)
        tracker.reset()
        assert not tracker.is_calibrated
        assert tracker.update(0.8).state is ElevationState.CALIBRATING_REST


# ============================================================================
# Baseline adaptation
# ============================================================================

class TestBaselineAdaptation:

    def test_adapts_slowly_towards_still_posture(self, tracker):
        _calibrate(tracker, 0.8)
        _feed(tracker, [0.79] * 100)

        assert tracker.baseline < 0.8
        assert tracker.baseline >= 0.79
        assert tracker.baseline == pytest.approx(0.79, abs=1e-3)

    def test_no_adaptation_before_stable_frames(self, tracker):
        _calibrate(tracker, 0.8)
        _feed(tracker, [0.79] * 10)
        assert tracker.baseline == pytest.approx(0.8)

    def test_baseline_never_above_still_point(self, tracker):
        # Lower heel position (larger y) is adopted outright
        _calibrate(tracker, 0.8)
        _feed(tracker, [0.81] * 20)
        assert tracker.baseline == pytest.approx(0.81)
