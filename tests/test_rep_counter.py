"""Tests for threshold-based rep counting.

Covers:
  - Phase trace and single count over a full squat cycle
  - No double counting from noise or held positions
  - Absent / non-finite samples
  - Hold timers and phase tempo classification
  - Reset determinism
"""

import math

import pytest

from motioncoach.cv.rep_counter import RepCounter, RepPhase, RepTelemetry, classify_tempo
from motioncoach.schemas.exercise_profile import TempoRange, TempoSpec
from motioncoach.schemas.rep_event import TempoStatus

SQUAT_TRACE = [170, 170, 168, 140, 115, 112, 115, 140, 168, 172]


def _run(counter: RepCounter, values, step_ms: float = 100.0):
    return [counter.update(v, i * step_ms) for i, v in enumerate(values)]


# ============================================================================
# Counting
# ============================================================================

class TestCounting:

    def test_squat_trace(self):
        counter = RepCounter(up_threshold=165, down_threshold=120)
        updates = _run(counter, SQUAT_TRACE)

        assert [u.phase for u in updates] == [
            RepPhase.UP, RepPhase.UP, RepPhase.UP,
            RepPhase.UNKNOWN,
            RepPhase.DOWN, RepPhase.DOWN, RepPhase.DOWN,
            RepPhase.UNKNOWN,
            RepPhase.UP, RepPhase.UP,
        ]
        assert [i for i, u in enumerate(updates) if u.rep_just_counted] == [8]
        assert updates[-1].rep_count == 1

    def test_unknown_is_rest(self):
        assert RepPhase.UNKNOWN is RepPhase.REST

    def test_noise_around_midpoint_counts_once(self):
        counter = RepCounter(up_threshold=165, down_threshold=120)
        updates = _run(counter, [170, 115, 140, 118, 140, 119, 145, 170, 171, 169])
        assert sum(u.rep_just_counted for u in updates) == 1
        assert counter.rep_count == 1

    def test_holding_up_never_recounts(self):
        counter = RepCounter(up_threshold=165, down_threshold=120)
        _run(counter, [170, 110, 170] + [170] * 50)
        assert counter.rep_count == 1

    def test_up_without_down_does_not_count(self):
        counter = RepCounter(up_threshold=165, down_threshold=120)
        _run(counter, [170, 140, 170, 140, 170])
        assert counter.rep_count == 0

    def test_start_in_down_counts_first_rise(self):
        counter = RepCounter(up_threshold=165, down_threshold=120)
        updates = _run(counter, [100, 170])
        assert updates[0].phase is RepPhase.DOWN
        assert updates[1].rep_just_counted

    def test_start_between_thresholds_needs_down(self):
        counter = RepCounter(up_threshold=165, down_threshold=120)
        updates = _run(counter, [140, 170])
        assert updates[0].phase is RepPhase.REST
        assert counter.rep_count == 0

    def test_thresholds_are_inclusive(self):
        counter = RepCounter(up_threshold=165, down_threshold=120)
        updates = _run(counter, [165, 120, 165])
        assert [u.phase for u in updates] == [RepPhase.UP, RepPhase.DOWN, RepPhase.UP]
        assert counter.rep_count == 1

    def test_repeated_reps(self):
        counter = RepCounter(up_threshold=165, down_threshold=120)
        _run(counter, SQUAT_TRACE * 3)
        assert counter.rep_count == 3
        assert counter.last_rep.rep_number == 3

    def test_invalid_thresholds(self):
        with pytest.raises(ValueError):
            RepCounter(up_threshold=120, down_threshold=120)
        with pytest.raises(ValueError):
            RepCounter(up_threshold=100, down_threshold=120)


# ============================================================================
# Absent samples
# ============================================================================

class TestAbsentSamples:

    @pytest.mark.parametrize("missing", [None, math.nan, math.inf])
    def test_missing_sample_freezes_state(self, missing):
        counter = RepCounter(up_threshold=165, down_threshold=120)
        _run(counter, [170, 110])

        update = counter.update(missing, 300.0)

        assert update.phase is RepPhase.DOWN
        assert update.rep_count == 0
        assert not update.rep_just_counted
        assert update.value is None
        assert isinstance(update.telemetry, RepTelemetry)

        # DOWN memory survives the gap
        assert counter.update(170, 400.0).rep_just_counted

    def test_missing_before_first_sample(self):
        counter = RepCounter(up_threshold=165, down_threshold=120)
        update = counter.update(None, 0.0)
        assert update.phase is RepPhase.UNKNOWN
        assert update.telemetry.phase_ms == 0.0
        assert update.telemetry.hold_top_ms is None


# ============================================================================
# Telemetry
# ============================================================================

class TestTelemetry:

    def test_phase_ms(self):
        counter = RepCounter(up_threshold=165, down_threshold=120)
        counter.update(170, 0.0)
        counter.update(110, 100.0)
        assert counter.telemetry(400.0).phase_ms == pytest.approx(300.0)

    def test_hold_top_spans_band_below_threshold(self):
        counter = RepCounter(up_threshold=165, down_threshold=120, hold_epsilon=5.0)
        counter.update(170, 0.0)
        update = counter.update(162, 500.0)

        # Coarse phase leaves UP but the hold continues
        assert update.phase is RepPhase.REST
        assert update.telemetry.hold_top_ms == pytest.approx(500.0)
        assert update.telemetry.hold_bottom_ms is None

        assert counter.update(150, 600.0).telemetry.hold_top_ms is None

    def test_hold_bottom(self):
        counter = RepCounter(up_threshold=165, down_threshold=120, hold_epsilon=5.0)
        counter.update(140, 0.0)
        counter.update(124, 100.0)
        update = counter.update(110, 900.0)
        assert update.telemetry.hold_bottom_ms == pytest.approx(800.0)

    def test_tempo_classification_on_phase_exit(self):
        tempo = TempoSpec(down=TempoRange(min_ms=300, max_ms=4000), up=TempoRange(min_ms=500, max_ms=10000))
        counter = RepCounter(up_threshold=165, down_threshold=120, tempo=tempo)

        counter.update(170, 0.0)
        counter.update(110, 1000.0)
        update = counter.update(170, 1100.0)

        telemetry = update.telemetry
        assert telemetry.last_up_ms == pytest.approx(1000.0)
        assert telemetry.tempo_status_up == TempoStatus.GOOD
        assert telemetry.last_down_ms == pytest.approx(100.0)
        assert telemetry.tempo_status_down == TempoStatus.FAST
        assert telemetry.tempo_status_for(RepPhase.DOWN) == TempoStatus.FAST
        assert telemetry.tempo_status_for(RepPhase.REST) is None

    def test_tempo_without_range(self):
        counter = RepCounter(up_threshold=165, down_threshold=120)
        counter.update(170, 0.0)
        update = counter.update(110, 100.0)
        assert update.telemetry.last_up_ms == pytest.approx(100.0)
        assert update.telemetry.tempo_status_up is None

    def test_classify_tempo(self):
        tempo_range = TempoRange(min_ms=300, max_ms=4000)
        assert classify_tempo(299, tempo_range) == TempoStatus.FAST
        assert classify_tempo(300, tempo_range) == TempoStatus.GOOD
        assert classify_tempo(4000, tempo_range) == TempoStatus.GOOD
        assert classify_tempo(4001, tempo_range) == TempoStatus.SLOW
        assert classify_tempo(None, tempo_range) is None
        assert classify_tempo(500, None) is None

    def test_rep_summary(self):
        counter = RepCounter(up_threshold=165, down_threshold=120)
        _run(counter, SQUAT_TRACE)

        summary = counter.last_rep
        assert summary.rep_number == 1
        # Rep window opens when the user leaves UP (index 3) and closes on the count (index 8)
        assert summary.duration_ms == pytest.approx(500.0)
        assert summary.completed_ms == pytest.approx(800.0)
        assert summary.min_value == 112
        assert summary.max_value == 168

    def test_uses_injected_clock(self, clock):
        counter = RepCounter(up_threshold=165, down_threshold=120, clock=clock)
        counter.update(170)
        clock.advance(250)
        counter.update(110)
        clock.advance(150)
        assert counter.telemetry().phase_ms == pytest.approx(150.0)


# ============================================================================
# Reset
# ============================================================================

class TestReset:

    def test_reset_clears_everything(self):
        counter = RepCounter(up_threshold=165, down_threshold=120)
        _run(counter, SQUAT_TRACE)
        counter.reset()

        assert counter.rep_count == 0
        assert counter.phase is RepPhase.UNKNOWN
        assert counter.last_rep is None

    def test_reset_and_replay_is_deterministic(self):
        values = SQUAT_TRACE + [None, 118, 171, 110, 166]
        counter = RepCounter(up_threshold=165, down_threshold=120)
        first = _run(counter, values)
        counter.reset()
        second = _run(counter, values)
        assert first == second

    def test_from_profile(self, squat_profile, calf_raise_profile, settings):
        counter = RepCounter.from_profile(squat_profile, settings)
        assert (counter.up_threshold, counter.down_threshold) == (165, 120)
        assert counter.hold_epsilon == settings.angle_hold_epsilon

        elevation_counter = RepCounter.from_profile(calf_raise_profile, settings)
        assert elevation_counter.hold_epsilon == settings.elevation_hold_epsilon


# ============================================================================
# Properties
# ============================================================================

class TestProperties:

    def test_repeated_samples_change_nothing(self):
        single = RepCounter(up_threshold=165, down_threshold=120)
        doubled = RepCounter(up_threshold=165, down_threshold=120)

        single_phases = [u.phase for u in _run(single, SQUAT_TRACE)]
        doubled_updates = _run(doubled, [v for v in SQUAT_TRACE for _ in range(2)])

        assert [u.phase for u in doubled_updates[::2]] == single_phases
        assert [u.phase for u in doubled_updates[1::2]] == single_phases
        assert doubled.rep_count == single.rep_count == 1

    def test_counts_match_down_up_crossings(self):
        values = [170, 150, 125, 160, 118, 150, 121, 166, 119, 119, 170, 140, 164, 110, 165]
        counter = RepCounter(up_threshold=165, down_threshold=120)
        updates = _run(counter, values)

        # Crossings at 166 (after 118) and 170 (after 119) and 165 (after 110)
        assert [i for i, u in enumerate(updates) if u.rep_just_counted] == [7, 10, 14]
