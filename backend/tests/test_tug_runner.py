"""Tests for the TUG runner (start / stop / tick pipeline)."""
import logging

import pytest

from analysis.tug.config import TUGThresholds
from analysis.tug.errors import AcquisitionFailure
from analysis.tug.phase_machine import TUGPhase
from analysis.tug.runner import TUGRunner, _epoch_ms
from analysis.tug.session_recorder import TUGReport
from conftest import make_pose


def play(runner, script):
    return [runner.tick(make_pose(**kwargs), 0.9, t) for t, kwargs in script]


@pytest.fixture
def runner(unit_thresholds):
    r = TUGRunner(unit_thresholds)
    r.start()
    return r


class TestLifecycle:
    def test_idle_runner_ignores_ticks(self, unit_thresholds):
        runner = TUGRunner(unit_thresholds)
        assert runner.tick(make_pose(), 0.9, 0) is None
        assert runner.tick_mediapipe([], 0) is None
        assert runner.phase == TUGPhase.AWAITING_START

    def test_start_enters_awaiting_start(self, runner):
        assert runner.running
        assert runner.phase == TUGPhase.AWAITING_START
        assert len(runner.session.timestamps.missing()) == 12
        assert runner.session.samples == []

    def test_stop_mid_turn_discards_everything(self, runner, full_session_script):
        play(runner, full_session_script[:5])
        assert runner.phase == TUGPhase.TURNING_1
        assert runner.session.samples

        runner.stop()
        assert not runner.running
        assert runner.phase == TUGPhase.AWAITING_START
        assert len(runner.session.timestamps.missing()) == 12
        assert runner.session.samples == []
        assert runner.session.reference_position is None
        assert runner.session.reference_direction is None
        assert runner.last_report is None

        runner.start()
        assert runner.session.samples == []
        assert runner.session.timestamps.stand_up_start is None
        assert runner.sampler.state.previous_position is None

    def test_stop_logs_partial_session(self, runner, full_session_script, caplog):
        play(runner, full_session_script[:3])
        with caplog.at_level(logging.INFO, logger="analysis.tug.runner"):
            runner.stop()
        assert "WALKING_FORWARD" in caplog.text

    def test_default_clock_used_without_timestamp(self, unit_thresholds):
        runner = TUGRunner(unit_thresholds, clock=lambda: 777.0)
        runner.start()
        runner.tick(make_pose(), 0.9)
        assert runner.last_frame.timestamp_ms == 777.0

    def test_wall_clock_is_whole_milliseconds(self):
        assert isinstance(_epoch_ms(), int)


class TestFullRun:
    def test_completion_emits_report_and_stops(self, runner, full_session_script):
        results = play(runner, full_session_script)
        final = results[-1]
        assert final.completed
        assert final.report is runner.last_report
        assert isinstance(final.report, TUGReport)
        assert not runner.running
        assert runner.phase == TUGPhase.COMPLETE

        report = runner.last_report
        assert report.total_seconds == pytest.approx(11.0)
        assert report.durations == pytest.approx({
            "Stand Up": 1.0,
            "Walk Forward": 3.0,
            "Turn 1": 1.5,
            "Walk Back": 2.5,
            "Turn 2": 1.5,
            "Sit Down": 1.5,
        })
        assert len(report.samples) == len(full_session_script)
        assert runner.prompt.startswith("Done!")
        assert final.prompt == runner.prompt

    def test_ticks_after_completion_ignored(self, runner, full_session_script):
        play(runner, full_session_script)
        assert runner.tick(make_pose(hip_angle=100), 0.9, 20000) is None
        assert len(runner.last_report.samples) == len(full_session_script)

    def test_transition_prompts(self, runner, full_session_script):
        prompts = [r.prompt for r in play(runner, full_session_script)[:-1] if r.transitioned]
        assert prompts == ["Sit down", "Stand up", "Walk forward", "Turn",
                           "Walk back", "Turn", "Sit down"]

    def test_speed_reported(self, runner, full_session_script):
        results = play(runner, full_session_script[:4])
        assert results[0].speed is None
        # shoulder stays put while the knee moves
        assert results[1].speed == pytest.approx(0.0)
        # 0.5 m over 1.5 s
        assert results[3].speed == pytest.approx(0.5 / 1.5)


class TestDegradedInput:
    def test_low_confidence_frame_stalls_without_sampling(self, runner):
        result = runner.tick(make_pose(), 0.3, 0)
        assert result.stall_reason == "no_frame"
        assert not result.transitioned
        assert runner.session.samples == []

    def test_empty_mediapipe_landmarks_stall(self, runner):
        result = runner.tick_mediapipe([], 0)
        assert result.stall_reason == "no_frame"
        assert runner.phase == TUGPhase.AWAITING_START

    def test_low_shoulder_confidence_not_sampled(self, runner):
        keypoints = make_pose()
        for kp in keypoints:
            if kp["part"] == "leftShoulder":
                kp["score"] = 0.5
        result = runner.tick(keypoints, 0.9, 0)
        assert result.transitioned
        assert runner.session.samples == []

    def test_unexpected_phase_resets_session(self, runner, full_session_script, caplog):
        play(runner, full_session_script[:3])
        runner.session.phase = 42
        with caplog.at_level(logging.ERROR, logger="analysis.tug.runner"):
            result = runner.tick(make_pose(), 0.9, 2500)
        assert result.stall_reason == "UnexpectedPhase"
        assert result.previous_phase == 42
        assert runner.phase == TUGPhase.AWAITING_START
        assert runner.session.samples == []
        assert len(runner.session.timestamps.missing()) == 12
        assert caplog.records

    def test_skip_warns_once_on_persistent_failure(self, full_session_script, caplog):
        runner = TUGRunner(TUGThresholds(hip_separation_m=1.0, persistent_failure_ticks=3))
        runner.start()
        with caplog.at_level(logging.DEBUG, logger="analysis.tug.runner"):
            for _ in range(5):
                runner.skip(AcquisitionFailure("camera read failed"))
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert runner.consecutive_failures == 5

        play(runner, full_session_script[:1])
        assert runner.consecutive_failures == 0

    def test_skip_leaves_state_untouched(self, runner, full_session_script):
        play(runner, full_session_script[:3])
        before = runner.session.timestamps.to_dict()
        runner.skip()
        assert runner.phase == TUGPhase.WALKING_FORWARD
        assert runner.session.timestamps.to_dict() == before
