"""
TUG 검사 실행기 (start / stop / tick)

틱 하나 = Adapter → Motion Sampler → Phase Machine → Session Recorder.
The runner owns the session and sampler state; whatever schedules ticks
(WebSocket handler, camera loop) awaits the next pose result and then calls
tick(). Ticks are strictly sequential.
"""
import logging
import time
from typing import Callable, Iterable, Optional, Sequence, Tuple

from .config import TUGThresholds
from .errors import GeometryError, LowConfidence, UnexpectedPhase
from .keypoints import BodyPart, Frame, build_frame, frame_from_mediapipe
from .geometry import pixel_to_metric_scale
from .motion_sampler import MotionSampler
from .phase_machine import TickResult, TUGPhase, TUGSession, advance
from .session_recorder import SessionRecorder, TUGReport

logger = logging.getLogger(__name__)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class TUGRunner:

    def __init__(self, thresholds: Optional[TUGThresholds] = None,
                 clock: Callable[[], float] = _epoch_ms):
        self.thresholds = thresholds or TUGThresholds()
        self.clock = clock
        self.session = TUGSession()
        self.sampler = MotionSampler(
            update_interval_ms=self.thresholds.speed_update_interval_ms,
            significant_change=self.thresholds.speed_display_change,
        )
        self.recorder = SessionRecorder(self.thresholds.min_keypoint_confidence)
        self.running = False
        self.last_report: Optional[TUGReport] = None
        self.last_frame: Optional[Frame] = None
        self.consecutive_failures = 0

    @property
    def phase(self) -> TUGPhase:
        return self.session.phase

    @property
    def prompt(self) -> str:
        return self.session.prompt

    def _reset(self):
        self.session.reset()
        self.sampler.reset()
        self.last_report = None
        self.last_frame = None
        self.consecutive_failures = 0

    def start(self):
        """새 세션 시작 (이전 데이터 초기화)"""
        self._reset()
        self.running = True
        logger.info("TUG session started")

    def stop(self):
        """중단: 진행 중인 세션은 폐기되고 리포트는 생성되지 않음"""
        if self.running and self.session.phase != TUGPhase.AWAITING_START:
            logger.info("TUG session stopped in %s, partial data discarded",
                        getattr(self.session.phase, "name", self.session.phase))
        self.running = False
        self._reset()

    def skip(self, error: Optional[Exception] = None):
        """Record a failed acquisition / inference tick. The next tick retries."""
        if not self.running:
            return
        self.consecutive_failures += 1
        if self.consecutive_failures == self.thresholds.persistent_failure_ticks:
            logger.warning("Pose acquisition failed %d ticks in a row: %s",
                           self.consecutive_failures, error)
        else:
            logger.debug("Skipped tick: %s", error)

    def tick(self, keypoints: Iterable, pose_score: float,
             timestamp_ms: Optional[float] = None) -> Optional[TickResult]:
        """
        Process one pose result ({part, x, y, score} list + overall score).

        Returns None when the runner is not running.
        """
        if not self.running:
            return None
        th = self.thresholds
        ts = self.clock() if timestamp_ms is None else timestamp_ms
        try:
            frame = build_frame(keypoints, pose_score, ts,
                                min_pose_confidence=th.min_pose_confidence,
                                min_part_confidence=th.min_part_confidence)
        except LowConfidence as e:
            logger.debug("Low confidence frame: %s", e)
            frame = None
        return self.tick_frame(frame)

    def tick_mediapipe(self, landmarks: Sequence[Sequence[float]],
                       timestamp_ms: Optional[float] = None,
                       image_size: Optional[Tuple[int, int]] = None) -> Optional[TickResult]:
        if not self.running:
            return None
        th = self.thresholds
        ts = self.clock() if timestamp_ms is None else timestamp_ms
        try:
            frame = frame_from_mediapipe(landmarks, ts, image_size=image_size,
                                         min_pose_confidence=th.min_pose_confidence,
                                         min_part_confidence=th.min_part_confidence)
        except LowConfidence as e:
            logger.debug("Low confidence frame: %s", e)
            frame = None
        return self.tick_frame(frame)

    def _scale(self, frame: Optional[Frame]) -> Optional[float]:
        if frame is None or not frame.has(BodyPart.LEFT_HIP, BodyPart.RIGHT_HIP):
            return None
        try:
            return pixel_to_metric_scale(frame.position(BodyPart.LEFT_HIP),
                                         frame.position(BodyPart.RIGHT_HIP),
                                         self.thresholds.hip_separation_m)
        except GeometryError:
            return None

    def tick_frame(self, frame: Optional[Frame]) -> Optional[TickResult]:
        """Run the pipeline for an already-adapted frame (None = no usable pose)."""
        if not self.running:
            return None
        self.consecutive_failures = 0
        self.last_frame = frame

        speed = self.sampler.update(frame, self._scale(frame))

        try:
            result = advance(self.session, frame, self.thresholds)
        except UnexpectedPhase as e:
            logger.error("%s; resetting TUG session, partial data discarded", e)
            self._reset()
            return TickResult(previous_phase=e.phase, phase=self.session.phase,
                              stall_reason="UnexpectedPhase")

        self.recorder.record(self.session, frame)
        result.speed = speed

        if result.transitioned and result.completed:
            report = self.recorder.build_report(self.session)
            self.session.prompt = report.summary_text()
            result.prompt = self.session.prompt
            result.report = report
            self.last_report = report
            self.running = False
            logger.info("TUG complete: total %.2f s, %d samples",
                        report.total_seconds, len(report.samples))
        return result
