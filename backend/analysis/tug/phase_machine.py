"""
TUG 단계 상태머신

한 틱에 Frame 하나를 받아 단계를 판정합니다.
착석 대기 → 기립 시작 → 기립 완료 → 전방 보행 → 1차 회전 → 복귀 보행 → 2차 회전 → 착석 → 완료

Every state has one row in TRANSITIONS: a guard that decides whether to leave
the state, an action that records timestamps / reference baselines, the next
state and the prompt shown to the subject. Ticks with missing keypoints or
degenerate geometry leave the session untouched (stall rather than guess).
"""
import logging
from dataclasses import dataclass, field, fields
from enum import IntEnum
from typing import TYPE_CHECKING, Callable, Dict, List, NamedTuple, Optional

from .config import TUGThresholds
from .errors import GeometryError, UnexpectedPhase
from .geometry import (
    Vector2,
    direction,
    joint_angle_degrees,
    midpoint,
    pixel_to_metric_scale,
    turn_angle_degrees,
)
from .keypoints import BodyPart, Frame

if TYPE_CHECKING:
    from .session_recorder import TUGReport

logger = logging.getLogger(__name__)


class TUGPhase(IntEnum):
    AWAITING_START = 0
    AWAITING_STAND_UP = 1
    AWAITING_STOOD_UP = 2
    WALKING_FORWARD = 3
    TURNING_1 = 4
    WALKING_BACK = 5
    TURNING_2 = 6
    AWAITING_SIT_DOWN = 7
    COMPLETE = 8


# 리포트 라벨 → PhaseTimestamps 필드 접두어 (CSV 출력 순서)
PHASE_SEGMENTS = (
    ("Stand Up", "stand_up"),
    ("Walk Forward", "walk_forward"),
    ("Turn 1", "turn1"),
    ("Walk Back", "walk_back"),
    ("Turn 2", "turn2"),
    ("Sit Down", "sit_down"),
)

HIP_PARTS = (BodyPart.LEFT_HIP, BodyPart.RIGHT_HIP)
HIP_ANGLE_PARTS = (BodyPart.LEFT_SHOULDER, BodyPart.LEFT_HIP, BodyPart.LEFT_KNEE)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass
class PhaseTimestamps:
    """Phase boundary times in ms. An *_end is only set after its *_start."""
    stand_up_start: Optional[float] = None
    stand_up_end: Optional[float] = None
    walk_forward_start: Optional[float] = None
    walk_forward_end: Optional[float] = None
    turn1_start: Optional[float] = None
    turn1_end: Optional[float] = None
    walk_back_start: Optional[float] = None
    walk_back_end: Optional[float] = None
    turn2_start: Optional[float] = None
    turn2_end: Optional[float] = None
    sit_down_start: Optional[float] = None
    sit_down_end: Optional[float] = None

    def mark(self, boundary: str, timestamp_ms: float):
        if boundary.endswith("_end"):
            start = boundary[:-len("_end")] + "_start"
            started = getattr(self, start)
            if started is None:
                raise ValueError(f"{boundary} set before {start}")
            if timestamp_ms < started:
                raise ValueError(f"{boundary}={timestamp_ms} precedes {start}={started}")
        elif not boundary.endswith("_start"):
            raise ValueError(f"unknown phase boundary: {boundary}")
        setattr(self, boundary, timestamp_ms)

    def latest(self) -> Optional[float]:
        recorded = [getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None]
        return max(recorded) if recorded else None

    def missing(self) -> List[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is None]

    def durations(self) -> Dict[str, float]:
        """Per-phase durations in seconds, keyed by report label."""
        result = {}
        for label, prefix in PHASE_SEGMENTS:
            start = getattr(self, f"{prefix}_start")
            end = getattr(self, f"{prefix}_end")
            result[label] = (end - start) / 1000.0
        return result

    def total_seconds(self) -> float:
        return (self.sit_down_end - self.stand_up_start) / 1000.0

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self)}


class Sample(NamedTuple):
    time: float
    x: float
    y: float


@dataclass
class TUGSession:
    phase: TUGPhase = TUGPhase.AWAITING_START
    timestamps: PhaseTimestamps = field(default_factory=PhaseTimestamps)
    reference_direction: Optional[Vector2] = None
    reference_position: Optional[Vector2] = None
    samples: List[Sample] = field(default_factory=list)
    prompt: str = ""

    def reset(self):
        self.phase = TUGPhase.AWAITING_START
        self.timestamps = PhaseTimestamps()
        self.reference_direction = None
        self.reference_position = None
        self.samples = []
        self.prompt = ""


@dataclass(frozen=True)
class Measurement:
    """Per-tick quantities derived from the hips (and the left hip angle when needed)."""
    timestamp_ms: float
    hip_center: Vector2
    hip_vector: Vector2
    scale: float                      # metres per pixel
    hip_angle: Optional[float] = None


@dataclass
class TickResult:
    previous_phase: TUGPhase
    phase: TUGPhase
    transitioned: bool = False
    prompt: str = ""
    stall_reason: Optional[str] = None
    hip_angle: Optional[float] = None
    speed: Optional[float] = None
    report: Optional["TUGReport"] = None

    @property
    def completed(self) -> bool:
        return self.phase == TUGPhase.COMPLETE


def measure(frame: Frame, thresholds: TUGThresholds, with_hip_angle: bool = False) -> Measurement:
    """
    Raises:
        GeometryError: hips coincide, or the shoulder-hip-knee triangle is degenerate
    """
    left_hip = frame.position(BodyPart.LEFT_HIP)
    right_hip = frame.position(BodyPart.RIGHT_HIP)
    scale = pixel_to_metric_scale(left_hip, right_hip, thresholds.hip_separation_m)

    hip_angle = None
    if with_hip_angle:
        hip_angle = joint_angle_degrees(
            frame.position(BodyPart.LEFT_SHOULDER),
            left_hip,
            frame.position(BodyPart.LEFT_KNEE),
        )

    return Measurement(
        timestamp_ms=frame.timestamp_ms,
        hip_center=midpoint(left_hip, right_hip),
        hip_vector=direction(left_hip, right_hip),
        scale=scale,
        hip_angle=hip_angle,
    )


# ─── Guards ───

def _always(session: TUGSession, m: Measurement, th: TUGThresholds) -> bool:
    return True


def _stand_up_started(session, m, th) -> bool:
    return m.hip_angle <= th.stand_up_start_angle


def _stood_up(session, m, th) -> bool:
    return m.hip_angle > th.stood_up_angle


def _walked_forward(session, m, th) -> bool:
    if session.reference_position is None:
        raise UnexpectedPhase(session.phase)
    delta_y = (m.hip_center.y - session.reference_position.y) * m.scale
    return abs(delta_y) >= th.walk_distance_m


def _turned(session, m, th) -> bool:
    if session.reference_direction is None:
        raise UnexpectedPhase(session.phase)
    return turn_angle_degrees(session.reference_direction, m.hip_vector) > th.turn_angle


def _walked_back(session, m, th) -> bool:
    if session.reference_position is None:
        raise UnexpectedPhase(session.phase)
    delta_y = (session.reference_position.y - m.hip_center.y) * m.scale
    return abs(delta_y) >= th.walk_distance_m


def _sat_down(session, m, th) -> bool:
    return m.hip_angle <= th.sit_down_angle


# ─── Actions ───

def _no_action(session: TUGSession, m: Measurement):
    pass


def _begin_stand_up(session, m):
    session.timestamps.mark("stand_up_start", m.timestamp_ms)


def _finish_stand_up(session, m):
    session.timestamps.mark("stand_up_end", m.timestamp_ms)
    session.timestamps.mark("walk_forward_start", m.timestamp_ms)
    session.reference_position = m.hip_center
    session.reference_direction = m.hip_vector


def _finish_walk_forward(session, m):
    session.timestamps.mark("walk_forward_end", m.timestamp_ms)
    session.timestamps.mark("turn1_start", m.timestamp_ms)
    session.reference_direction = m.hip_vector


def _finish_turn_1(session, m):
    session.timestamps.mark("turn1_end", m.timestamp_ms)
    session.timestamps.mark("walk_back_start", m.timestamp_ms)
    session.reference_position = m.hip_center
    session.reference_direction = m.hip_vector


def _finish_walk_back(session, m):
    session.timestamps.mark("walk_back_end", m.timestamp_ms)
    session.timestamps.mark("turn2_start", m.timestamp_ms)
    session.reference_direction = m.hip_vector


def _finish_turn_2(session, m):
    session.timestamps.mark("turn2_end", m.timestamp_ms)
    session.timestamps.mark("sit_down_start", m.timestamp_ms)


def _finish_sit_down(session, m):
    session.timestamps.mark("sit_down_end", m.timestamp_ms)


@dataclass(frozen=True)
class Transition:
    guard: Callable[[TUGSession, Measurement, TUGThresholds], bool]
    action: Callable[[TUGSession, Measurement], None]
    next_phase: TUGPhase
    prompt: str
    needs_hip_angle: bool = False


TRANSITIONS: Dict[TUGPhase, Transition] = {
    TUGPhase.AWAITING_START: Transition(
        _always, _no_action, TUGPhase.AWAITING_STAND_UP, "Sit down"),
    TUGPhase.AWAITING_STAND_UP: Transition(
        _stand_up_started, _begin_stand_up, TUGPhase.AWAITING_STOOD_UP, "Stand up",
        needs_hip_angle=True),
    TUGPhase.AWAITING_STOOD_UP: Transition(
        _stood_up, _finish_stand_up, TUGPhase.WALKING_FORWARD, "Walk forward",
        needs_hip_angle=True),
    TUGPhase.WALKING_FORWARD: Transition(
        _walked_forward, _finish_walk_forward, TUGPhase.TURNING_1, "Turn"),
    TUGPhase.TURNING_1: Transition(
        _turned, _finish_turn_1, TUGPhase.WALKING_BACK, "Walk back"),
    TUGPhase.WALKING_BACK: Transition(
        _walked_back, _finish_walk_back, TUGPhase.TURNING_2, "Turn"),
    TUGPhase.TURNING_2: Transition(
        _turned, _finish_turn_2, TUGPhase.AWAITING_SIT_DOWN, "Sit down"),
    TUGPhase.AWAITING_SIT_DOWN: Transition(
        _sat_down, _finish_sit_down, TUGPhase.COMPLETE, "Done!",
        needs_hip_angle=True),
}


def required_parts(phase: TUGPhase):
    transition = TRANSITIONS.get(phase)
    if transition is not None and transition.needs_hip_angle:
        return tuple(dict.fromkeys(HIP_PARTS + HIP_ANGLE_PARTS))
    return HIP_PARTS


def advance(session: TUGSession, frame: Optional[Frame], thresholds: TUGThresholds) -> TickResult:
    """
    Apply one tick to the session.

    Returns a TickResult describing the outcome. The session is only mutated
    when the current state's guard passes.

    Raises:
        UnexpectedPhase: session.phase has no row in the transition table
    """
    phase = session.phase
    result = TickResult(previous_phase=phase, phase=phase, prompt=session.prompt)

    if phase == TUGPhase.COMPLETE:
        return result

    transition = TRANSITIONS.get(phase)
    if transition is None:
        raise UnexpectedPhase(phase)

    if frame is None:
        result.stall_reason = "no_frame"
        return result

    needed = required_parts(phase)
    if not frame.has(*needed):
        missing = [p.value for p in needed if not frame.has(p)]
        result.stall_reason = "missing_keypoints"
        logger.debug("Stall in %s, missing %s", phase.name, missing)
        return result

    try:
        m = measure(frame, thresholds, with_hip_angle=transition.needs_hip_angle)
        result.hip_angle = m.hip_angle
        fired = transition.guard(session, m, thresholds)
    except GeometryError as e:
        result.stall_reason = type(e).__name__
        logger.debug("Stall in %s: %s", phase.name, e)
        return result

    if not fired:
        return result

    latest = session.timestamps.latest()
    if latest is not None and m.timestamp_ms < latest:
        result.stall_reason = "timestamp_out_of_order"
        logger.debug("Stall in %s: tick at %.0f ms precedes %.0f ms", phase.name, m.timestamp_ms, latest)
        return result

    transition.action(session, m)
    session.phase = transition.next_phase
    session.prompt = transition.prompt

    result.phase = session.phase
    result.transitioned = True
    result.prompt = session.prompt
    logger.info("TUG phase %s -> %s at %.0f ms", phase.name, session.phase.name, m.timestamp_ms)
    return result
