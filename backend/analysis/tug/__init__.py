"""
Realtime TUG (Timed Up and Go) analysis package

Pose keypoints per tick → phase state machine → timed phases + CSV export.
"""

from .config import TUGThresholds
from .errors import (
    TUGError,
    ModelUnavailable,
    AcquisitionFailure,
    LowConfidence,
    GeometryError,
    DegenerateTriangle,
    DegenerateScale,
    DegenerateVector,
    UnexpectedPhase,
    IncompleteSession,
    UnknownBodyPart,
)
from .keypoints import BodyPart, Keypoint, Frame, build_frame, frame_from_mediapipe
from .phase_machine import TUGPhase, TUGSession, PhaseTimestamps, TickResult, advance
from .session_recorder import SessionRecorder, TUGReport
from .runner import TUGRunner

__all__ = [
    'TUGThresholds',
    'TUGError',
    'ModelUnavailable',
    'AcquisitionFailure',
    'LowConfidence',
    'GeometryError',
    'DegenerateTriangle',
    'DegenerateScale',
    'DegenerateVector',
    'UnexpectedPhase',
    'IncompleteSession',
    'UnknownBodyPart',
    'BodyPart',
    'Keypoint',
    'Frame',
    'build_frame',
    'frame_from_mediapipe',
    'TUGPhase',
    'TUGSession',
    'PhaseTimestamps',
    'TickResult',
    'advance',
    'SessionRecorder',
    'TUGReport',
    'TUGRunner',
]
