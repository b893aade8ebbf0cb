"""
실시간 TUG 파이프라인 예외 정의

Per-tick errors (AcquisitionFailure, LowConfidence, GeometryError) never end a
session; the runner skips or stalls the tick. ModelUnavailable is the only
error that makes a session impossible.
"""


class TUGError(Exception):
    """Base class for all TUG tracking errors."""


class ModelUnavailable(TUGError):
    """포즈 추정 모델 로드 실패 (세션 시작 불가)"""


class AcquisitionFailure(TUGError):
    """한 프레임의 영상 취득 또는 추론 실패 (다음 틱에서 재시도)"""


class LowConfidence(TUGError):
    """전체 포즈 신뢰도가 기준 미만"""

    def __init__(self, score: float, threshold: float):
        super().__init__(f"pose score {score:.2f} below {threshold:.2f}")
        self.score = score
        self.threshold = threshold


class GeometryError(TUGError):
    """Geometry cannot be evaluated for this tick."""


class DegenerateTriangle(GeometryError):
    """Two of the three joint points coincide."""


class DegenerateScale(GeometryError):
    """Hip keypoints coincide, so no pixel-to-metre scale exists."""


class DegenerateVector(GeometryError):
    """A direction vector has zero length."""


class UnexpectedPhase(TUGError):
    """Phase value outside the transition table."""

    def __init__(self, phase):
        super().__init__(f"unexpected TUG phase: {phase!r}")
        self.phase = phase


class IncompleteSession(TUGError):
    """Report requested before every phase boundary was recorded."""

    def __init__(self, missing):
        super().__init__("missing phase boundaries: " + ", ".join(missing))
        self.missing = list(missing)


class UnknownBodyPart(TUGError, ValueError):
    """Keypoint name is not a known body part."""

    def __init__(self, name):
        super().__init__(f"unknown body part: {name!r}")
        self.name = name
