"""
TUG 임계값 설정

기본값은 단일 카메라 TUG 프로토콜 기준:
- 기립 시작: 엉덩이 각도 160도 이하
- 기립 완료: 175도 초과
- 착석: 155도 이하
- 회전: 120도 초과
- 보행 거리: 0.8m (엉덩이 간 거리 0.35m로 스케일 환산)

환경변수 (TUG_*) 또는 .env 파일로 카메라/대상자별 조정 가능.
"""
import os
from dataclasses import dataclass, asdict, fields
from typing import Dict, Optional

from dotenv import load_dotenv


@dataclass
class TUGThresholds:
    """TUG Phase Machine 파라미터"""
    walk_distance_m: float = 0.8
    hip_separation_m: float = 0.35
    stand_up_start_angle: float = 160
    stood_up_angle: float = 175
    sit_down_angle: float = 155
    turn_angle: float = 120
    speed_update_interval_ms: float = 200
    speed_display_change: float = 0.1
    min_keypoint_confidence: float = 0.8     # 어깨 샘플 기록 기준
    min_pose_confidence: float = 0.5         # 프레임 전체 신뢰도
    min_part_confidence: float = 0.0         # 이 값 미만 키포인트는 누락 처리
    persistent_failure_ticks: int = 30

    def __post_init__(self):
        self.validate()

    def validate(self):
        for name in ("walk_distance_m", "hip_separation_m", "speed_update_interval_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        for name in ("stand_up_start_angle", "stood_up_angle", "sit_down_angle", "turn_angle"):
            value = getattr(self, name)
            if not 0 <= value <= 180:
                raise ValueError(f"{name} must be within [0, 180], got {value}")
        for name in ("min_keypoint_confidence", "min_pose_confidence", "min_part_confidence"):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.persistent_failure_ticks < 1:
            raise ValueError("persistent_failure_ticks must be at least 1")

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "TUGThresholds":
        """TUG_<FIELD> 환경변수에서 읽기 (예: TUG_WALK_DISTANCE_M=1.0)"""
        if environ is None:
            load_dotenv()
            environ = os.environ

        overrides = {}
        for f in fields(cls):
            raw = environ.get(f"TUG_{f.name.upper()}")
            if raw is None or raw == "":
                continue
            try:
                overrides[f.name] = int(raw) if f.type in (int, "int") else float(raw)
            except ValueError:
                raise ValueError(f"TUG_{f.name.upper()} is not a number: {raw!r}")
        return cls(**overrides)
