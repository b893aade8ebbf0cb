"""
어깨 이동 속도 추정 (참고용 텔레메트리, 단계 판정에는 사용하지 않음)
"""
import logging
from dataclasses import dataclass
from typing import Optional

from .geometry import Vector2, planar_distance
from .keypoints import BodyPart, Frame

logger = logging.getLogger(__name__)


@dataclass
class SamplerState:
    previous_position: Optional[Vector2] = None
    previous_time: Optional[float] = None   # ms
    last_speed: Optional[float] = None      # m/s, most recent estimate
    display_speed: float = 0.0              # m/s, debounced for display


class MotionSampler:
    """
    Rate-limited speed estimator for a single tracked keypoint.

    An estimate is produced at most once per update_interval_ms. Ticks where
    the point or the scale is unavailable are skipped without touching the
    stored position and time, so the next estimate simply spans the gap.
    """

    def __init__(
        self,
        update_interval_ms: float = 200,
        significant_change: float = 0.1,
        tracked_part: BodyPart = BodyPart.LEFT_SHOULDER,
    ):
        self.update_interval_ms = update_interval_ms
        self.significant_change = significant_change
        self.tracked_part = tracked_part
        self.state = SamplerState()

    def reset(self):
        self.state = SamplerState()

    def update(self, frame: Optional[Frame], scale: Optional[float]) -> Optional[float]:
        """
        Args:
            frame: current frame (None when the tick produced no usable pose)
            scale: metres per pixel for this tick (None when unavailable)

        Returns:
            speed in m/s when a new estimate was produced, otherwise None
        """
        if frame is None or scale is None:
            return None
        position = frame.position(self.tracked_part)
        if position is None:
            logger.debug("Tracked point %s not detected", self.tracked_part.value)
            return None

        state = self.state
        now = frame.timestamp_ms

        if state.previous_position is None or state.previous_time is None:
            state.previous_position = position
            state.previous_time = now
            return None

        elapsed_ms = now - state.previous_time
        if elapsed_ms < self.update_interval_ms:
            return None

        distance_m = planar_distance(state.previous_position, position) * scale
        speed = distance_m / (elapsed_ms / 1000.0)

        state.previous_position = position
        state.previous_time = now
        state.last_speed = speed
        if abs(speed - state.display_speed) > self.significant_change:
            state.display_speed = speed
        return speed
