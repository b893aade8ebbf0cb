"""
Pose result → Frame adapter

Normalises one pose-estimation result into a Frame: named 2D keypoints keyed
by BodyPart, plus the capture timestamp and overall pose score.

Two input shapes are supported:
- PoseNet-style keypoint lists: [{'part': 'leftHip', 'x': .., 'y': .., 'score': ..}, ...]
  ('position': {'x', 'y'} and 'confidence' are accepted as well)
- MediaPipe 33-landmark arrays: [[x, y, z, visibility], ...] (normalised 0-1)
"""
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import LowConfidence, UnknownBodyPart
from .geometry import Vector2


class BodyPart(str, Enum):
    NOSE = "nose"
    LEFT_EYE = "leftEye"
    RIGHT_EYE = "rightEye"
    LEFT_EAR = "leftEar"
    RIGHT_EAR = "rightEar"
    LEFT_SHOULDER = "leftShoulder"
    RIGHT_SHOULDER = "rightShoulder"
    LEFT_ELBOW = "leftElbow"
    RIGHT_ELBOW = "rightElbow"
    LEFT_WRIST = "leftWrist"
    RIGHT_WRIST = "rightWrist"
    LEFT_HIP = "leftHip"
    RIGHT_HIP = "rightHip"
    LEFT_KNEE = "leftKnee"
    RIGHT_KNEE = "rightKnee"
    LEFT_ANKLE = "leftAnkle"
    RIGHT_ANKLE = "rightAnkle"

    @classmethod
    def parse(cls, name) -> "BodyPart":
        """'leftHip', 'left_hip', 'LEFT_HIP' 모두 허용"""
        if isinstance(name, cls):
            return name
        key = str(name).replace("_", "").lower()
        try:
            return _PART_LOOKUP[key]
        except KeyError:
            raise UnknownBodyPart(name) from None


_PART_LOOKUP = {part.value.lower(): part for part in BodyPart}

# MediaPipe 랜드마크 인덱스 → BodyPart (33점 중 PoseNet 17점에 해당하는 것만)
MEDIAPIPE_INDEX: Dict[BodyPart, int] = {
    BodyPart.NOSE: 0,
    BodyPart.LEFT_EYE: 2,
    BodyPart.RIGHT_EYE: 5,
    BodyPart.LEFT_EAR: 7,
    BodyPart.RIGHT_EAR: 8,
    BodyPart.LEFT_SHOULDER: 11,
    BodyPart.RIGHT_SHOULDER: 12,
    BodyPart.LEFT_ELBOW: 13,
    BodyPart.RIGHT_ELBOW: 14,
    BodyPart.LEFT_WRIST: 15,
    BodyPart.RIGHT_WRIST: 16,
    BodyPart.LEFT_HIP: 23,
    BodyPart.RIGHT_HIP: 24,
    BodyPart.LEFT_KNEE: 25,
    BodyPart.RIGHT_KNEE: 26,
    BodyPart.LEFT_ANKLE: 27,
    BodyPart.RIGHT_ANKLE: 28,
}


@dataclass(frozen=True)
class Keypoint:
    part: BodyPart
    x: float
    y: float
    confidence: float

    @property
    def position(self) -> Vector2:
        return Vector2(self.x, self.y)


@dataclass(frozen=True)
class Frame:
    """한 틱의 포즈 결과"""
    keypoints: Mapping[BodyPart, Keypoint]
    timestamp_ms: float
    score: float
    image_size: Optional[Tuple[int, int]] = field(default=None)

    def get(self, part: BodyPart) -> Optional[Keypoint]:
        return self.keypoints.get(part)

    def has(self, *parts: BodyPart) -> bool:
        return all(p in self.keypoints for p in parts)

    def position(self, part: BodyPart) -> Optional[Vector2]:
        kp = self.keypoints.get(part)
        return kp.position if kp is not None else None


def _read_raw_keypoint(item) -> Tuple[str, float, float, float]:
    if isinstance(item, Mapping):
        name = item.get("part", item.get("partName", item.get("name")))
        if "position" in item:
            x, y = item["position"]["x"], item["position"]["y"]
        else:
            x, y = item["x"], item["y"]
        confidence = item.get("score", item.get("confidence", 0.0))
    else:
        name, x, y, confidence = item.part, item.x, item.y, item.score
    return name, float(x), float(y), float(confidence)


def build_frame(
    raw_keypoints: Iterable,
    pose_score: float,
    timestamp_ms: float,
    min_pose_confidence: float = 0.5,
    min_part_confidence: float = 0.0,
    image_size: Optional[Tuple[int, int]] = None,
) -> Frame:
    """
    Build a Frame from one pose-estimation result.

    Keypoints below min_part_confidence are left out of the frame, so
    downstream they count as missing. When a part appears twice the more
    confident one is kept.

    Raises:
        LowConfidence: if pose_score < min_pose_confidence
        UnknownBodyPart: if a keypoint name is not a BodyPart
    """
    if pose_score < min_pose_confidence:
        raise LowConfidence(pose_score, min_pose_confidence)

    keypoints: Dict[BodyPart, Keypoint] = {}
    for item in raw_keypoints:
        name, x, y, confidence = _read_raw_keypoint(item)
        part = BodyPart.parse(name)
        if confidence < min_part_confidence:
            continue
        existing = keypoints.get(part)
        if existing is None or confidence > existing.confidence:
            keypoints[part] = Keypoint(part, x, y, confidence)

    return Frame(
        keypoints=MappingProxyType(keypoints),
        timestamp_ms=float(timestamp_ms),
        score=float(pose_score),
        image_size=image_size,
    )


def mediapipe_to_keypoints(
    landmarks: Sequence[Sequence[float]],
    image_size: Optional[Tuple[int, int]] = None,
) -> List[Dict]:
    """
    Convert a MediaPipe 33-landmark array to PoseNet-style keypoint dicts.

    Args:
        landmarks: [[x, y, z, visibility], ...] in normalised coordinates
        image_size: (width, height); when given, x/y are scaled to pixels

    Returns:
        list of {'part', 'x', 'y', 'score'} for the parts present
    """
    width, height = image_size if image_size else (1, 1)
    keypoints = []
    for part, idx in MEDIAPIPE_INDEX.items():
        if idx >= len(landmarks):
            continue
        lm = landmarks[idx]
        if len(lm) < 2:
            continue
        visibility = lm[3] if len(lm) > 3 else 1.0
        keypoints.append({
            "part": part.value,
            "x": lm[0] * width,
            "y": lm[1] * height,
            "score": visibility,
        })
    return keypoints


def frame_from_mediapipe(
    landmarks: Sequence[Sequence[float]],
    timestamp_ms: float,
    image_size: Optional[Tuple[int, int]] = None,
    min_pose_confidence: float = 0.5,
    min_part_confidence: float = 0.0,
) -> Frame:
    """MediaPipe 랜드마크 → Frame. 포즈 점수는 매핑된 점들의 평균 visibility."""
    keypoints = mediapipe_to_keypoints(landmarks, image_size)
    if keypoints:
        pose_score = sum(kp["score"] for kp in keypoints) / len(keypoints)
    else:
        pose_score = 0.0
    return build_frame(
        keypoints,
        pose_score,
        timestamp_ms,
        min_pose_confidence=min_pose_confidence,
        min_part_confidence=min_part_confidence,
        image_size=image_size,
    )
