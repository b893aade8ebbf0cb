import math
from typing import NamedTuple

import numpy as np

from .errors import DegenerateTriangle, DegenerateScale, DegenerateVector

# 이 값 이하의 길이는 0으로 간주
EPSILON = 1e-9


class Vector2(NamedTuple):
    """2D position or direction (pixel or normalised coordinates)."""
    x: float
    y: float


def planar_distance(p, q) -> float:
    """Euclidean distance between two points."""
    return math.hypot(q[0] - p[0], q[1] - p[1])


def midpoint(p, q) -> Vector2:
    return Vector2((p[0] + q[0]) / 2, (p[1] + q[1]) / 2)


def direction(p, q) -> Vector2:
    """Vector from p to q."""
    return Vector2(q[0] - p[0], q[1] - p[1])


def joint_angle_degrees(point_a, point_b, point_c) -> float:
    """
    Angle at point_b between rays B→A and B→C.

    Uses the law of cosines on the three pairwise distances. The cosine is
    clipped to [-1, 1] so that near-colinear input never leaves the arccos
    domain.

    Args:
        point_a, point_b, point_c: (x, y) pairs

    Returns:
        Angle in degrees, within [0, 180]

    Raises:
        DegenerateTriangle: if any two of the points coincide or a coordinate is NaN/inf
    """
    ab = planar_distance(point_a, point_b)
    bc = planar_distance(point_b, point_c)
    ac = planar_distance(point_a, point_c)

    if not all(math.isfinite(d) for d in (ab, bc, ac)):
        raise DegenerateTriangle(
            f"non-finite coordinates: A={tuple(point_a)}, B={tuple(point_b)}, C={tuple(point_c)}"
        )
    if ab <= EPSILON or bc <= EPSILON or ac <= EPSILON:
        raise DegenerateTriangle(
            f"coincident points: A={tuple(point_a)}, B={tuple(point_b)}, C={tuple(point_c)}"
        )

    cosine_angle = (ab ** 2 + bc ** 2 - ac ** 2) / (2 * ab * bc)
    cosine_angle = np.clip(cosine_angle, -1.0, 1.0)
    return float(np.degrees(np.arccos(cosine_angle)))


def turn_angle_degrees(v1, v2) -> float:
    """Angle between two direction vectors (0-180 degrees)."""
    a = np.array([v1[0], v1[1]], dtype=float)
    b = np.array([v2[0], v2[1]], dtype=float)

    a_norm = np.linalg.norm(a)
    b_norm = np.linalg.norm(b)

    if not (np.isfinite(a_norm) and np.isfinite(b_norm)):
        raise DegenerateVector(f"non-finite direction: {tuple(v1)}, {tuple(v2)}")
    if a_norm <= EPSILON or b_norm <= EPSILON:
        raise DegenerateVector(f"zero-length direction: {tuple(v1)}, {tuple(v2)}")

    cosine = np.dot(a, b) / (a_norm * b_norm)
    cosine = np.clip(cosine, -1.0, 1.0)
    return float(np.degrees(np.arccos(cosine)))


def pixel_to_metric_scale(hip_left, hip_right, known_hip_separation_m: float) -> float:
    """Metres per pixel, from the known real-world distance between the hips."""
    pixels = planar_distance(hip_left, hip_right)
    if not math.isfinite(pixels):
        raise DegenerateScale(f"non-finite hip keypoints: {tuple(hip_left)}, {tuple(hip_right)}")
    if pixels <= EPSILON:
        raise DegenerateScale(f"hip keypoints coincide at {tuple(hip_left)}")
    return known_hip_separation_m / pixels
