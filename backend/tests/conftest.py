"""
Test fixtures for the TUG backend test suite.
"""
import math
import os
import sys
import pytest
import pytest_asyncio

# Disable rate limiting during tests
os.environ["TESTING"] = "true"

# Ensure the backend directory is on sys.path
BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

from httpx import AsyncClient, ASGITransport  # noqa: E402
from app.main import app  # noqa: E402
from analysis.tug import TUGThresholds, build_frame  # noqa: E402


def make_pose(hip_angle=170.0, center=(0.0, 0.0), hip_vector=(1.0, 0.0),
              score=0.9, limb=100.0, omit=()):
    """
    Synthetic PoseNet-style keypoints.

    The hips sit at center -/+ hip_vector/2. The left shoulder is `limb` pixels
    straight above the left hip and the left knee is placed so that the
    shoulder-hip-knee angle equals hip_angle.
    """
    cx, cy = center
    vx, vy = hip_vector
    lhx, lhy = cx - vx / 2, cy - vy / 2
    theta = math.radians(hip_angle)
    points = {
        "leftHip": (lhx, lhy),
        "rightHip": (cx + vx / 2, cy + vy / 2),
        "leftShoulder": (lhx, lhy - limb),
        "leftKnee": (lhx + limb * math.sin(theta), lhy - limb * math.cos(theta)),
    }
    return [
        {"part": part, "x": x, "y": y, "score": score}
        for part, (x, y) in points.items()
        if part not in omit
    ]


@pytest.fixture
def pose():
    return make_pose


@pytest.fixture
def frame():
    def _frame(timestamp_ms=0.0, pose_score=0.9, **kwargs):
        return build_frame(make_pose(**kwargs), pose_score, timestamp_ms)
    return _frame


@pytest.fixture
def unit_thresholds():
    """1 pixel == 1 metre when the hips are 1 pixel apart."""
    return TUGThresholds(hip_separation_m=1.0)


@pytest.fixture
def full_session_script():
    """
    (timestamp_ms, make_pose kwargs) for a complete TUG run at unit scale.

    Durations: stand up 1.0, walk forward 3.0, turn 1.5, walk back 2.5,
    turn 1.5, sit down 1.5 → total 11.0 s
    """
    return [
        (0, dict(hip_angle=100)),
        (1000, dict(hip_angle=150)),
        (2000, dict(hip_angle=180)),
        (3500, dict(hip_angle=180, center=(0.0, 0.5))),
        (5000, dict(hip_angle=180, center=(0.0, 0.9))),
        (6500, dict(hip_angle=180, center=(0.0, 0.9), hip_vector=(-1.0, 0.0))),
        (9000, dict(hip_angle=180, center=(0.0, 0.0), hip_vector=(-1.0, 0.0))),
        (10500, dict(hip_angle=180, center=(0.0, 0.0), hip_vector=(1.0, 0.0))),
        (12000, dict(hip_angle=140)),
    ]


@pytest_asyncio.fixture
async def async_client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
