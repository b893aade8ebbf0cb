"""Tests for the pose result → Frame adapter."""
import pytest

from analysis.tug.errors import LowConfidence, UnknownBodyPart
from analysis.tug.keypoints import (
    BodyPart,
    MEDIAPIPE_INDEX,
    build_frame,
    frame_from_mediapipe,
    mediapipe_to_keypoints,
)


class TestBodyPart:
    @pytest.mark.parametrize("name", ["leftHip", "left_hip", "LEFT_HIP", "lefthip"])
    def test_parse_spellings(self, name):
        assert BodyPart.parse(name) is BodyPart.LEFT_HIP

    def test_parse_member(self):
        assert BodyPart.parse(BodyPart.RIGHT_KNEE) is BodyPart.RIGHT_KNEE

    def test_unknown_part(self):
        with pytest.raises(UnknownBodyPart):
            BodyPart.parse("leftTail")

    def test_unknown_part_is_value_error(self):
        with pytest.raises(ValueError):
            BodyPart.parse("hips")


class TestBuildFrame:
    def test_keyed_by_part(self):
        frame = build_frame([
            {"part": "rightHip", "x": 20, "y": 30, "score": 0.9},
            {"part": "leftHip", "x": 10, "y": 30, "score": 0.8},
        ], 0.7, 1234)
        assert frame.get(BodyPart.LEFT_HIP).x == 10
        assert frame.get(BodyPart.RIGHT_HIP).confidence == 0.9
        assert frame.timestamp_ms == 1234
        assert frame.score == 0.7
        assert frame.has(BodyPart.LEFT_HIP, BodyPart.RIGHT_HIP)
        assert not frame.has(BodyPart.LEFT_KNEE)

    def test_posenet_position_shape(self):
        frame = build_frame([
            {"part": "leftShoulder", "position": {"x": 1.5, "y": 2.5}, "score": 0.95},
        ], 0.9, 0)
        assert frame.position(BodyPart.LEFT_SHOULDER) == (1.5, 2.5)

    def test_low_pose_confidence(self):
        with pytest.raises(LowConfidence) as exc:
            build_frame([], 0.49, 0)
        assert exc.value.threshold == 0.5

    def test_pose_confidence_at_threshold_accepted(self):
        frame = build_frame([], 0.5, 0)
        assert frame.score == 0.5

    def test_custom_pose_threshold(self):
        with pytest.raises(LowConfidence):
            build_frame([], 0.6, 0, min_pose_confidence=0.7)

    def test_part_confidence_filter(self):
        frame = build_frame([
            {"part": "leftHip", "x": 1, "y": 1, "score": 0.1},
            {"part": "rightHip", "x": 2, "y": 1, "score": 0.9},
        ], 0.9, 0, min_part_confidence=0.3)
        assert frame.get(BodyPart.LEFT_HIP) is None
        assert frame.get(BodyPart.RIGHT_HIP) is not None

    def test_duplicate_part_keeps_most_confident(self):
        frame = build_frame([
            {"part": "leftHip", "x": 1, "y": 1, "score": 0.4},
            {"part": "leftHip", "x": 5, "y": 5, "score": 0.9},
            {"part": "leftHip", "x": 9, "y": 9, "score": 0.2},
        ], 0.9, 0)
        assert frame.get(BodyPart.LEFT_HIP).x == 5

    def test_unknown_name_rejected_at_construction(self):
        with pytest.raises(UnknownBodyPart):
            build_frame([{"part": "leftHipp", "x": 0, "y": 0, "score": 1.0}], 0.9, 0)

    def test_frame_is_read_only(self):
        frame = build_frame([{"part": "nose", "x": 0, "y": 0, "score": 1.0}], 0.9, 0)
        with pytest.raises(TypeError):
            frame.keypoints[BodyPart.NOSE] = None


class TestMediaPipe:
    def _landmarks(self, visibility=0.9):
        return [[i / 100, i / 50, 0.0, visibility] for i in range(33)]

    def test_index_mapping_covers_all_parts(self):
        assert set(MEDIAPIPE_INDEX) == set(BodyPart)

    def test_scaled_to_pixels(self):
        keypoints = mediapipe_to_keypoints(self._landmarks(), image_size=(640, 480))
        left_hip = next(kp for kp in keypoints if kp["part"] == "leftHip")
        assert left_hip["x"] == pytest.approx(0.23 * 640)
        assert left_hip["y"] == pytest.approx(0.46 * 480)

    def test_frame_score_is_mean_visibility(self):
        frame = frame_from_mediapipe(self._landmarks(0.8), 100)
        assert frame.score == pytest.approx(0.8)
        assert len(frame.keypoints) == len(BodyPart)

    def test_empty_landmarks_low_confidence(self):
        with pytest.raises(LowConfidence):
            frame_from_mediapipe([], 100)

    def test_short_landmark_list(self):
        frame = frame_from_mediapipe(self._landmarks()[:13], 0)
        assert frame.has(BodyPart.LEFT_SHOULDER)
        assert not frame.has(BodyPart.LEFT_HIP)

    def test_short_landmark_entries_skipped(self):
        landmarks = self._landmarks()
        landmarks[23] = [0.5]
        keypoints = mediapipe_to_keypoints(landmarks)
        parts = {kp["part"] for kp in keypoints}
        assert "leftHip" not in parts
        assert "rightHip" in parts
