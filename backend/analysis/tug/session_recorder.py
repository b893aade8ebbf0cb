"""
TUG 세션 기록 및 CSV 리포트 생성

CSV 형식:
    time,x,y
    <epoch ms>,<pixel x>,<pixel y>      (왼쪽 어깨 샘플, 기록 순서)
    ...
    TUG Times
    Total Time,<초, 소수점 2자리>
    Stand Up,...
    Walk Forward,...
    Turn 1,...
    Walk Back,...
    Turn 2,...
    Sit Down,...
"""
import io
import csv
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import IncompleteSession
from .keypoints import BodyPart, Frame
from .phase_machine import PHASE_SEGMENTS, Sample, TUGSession


def _format_number(value: float) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


@dataclass
class TUGReport:
    durations: Dict[str, float]          # 라벨 → 초
    total_seconds: float
    samples: List[Sample] = field(default_factory=list)
    timestamps: Dict[str, Optional[float]] = field(default_factory=dict)

    def to_csv(self) -> str:
        output = io.StringIO()
        writer = csv.writer(output, lineterminator="\n")

        writer.writerow(["time", "x", "y"])
        for sample in self.samples:
            writer.writerow([_format_number(sample.time), _format_number(sample.x), _format_number(sample.y)])

        writer.writerow(["TUG Times"])
        writer.writerow(["Total Time", f"{self.total_seconds:.2f}"])
        for label, _ in PHASE_SEGMENTS:
            writer.writerow([label, f"{self.durations[label]:.2f}"])

        return output.getvalue()

    def summary_text(self) -> str:
        lines = ["Done!", f"Total Time: {self.total_seconds:.2f} s"]
        for label, _ in PHASE_SEGMENTS:
            lines.append(f"{label}: {self.durations[label]:.2f} s")
        return "\n".join(lines)

    def to_dict(self) -> Dict:
        return {
            "total_time_seconds": round(self.total_seconds, 2),
            "phases": {label: round(self.durations[label], 2) for label, _ in PHASE_SEGMENTS},
            "timestamps": self.timestamps,
            "sample_count": len(self.samples),
        }


class SessionRecorder:
    """Collects left-shoulder samples and turns a finished session into a report."""

    def __init__(self, min_keypoint_confidence: float = 0.8,
                 tracked_part: BodyPart = BodyPart.LEFT_SHOULDER):
        self.min_keypoint_confidence = min_keypoint_confidence
        self.tracked_part = tracked_part

    def record(self, session: TUGSession, frame: Optional[Frame]) -> Optional[Sample]:
        if frame is None:
            return None
        kp = frame.get(self.tracked_part)
        if kp is None or kp.confidence < self.min_keypoint_confidence:
            return None
        sample = Sample(frame.timestamp_ms, kp.x, kp.y)
        session.samples.append(sample)
        return sample

    def build_report(self, session: TUGSession) -> TUGReport:
        missing = session.timestamps.missing()
        if missing:
            raise IncompleteSession(missing)
        return TUGReport(
            durations=session.timestamps.durations(),
            total_seconds=session.timestamps.total_seconds(),
            samples=list(session.samples),
            timestamps=session.timestamps.to_dict(),
        )
