"""
카메라 기반 TUG 실행 (MediaPipe Pose + OpenCV)

Usage:
  python -m analysis.tug.camera --camera 0 --output tug_data.csv

mediapipe / opencv-python are optional ("camera" extra); they are imported
when the source is opened so that the rest of the package works without them.
"""
import logging
from pathlib import Path
from typing import List, Optional, Tuple

import click

from .config import TUGThresholds
from .errors import AcquisitionFailure, ModelUnavailable
from .runner import TUGRunner
from .session_recorder import TUGReport

logger = logging.getLogger(__name__)


class MediaPipePoseSource:
    """웹캠 프레임 → MediaPipe 33점 랜드마크"""

    MODEL_COMPLEXITY = 1

    def __init__(self, camera_index: int = 0, model_complexity: int = MODEL_COMPLEXITY,
                 min_detection_confidence: float = 0.5, min_tracking_confidence: float = 0.5):
        try:
            import cv2
            import mediapipe as mp
        except ImportError as e:
            raise ModelUnavailable(f"camera extra not installed: {e}") from e

        self._cv2 = cv2
        try:
            self.pose = mp.solutions.pose.Pose(
                static_image_mode=False,
                model_complexity=model_complexity,
                smooth_landmarks=True,
                enable_segmentation=False,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
        except Exception as e:
            raise ModelUnavailable(f"MediaPipe Pose could not load: {e}") from e

        self.cap = cv2.VideoCapture(camera_index)
        if not self.cap.isOpened():
            self.pose.close()
            raise ModelUnavailable(f"camera {camera_index} could not be opened")
        logger.info("MediaPipe Pose loaded (model_complexity=%d), camera %d open",
                    model_complexity, camera_index)

    def read(self) -> Tuple[List[List[float]], Tuple[int, int]]:
        """
        Returns:
            (landmarks, (width, height)); landmarks is empty when no person is detected

        Raises:
            AcquisitionFailure: frame read or inference failed for this tick
        """
        ok, image = self.cap.read()
        if not ok:
            raise AcquisitionFailure("camera read failed")
        height, width = image.shape[:2]
        try:
            results = self.pose.process(self._cv2.cvtColor(image, self._cv2.COLOR_BGR2RGB))
        except Exception as e:
            raise AcquisitionFailure(f"pose inference failed: {e}") from e

        if results.pose_landmarks is None:
            return [], (width, height)
        landmarks = [[lm.x, lm.y, lm.z, lm.visibility] for lm in results.pose_landmarks.landmark]
        return landmarks, (width, height)

    def close(self):
        self.cap.release()
        self.pose.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def run_camera(source, runner: TUGRunner, export_path: Optional[Path] = None,
               max_ticks: Optional[int] = None) -> Optional[TUGReport]:
    """
    Drive one TUG session from a pose source until it completes.

    The source only needs a read() -> (landmarks, image_size) method. Reaching
    max_ticks or Ctrl+C stops the session without a report.
    """
    runner.start()
    ticks = 0
    try:
        while runner.running:
            if max_ticks is not None and ticks >= max_ticks:
                logger.info("Tick limit %d reached, stopping", max_ticks)
                runner.stop()
                break
            ticks += 1
            try:
                landmarks, image_size = source.read()
            except AcquisitionFailure as e:
                runner.skip(e)
                continue
            result = runner.tick_mediapipe(landmarks, image_size=image_size)
            if result is not None and result.transitioned:
                logger.info("Prompt: %s", result.prompt)
    except KeyboardInterrupt:
        runner.stop()

    report = runner.last_report
    if report is not None and export_path is not None:
        Path(export_path).write_text(report.to_csv(), encoding="utf-8")
        logger.info("TUG data saved to %s", export_path)
    return report


@click.command(help="Run a live TUG test from a webcam and export tug_data.csv")
@click.option("--camera", default=0, show_default=True, type=int, help="OpenCV camera index")
@click.option("--output", default="tug_data.csv", show_default=True, type=click.Path(dir_okay=False))
@click.option("--model-complexity", default=MediaPipePoseSource.MODEL_COMPLEXITY, show_default=True,
              type=click.IntRange(0, 2))
@click.option("--log-level", default="INFO", show_default=True)
def main(camera: int, output: str, model_complexity: int, log_level: str):
    logging.basicConfig(level=log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    thresholds = TUGThresholds.from_env()
    try:
        source = MediaPipePoseSource(camera, model_complexity=model_complexity)
    except ModelUnavailable as e:
        logger.error("Pose model unavailable: %s", e)
        raise click.ClickException(str(e))

    with source:
        report = run_camera(source, TUGRunner(thresholds), Path(output))

    if report is None:
        click.echo("TUG test stopped before completion, nothing saved.")
    else:
        click.echo(report.summary_text())


if __name__ == "__main__":
    main()
