"""
Posture engine replay tool.
Runs recorded detection frames (one JSON object per line) through the
posture analyzer and prints one verdict per frame.
"""
import argparse
import json
import logging
import sys
from typing import Iterator, List, Optional

from config.defaults import CALIBRATION_SETTINGS, SENSITIVITY_SETTINGS
from core.calibration import (
    CalibrationConfig,
    CalibrationError,
    CalibrationService,
    summarize_baseline,
)
from core.landmark_extractor import LandmarkExtractor
from core.posture_analyzer import PostureAnalyzer, PostureDiagnostics
from core.processing import frame_from_dict
from core.screen_angle import extract_screen_angle_signals
from core.types import CalibrationData, DetectionFrame, RuleToggles
from utils.logging_config import configure_logging

logger = logging.getLogger(__name__)


def read_frames(path: str) -> Iterator[DetectionFrame]:
    """Yield frames from a JSON-lines file, skipping unusable lines"""
    with open(path, encoding="utf-8") as handle:
        for line_no, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning("Line %d: invalid JSON (%s)", line_no, e)
                continue
            frame = frame_from_dict(data) if isinstance(data, dict) else None
            if frame is None:
                logger.warning("Line %d: not a 33-landmark frame", line_no)
                continue
            yield frame


def load_calibration(path: str) -> CalibrationData:
    with open(path, encoding="utf-8") as handle:
        return CalibrationData.from_dict(json.load(handle))


def calibrate(frames: List[DetectionFrame]) -> CalibrationData:
    """Build a baseline from the given frames"""
    service = CalibrationService(CalibrationConfig(total_samples=max(1, len(frames))))
    for frame in frames:
        angles = LandmarkExtractor.extract_posture_angles(
            frame.world_landmarks, frame.landmarks, frame.frame_width
        )
        service.add_sample(angles, extract_screen_angle_signals(frame.landmarks))
    result = service.compute_baseline()
    return result.baseline


class ReplayApp:
    """Replay recorded frames through one analyzer"""

    def __init__(self, args: argparse.Namespace):
        self.args = args
        self.analyzer: Optional[PostureAnalyzer] = None

    def _print_diagnostics(self, event: PostureDiagnostics) -> None:
        print(json.dumps(event.as_dict()), file=sys.stderr)

    def run(self) -> int:
        frames = list(read_frames(self.args.frames))
        if not frames:
            logger.error("No usable frames in %s", self.args.frames)
            return 1

        if self.args.calibration:
            calibration = load_calibration(self.args.calibration)
        else:
            try:
                calibration = calibrate(frames[:self.args.calibration_frames])
            except CalibrationError as e:
                logger.error("Calibration failed: %s", e)
                return 1
            frames = frames[self.args.calibration_frames:]
        logger.info(summarize_baseline(calibration))

        self.analyzer = PostureAnalyzer(
            calibration,
            sensitivity=self.args.sensitivity,
            rule_toggles=RuleToggles(),
            debug_mode=self.args.debug,
            diagnostics_callback=self._print_diagnostics if self.args.debug else None,
        )

        bad_frames = 0
        for frame in frames:
            status = self.analyzer.analyze(frame).status
            if not status.is_good:
                bad_frames += 1
            rules = ", ".join(f"{v.rule}({v.severity:.2f})" for v in status.violations) or "-"
            verdict = "GOOD" if status.is_good else "BAD "
            print(f"{status.timestamp:>12.0f}  {verdict}  conf={status.confidence:.2f}  {rules}")

        print(f"{len(frames)} frames analysed, {bad_frames} with violations")
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("frames", help="JSON-lines file of detection frames")
    parser.add_argument("--calibration", help="JSON file with saved calibration data")
    parser.add_argument("--calibration-frames", type=int,
                        default=CALIBRATION_SETTINGS['total_samples'],
                        help="frames used to calibrate when no calibration file is given")
    parser.add_argument("--sensitivity", type=float, default=SENSITIVITY_SETTINGS['default'])
    parser.add_argument("--debug", action="store_true", help="emit per-frame diagnostics")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(debug=args.debug)
    return ReplayApp(args).run()


if __name__ == "__main__":
    sys.exit(main())
