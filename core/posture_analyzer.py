"""
Posture Analyzer Module.

This module turns one DetectionFrame at a time into a PostureStatus by
composing the engine's stages:

    landmarks -> angles (LandmarkExtractor)
              -> screen-tilt compensation (screen_angle)
              -> per-channel smoothing (ChannelFilterSet)
              -> deviations vs. the current adaptive baseline
              -> rule evaluation (posture_rules)
              -> adaptive baseline update

Expected Inputs:
    - frame: DetectionFrame from the external detector (33 + 33 landmarks,
      millisecond timestamp, frame size).
    - calibration: CalibrationData from the CalibrationService.
    - sensitivity: float in [0, 1]; higher means tighter thresholds.
    - rule_toggles: RuleToggles.

Degradation:
    A malformed frame or one where most of the critical landmarks (ears,
    shoulders) are hidden produces an all-zero "good" result. No frame ever
    raises; the detection session keeps running.

Ordering:
    The baseline is read for this frame's deviations before it is updated
    with this frame's verdict. Those are two separate calls, so the
    baseline always lags its own update by one frame.

Debugging:
    With debug_mode enabled every analysed frame emits a PostureDiagnostics
    event to diagnostics_callback (when given) and a DEBUG log line.

Usage:
    analyzer = PostureAnalyzer(calibration, sensitivity=0.5, rule_toggles=RuleToggles())
    result = analyzer.analyze(frame)
    if not result.status.is_good:
        ...

Thread-Safety:
    Not thread-safe. Use one analyzer per frame stream.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from config.defaults import VISIBILITY_SETTINGS
from core.adaptive_baseline import AdaptiveBaseline
from core.landmark_extractor import LandmarkExtractor
from core.posture_rules import (
    evaluate_all_rules,
    forward_head_scores,
    get_scaled_thresholds,
)
from core.screen_angle import (
    compensate_angles,
    estimate_angle_change,
    estimate_angle_change_multi,
    extract_screen_angle_signals,
)
from core.smoothing import ChannelFilterSet
from core.types import (
    CHANNELS,
    CRITICAL_LANDMARKS,
    AngleDeviations,
    AnalyzeResult,
    CalibrationData,
    DetectionFrame,
    Landmark,
    PostureAngles,
    PostureStatus,
    PostureViolation,
    RuleThresholds,
    RuleToggles,
    ScreenAngleReference,
)

logger = logging.getLogger(__name__)

MIN_VISIBILITY = VISIBILITY_SETTINGS['min_visibility']


@dataclass(frozen=True)
class PostureDiagnostics:
    """Structured per-frame debug event."""
    timestamp: float
    raw_angles: PostureAngles
    pitch_delta: float
    smoothed_angles: PostureAngles
    baseline: PostureAngles
    deviations: AngleDeviations
    thresholds: RuleThresholds
    forward_head_scores: Dict[str, Optional[float]]
    violations: Tuple[PostureViolation, ...]
    good_posture_duration: float

    def as_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "raw_angles": self.raw_angles.as_dict(),
            "pitch_delta": self.pitch_delta,
            "smoothed_angles": self.smoothed_angles.as_dict(),
            "baseline": self.baseline.as_dict(),
            "deviations": self.deviations.as_dict(),
            "thresholds": asdict(self.thresholds),
            "forward_head_scores": dict(self.forward_head_scores),
            "violations": [v.rule for v in self.violations],
            "good_posture_duration": self.good_posture_duration,
        }


DiagnosticsCallback = Callable[[PostureDiagnostics], None]


def _finite_or_none(value: Any) -> Optional[float]:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _visibility(landmark: Landmark) -> float:
    """Visibility in [0, 1]; missing or non-numeric counts as 0."""
    vis = _finite_or_none(getattr(landmark, "visibility", None))
    return 0.0 if vis is None else min(1.0, max(0.0, vis))


def compute_confidence(world_landmarks: Sequence[Landmark]) -> float:
    """Mean visibility of the critical landmarks."""
    total = sum(_visibility(world_landmarks[idx]) for idx in CRITICAL_LANDMARKS)
    return min(1.0, max(0.0, total / len(CRITICAL_LANDMARKS)))


def has_low_visibility(world_landmarks: Sequence[Landmark]) -> bool:
    """True when more than half of the critical landmarks are hard to see."""
    low = sum(1 for idx in CRITICAL_LANDMARKS if _visibility(world_landmarks[idx]) < MIN_VISIBILITY)
    return low > len(CRITICAL_LANDMARKS) / 2


class PostureAnalyzer:
    """
    Stateful per-stream orchestrator.

    Owns the smoothing filters, the adaptive baseline and the last frame
    timestamp. Calibration, sensitivity, toggles and screen references can
    be swapped at any time through the update_* methods.
    """

    def __init__(
        self,
        calibration: CalibrationData,
        sensitivity: float,
        rule_toggles: RuleToggles,
        screen_angle_reference: Optional[ScreenAngleReference] = None,
        screen_angle_references: Optional[Sequence[ScreenAngleReference]] = None,
        threshold_overrides: Optional[Mapping[str, Optional[float]]] = None,
        debug_mode: bool = False,
        diagnostics_callback: Optional[DiagnosticsCallback] = None,
    ):
        self._calibration = calibration
        self.sensitivity = sensitivity
        self.rule_toggles = rule_toggles
        self.threshold_overrides = dict(threshold_overrides) if threshold_overrides else None
        self.screen_angle_reference = (
            screen_angle_reference
            if screen_angle_reference is not None
            else calibration.screen_angle_reference
        )
        self.screen_angle_references: Tuple[ScreenAngleReference, ...] = tuple(
            screen_angle_references
            if screen_angle_references is not None
            else calibration.screen_angle_references
        )
        self.debug_mode = debug_mode
        self.diagnostics_callback = diagnostics_callback

        self._filters = ChannelFilterSet()
        self._baseline = AdaptiveBaseline(calibration)
        self._last_timestamp: Optional[float] = None

    # --------------- Accessors ---------------

    @property
    def calibration(self) -> CalibrationData:
        return self._calibration

    @property
    def current_baseline(self) -> CalibrationData:
        return self._baseline.current_baseline

    @property
    def good_posture_duration(self) -> float:
        return self._baseline.good_posture_duration

    # --------------- Core ---------------

    def analyze(self, frame: DetectionFrame) -> AnalyzeResult:
        """Analyse one frame. Never raises on malformed frame content."""
        if not frame.is_well_formed():
            logger.debug("Skipping malformed frame at %s", frame.timestamp)
            return self._neutral_result(frame.timestamp, confidence=0.0)

        confidence = compute_confidence(frame.world_landmarks)
        if has_low_visibility(frame.world_landmarks):
            return self._neutral_result(frame.timestamp, confidence=confidence)

        raw_angles = LandmarkExtractor.extract_posture_angles(
            frame.world_landmarks, frame.landmarks, frame.frame_width
        )
        pitch_delta = self._estimate_pitch_delta(frame.landmarks)
        compensated = compensate_angles(raw_angles, pitch_delta)
        smoothed = self._filters.update(compensated)
        delta_seconds = self._compute_delta_time(frame.timestamp)

        # Read the baseline first, evaluate, then update it
        baseline = self._baseline.current_baseline.baseline
        deviations = self.compute_deviations(smoothed, baseline)

        thresholds = get_scaled_thresholds(self.sensitivity, self.threshold_overrides)
        violations = tuple(evaluate_all_rules(deviations, thresholds, self.rule_toggles))
        is_good = not violations

        self._baseline.update(is_good, smoothed, delta_seconds)

        if self.debug_mode:
            self._emit_diagnostics(PostureDiagnostics(
                timestamp=frame.timestamp,
                raw_angles=raw_angles,
                pitch_delta=pitch_delta,
                smoothed_angles=smoothed,
                baseline=baseline,
                deviations=deviations,
                thresholds=thresholds,
                forward_head_scores=forward_head_scores(deviations, thresholds).as_dict(),
                violations=violations,
                good_posture_duration=self._baseline.good_posture_duration,
            ))

        status = PostureStatus(
            is_good=is_good,
            violations=violations,
            confidence=confidence,
            timestamp=frame.timestamp,
        )
        return AnalyzeResult(status=status, angles=smoothed, deviations=deviations)

    @staticmethod
    def compute_deviations(smoothed: PostureAngles, baseline: PostureAngles) -> AngleDeviations:
        return AngleDeviations(**{
            name: smoothed.get(name) - baseline.get(name) for name in CHANNELS
        })

    # --------------- Mutators ---------------

    def update_calibration(self, calibration: CalibrationData) -> None:
        """Swap calibration; accumulated drift is discarded."""
        self._calibration = calibration
        self._baseline = AdaptiveBaseline(calibration)

    def update_screen_angle_reference(self, reference: Optional[ScreenAngleReference]) -> None:
        self.screen_angle_reference = reference

    def update_screen_angle_references(self, references: Sequence[ScreenAngleReference]) -> None:
        self.screen_angle_references = tuple(references)

    def update_sensitivity(self, sensitivity: float) -> None:
        self.sensitivity = sensitivity

    def update_rule_toggles(self, rule_toggles: RuleToggles) -> None:
        self.rule_toggles = rule_toggles

    def update_threshold_overrides(self, overrides: Optional[Mapping[str, Optional[float]]]) -> None:
        self.threshold_overrides = dict(overrides) if overrides else None

    def set_debug_mode(self, enabled: bool) -> None:
        self.debug_mode = enabled

    def reset(self) -> None:
        """Clear filters, drift and timing; calibration is kept."""
        self._filters.reset()
        self._baseline.reset()
        self._last_timestamp = None

    # --------------- Helpers ---------------

    def _estimate_pitch_delta(self, landmarks: Sequence[Landmark]) -> float:
        if not self.screen_angle_references and self.screen_angle_reference is None:
            return 0.0
        signals = extract_screen_angle_signals(landmarks)
        if self.screen_angle_references:
            delta = estimate_angle_change_multi(signals, self.screen_angle_references)
        else:
            delta = estimate_angle_change(signals, self.screen_angle_reference)
        return delta if math.isfinite(delta) else 0.0

    def _compute_delta_time(self, timestamp: float) -> float:
        """Seconds since the previous analysed frame; 0 on the first one."""
        timestamp = _finite_or_none(timestamp)
        if timestamp is None:
            return 0.0
        if self._last_timestamp is None:
            self._last_timestamp = timestamp
            return 0.0
        delta = (timestamp - self._last_timestamp) / 1000.0
        self._last_timestamp = timestamp
        return max(0.0, delta)

    def _neutral_result(self, timestamp: float, confidence: float) -> AnalyzeResult:
        return AnalyzeResult(
            status=PostureStatus(is_good=True, violations=(), confidence=confidence, timestamp=timestamp),
            angles=PostureAngles.zeros(),
            deviations=AngleDeviations.zeros(),
        )

    def _emit_diagnostics(self, event: PostureDiagnostics) -> None:
        scores = event.forward_head_scores
        logger.debug(
            "t=%s pitch=%.2f nte_d=%.4f ffr_d=%.4f fh_d=%.2f FH=%.2f [%s]",
            event.timestamp,
            event.pitch_delta,
            event.deviations.nose_to_ear_avg,
            event.deviations.face_frame_ratio,
            event.deviations.head_forward,
            scores["combined"] or 0.0,
            ",".join(v.rule for v in event.violations),
        )
        if self.diagnostics_callback is None:
            return
        try:
            self.diagnostics_callback(event)
        except Exception:
            logger.exception("Diagnostics callback failed")
