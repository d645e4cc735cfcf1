"""
Calibration module for the posture analysis engine.

Purpose:
    Establish the baseline posture a user considers "correct" by averaging a
    short burst of per-frame measurements while they sit upright, and
    optionally capture screen-angle references so later frames can be
    corrected for screen tilt.

Modes:
    Single angle
        add_sample() repeatedly, then compute_baseline(). Screen signals
        passed alongside the samples are averaged into a single
        screen_angle_reference.

    Multi angle (e.g. lid at 90, 110 and 130 degrees)
        for each lid angle:
            start_angle_collection(label)
            add_sample(angles, signals) ...
            complete_current_angle()
        compute_multi_angle_baseline()

        The posture baseline comes from the first collected angle; every
        collected angle contributes one ScreenAngleReference.

Errors:
    Asking for a baseline without samples, or completing a collection that
    was never started or is empty, is caller misuse and raises
    CalibrationError. Noisy measurements are never an error.

Typical Usage:
    service = CalibrationService(CalibrationConfig(total_samples=30))
    for each frame:
        progress = service.add_sample(angles, signals)
        if progress.complete:
            break
    result = service.compute_baseline()
    logger.info(summarize_baseline(result.baseline))
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from config.defaults import CALIBRATION_SETTINGS, SCREEN_ANGLE_SETTINGS
from core.types import (
    CHANNELS,
    CalibrationData,
    PostureAngles,
    ScreenAngleReference,
    ScreenAngleSignals,
)

logger = logging.getLogger(__name__)

SUPPORTED_LID_ANGLES = SCREEN_ANGLE_SETTINGS['supported_lid_angles']


class CalibrationError(RuntimeError):
    """Raised when calibration is driven out of sequence."""


# ----------------------------
# Configuration / Result Data Classes
# ----------------------------

@dataclass
class CalibrationConfig:
    """
    Parameters controlling calibration behavior.

    Attributes:
        total_samples: Samples per angle needed before progress reports complete.
                       Sampling may continue past it.
    """
    total_samples: int = CALIBRATION_SETTINGS['total_samples']

    def validate(self):
        if self.total_samples <= 0:
            raise ValueError("total_samples must be > 0")


@dataclass(frozen=True)
class CalibrationProgress:
    progress: float  # [0..1]
    complete: bool
    sample_count: int
    total_samples: int


@dataclass(frozen=True)
class CalibrationResult:
    """Baseline plus per-channel population standard deviation (diagnostic)."""
    baseline: CalibrationData
    sample_std_dev: PostureAngles


@dataclass
class AngleCollection:
    """Samples gathered for one nominal screen angle."""
    label: Optional[float]
    samples: List[PostureAngles] = field(default_factory=list)
    signals: List[ScreenAngleSignals] = field(default_factory=list)


@dataclass(frozen=True)
class CompletedAngle:
    reference: ScreenAngleReference
    mean: PostureAngles
    std_dev: PostureAngles
    sample_count: int


# ----------------------------
# Statistics helpers
# ----------------------------

def _matrix(samples: List[PostureAngles]) -> np.ndarray:
    return np.array([[s.get(name) for name in CHANNELS] for s in samples], dtype=float)


def mean_angles(samples: List[PostureAngles]) -> PostureAngles:
    means = _matrix(samples).mean(axis=0)
    return PostureAngles(**{name: float(v) for name, v in zip(CHANNELS, means)})


def std_angles(samples: List[PostureAngles]) -> PostureAngles:
    """Population standard deviation per channel."""
    stds = _matrix(samples).std(axis=0, ddof=0)
    return PostureAngles(**{name: float(v) for name, v in zip(CHANNELS, stds)})


def mean_signals(signals: List[ScreenAngleSignals]) -> ScreenAngleSignals:
    arr = np.array([[s.face_y, s.nose_chin_ratio, s.eye_mouth_ratio] for s in signals], dtype=float)
    face_y, nose_chin, eye_mouth = arr.mean(axis=0)
    return ScreenAngleSignals(
        face_y=float(face_y),
        nose_chin_ratio=float(nose_chin),
        eye_mouth_ratio=float(eye_mouth),
    )


# ----------------------------
# Calibration Service
# ----------------------------

class CalibrationService:
    """
    Accumulates calibration samples and computes baseline statistics.

    Public Methods:
        add_sample(angles, screen_signals=None) -> CalibrationProgress
        get_progress() -> CalibrationProgress
        compute_baseline() -> CalibrationResult
        start_angle_collection(label) -> None
        complete_current_angle() -> ScreenAngleReference
        compute_multi_angle_baseline() -> CalibrationResult
        get_stats() -> Dict[str, Dict[str, float]]
        reset() -> None
    """

    def __init__(
        self,
        config: CalibrationConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or CalibrationConfig()
        self.config.validate()
        self._clock = clock
        self._samples: List[PostureAngles] = []
        self._signals: List[ScreenAngleSignals] = []
        self._active: Optional[AngleCollection] = None
        self._completed: List[CompletedAngle] = []

    # ---- Sampling ----

    def add_sample(
        self,
        angles: PostureAngles,
        screen_signals: Optional[ScreenAngleSignals] = None,
    ) -> CalibrationProgress:
        """Append one frame's measurements to the in-progress buffer."""
        self._samples.append(angles)
        if screen_signals is not None:
            self._signals.append(screen_signals)
        if self._active is not None:
            self._active.samples.append(angles)
            if screen_signals is not None:
                self._active.signals.append(screen_signals)
        return self.get_progress()

    def get_progress(self) -> CalibrationProgress:
        count = len(self._active.samples) if self._active is not None else len(self._samples)
        total = self.config.total_samples
        return CalibrationProgress(
            progress=min(1.0, count / total),
            complete=count >= total,
            sample_count=count,
            total_samples=total,
        )

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    @property
    def angle_count(self) -> int:
        return len(self._completed)

    @property
    def is_collecting_angle(self) -> bool:
        return self._active is not None

    # ---- Single angle ----

    def compute_baseline(self) -> CalibrationResult:
        """Mean of all buffered samples; raises CalibrationError when empty."""
        if not self._samples:
            raise CalibrationError("Cannot compute baseline: no samples collected")

        reference = None
        if self._signals:
            reference = ScreenAngleReference(signals=mean_signals(self._signals))

        baseline = CalibrationData(
            baseline=mean_angles(self._samples),
            timestamp=self._clock(),
            screen_angle_reference=reference,
        )
        logger.info("Calibration computed from %d samples", len(self._samples))
        return CalibrationResult(baseline=baseline, sample_std_dev=std_angles(self._samples))

    # ---- Multi angle ----

    def start_angle_collection(self, label: Optional[float] = None) -> None:
        """Begin collecting for a new nominal screen angle; discards any open collection."""
        if self._active is not None and self._active.samples:
            logger.warning("Discarding %d uncommitted samples for angle %s",
                           len(self._active.samples), self._active.label)
        if label is not None and label not in SUPPORTED_LID_ANGLES:
            logger.warning("Lid angle %s is outside the supported angles %s", label, SUPPORTED_LID_ANGLES)
        self._samples = []
        self._signals = []
        self._active = AngleCollection(label=label)

    def complete_current_angle(self) -> ScreenAngleReference:
        """Commit the open collection as one screen-angle reference."""
        active = self._active
        if active is None:
            raise CalibrationError("No angle collection in progress")
        if not active.samples:
            raise CalibrationError(f"No samples collected for angle {active.label}")
        if not active.signals:
            raise CalibrationError(f"No screen-angle signals collected for angle {active.label}")

        reference = ScreenAngleReference(signals=mean_signals(active.signals), angle=active.label)
        self._completed.append(CompletedAngle(
            reference=reference,
            mean=mean_angles(active.samples),
            std_dev=std_angles(active.samples),
            sample_count=len(active.samples),
        ))
        self._active = None
        logger.info("Screen angle %s captured from %d samples (%d angles total)",
                    active.label, len(active.samples), len(self._completed))
        return reference

    def compute_multi_angle_baseline(self) -> CalibrationResult:
        """Baseline of the first collected angle plus one reference per angle."""
        if not self._completed:
            raise CalibrationError("Cannot compute multi-angle baseline: no angles collected")

        first = self._completed[0]
        references: Tuple[ScreenAngleReference, ...] = tuple(c.reference for c in self._completed)
        baseline = CalibrationData(
            baseline=first.mean,
            timestamp=self._clock(),
            screen_angle_references=references,
        )
        return CalibrationResult(baseline=baseline, sample_std_dev=first.std_dev)

    # ---- Lifecycle ----

    def reset(self) -> None:
        self._samples = []
        self._signals = []
        self._active = None
        self._completed = []

    # ---- Diagnostics ----

    def get_stats(self) -> Dict[str, Dict[str, float]]:
        """
        Diagnostic stats for display or debugging:
        {
            channel: {"count": float, "mean": float, "std": float},
            ...
        }
        """
        if not self._samples:
            return {}
        means = mean_angles(self._samples)
        stds = std_angles(self._samples)
        return {
            name: {
                "count": float(len(self._samples)),
                "mean": means.get(name),
                "std": stds.get(name),
            }
            for name in CHANNELS
        }


def summarize_baseline(calibration: CalibrationData | None) -> str:
    """
    Human-friendly single-line summary for logging/diagnostics.
    """
    if calibration is None:
        return "Baseline: <not ready>"
    values = calibration.baseline.as_dict()
    parts = [f"{k}={values[k]:.4f}" for k in sorted(values)]
    refs = len(calibration.screen_angle_references)
    if calibration.screen_angle_reference is not None:
        refs += 1
    return "Baseline: " + ", ".join(parts) + f" ({refs} screen refs)"
