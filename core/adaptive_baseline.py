"""
Adaptive Baseline Module.

Purpose:
    Let the calibrated baseline follow slow, sustained changes in the user's
    normal posture (a new chair height, a moved monitor) without ever letting
    it wander far enough to hide genuinely bad posture.

Behavior:
    - Every update reports whether the current frame was judged good.
    - A bad frame resets the consecutive-good-posture timer; the baseline
      itself is left untouched.
    - Only good time beyond a warm-up period (30 s by default) moves the
      baseline. Each channel moves toward the live smoothed value by
      (value - baseline) * drift_rate * seconds, a first-order approach.
    - Each channel stays within a fixed distance (its ceiling) of the
      original calibration anchor: 8 deg for angles, 0.1 for ratios.
    - Calibration timestamp and screen-angle references never drift.

Ordering:
    Callers read current_baseline, evaluate the frame against it, and only
    then call update(). The baseline used for a frame therefore lags its
    own update by exactly one frame.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Optional

from config.defaults import DRIFT_SETTINGS
from core.smoothing import ChannelUnit, channel_units
from core.types import CHANNELS, CalibrationData, PostureAngles

logger = logging.getLogger(__name__)


class AdaptiveBaseline:
    """Bounded, time-gated drift of the calibration anchor."""

    def __init__(
        self,
        calibration: CalibrationData,
        warmup_seconds: float = DRIFT_SETTINGS['warmup_seconds'],
        drift_rate: float = DRIFT_SETTINGS['drift_rate'],
        units: Optional[Dict[str, ChannelUnit]] = None,
    ):
        self.original: CalibrationData = calibration
        self._current: CalibrationData = calibration
        self.warmup_seconds = warmup_seconds
        self.drift_rate = drift_rate
        self.units = units or channel_units()
        self._good_posture_duration = 0.0

    # ---- Accessors ----

    @property
    def current_baseline(self) -> CalibrationData:
        return self._current

    @property
    def good_posture_duration(self) -> float:
        return self._good_posture_duration

    # ---- Update ----

    def update(
        self,
        is_good: bool,
        smoothed_angles: PostureAngles,
        delta_seconds: float,
    ) -> CalibrationData:
        """Account for one frame's verdict and return the (possibly drifted) baseline."""
        if not is_good:
            self._good_posture_duration = 0.0
            return self._current

        if not math.isfinite(delta_seconds) or delta_seconds < 0:
            delta_seconds = 0.0

        previous = self._good_posture_duration
        self._good_posture_duration += delta_seconds

        if self._good_posture_duration <= self.warmup_seconds:
            return self._current

        # Only the part of this step past the warm-up counts
        if previous >= self.warmup_seconds:
            drift_seconds = delta_seconds
        else:
            drift_seconds = self._good_posture_duration - self.warmup_seconds
            logger.debug("Baseline drift active after %.1fs of good posture",
                         self._good_posture_duration)

        self._current = self._current.with_baseline(
            self._apply_drift(smoothed_angles, drift_seconds)
        )
        return self._current

    def reset(self) -> None:
        self._current = self.original
        self._good_posture_duration = 0.0

    def _apply_drift(self, target: PostureAngles, seconds: float) -> PostureAngles:
        current = self._current.baseline
        anchor = self.original.baseline
        drifted = {}
        for name in CHANNELS:
            value = current.get(name)
            goal = target.get(name)
            if not math.isfinite(goal):
                drifted[name] = value
                continue
            moved = value + (goal - value) * self.drift_rate * seconds
            ceiling = self.units[name].max_drift
            offset = min(max(moved - anchor.get(name), -ceiling), ceiling)
            drifted[name] = anchor.get(name) + offset
        return PostureAngles(**drifted)
