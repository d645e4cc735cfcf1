"""
Posture rule evaluation.

Pure functions from per-channel deviations, thresholds and enable flags to
graded violations. Severity is always in [0, 1]: 0 right at the threshold,
1 once the deviation reaches twice the threshold.

Forward head and "too close" are one rule. A front-facing camera cannot
tell leaning in from sitting closer, so three signals are fused:

    nose_to_ear_avg  (weight 0.6)
    face_frame_ratio (weight 0.2)
    head_forward     (weight 0.2)

Each signal's positive deviation is divided by its threshold and the
weighted sum must exceed 1.0 to trigger. A ratio threshold of None drops
that signal and the remaining weights are rescaled to sum to 1.

The fused check is reported as FORWARD_HEAD while that rule is enabled, and
as TOO_CLOSE when only the too_close toggle is on.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Dict, List, Mapping, Optional

from config.defaults import FORWARD_HEAD_WEIGHTS, RULE_MESSAGES, SENSITIVITY_SETTINGS
from core.types import AngleDeviations, PostureViolation, RuleThresholds, RuleToggles

FORWARD_HEAD = "FORWARD_HEAD"
TOO_CLOSE = "TOO_CLOSE"
SLOUCH = "SLOUCH"
HEAD_TILT = "HEAD_TILT"
SHOULDER_ASYMMETRY = "SHOULDER_ASYMMETRY"


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def compute_severity(deviation: float, threshold: float) -> float:
    """Linear severity clamped to [0, 1]; a zero threshold always gives 1."""
    if threshold == 0:
        return 1.0
    return clamp((deviation - threshold) / threshold, 0.0, 1.0)


def _violation(rule: str, severity: float) -> PostureViolation:
    return PostureViolation(rule=rule, severity=clamp(severity, 0.0, 1.0), message=RULE_MESSAGES[rule])


# ----------------------------
# Forward head (fused)
# ----------------------------

@dataclass(frozen=True)
class ForwardHeadScores:
    nte: Optional[float]
    ffr: Optional[float]
    angle: float
    combined: float
    zero_threshold: bool = False

    def as_dict(self) -> Dict[str, Optional[float]]:
        return {"nte": self.nte, "ffr": self.ffr, "angle": self.angle, "combined": self.combined}


def forward_head_scores(
    deviations: AngleDeviations,
    thresholds: RuleThresholds,
    weights: Mapping[str, float] = FORWARD_HEAD_WEIGHTS,
) -> ForwardHeadScores:
    """Sub-scores and weighted combination for the forward-head rule."""
    signals = {
        "nte": (deviations.nose_to_ear_avg, thresholds.forward_head_nte),
        "ffr": (deviations.face_frame_ratio, thresholds.forward_head_ffr),
        "angle": (deviations.head_forward, thresholds.forward_head),
    }
    scores: Dict[str, Optional[float]] = {}
    zero_threshold = False
    for key, (delta, threshold) in signals.items():
        if threshold is None:
            scores[key] = None
        elif threshold == 0:
            zero_threshold = True
            scores[key] = 0.0
        else:
            scores[key] = max(0.0, delta) / threshold

    total_weight = sum(weights[key] for key, score in scores.items() if score is not None)
    combined = 0.0
    if total_weight > 0:
        combined = sum(
            weights[key] * score for key, score in scores.items() if score is not None
        ) / total_weight

    return ForwardHeadScores(
        nte=scores["nte"],
        ffr=scores["ffr"],
        angle=scores["angle"],
        combined=combined,
        zero_threshold=zero_threshold,
    )


def forward_head_rule(
    deviations: AngleDeviations,
    thresholds: RuleThresholds,
    rule: str = FORWARD_HEAD,
) -> Optional[PostureViolation]:
    """Fused lean-in check; reported under rule (FORWARD_HEAD or TOO_CLOSE)."""
    scores = forward_head_scores(deviations, thresholds)
    if scores.zero_threshold:
        return _violation(rule, 1.0)
    if not scores.combined > 1.0:
        return None
    return _violation(rule, scores.combined - 1.0)


# ----------------------------
# Single-signal rules
# ----------------------------

def slouch_rule(deviation: float, threshold: float) -> Optional[PostureViolation]:
    if threshold != 0 and not deviation > threshold:
        return None
    return _violation(SLOUCH, compute_severity(deviation, threshold))


def head_tilt_rule(deviation: float, threshold: float) -> Optional[PostureViolation]:
    magnitude = abs(deviation)
    if threshold != 0 and not magnitude > threshold:
        return None
    return _violation(HEAD_TILT, compute_severity(magnitude, threshold))


def shoulder_asymmetry_rule(deviation: float, threshold: float) -> Optional[PostureViolation]:
    magnitude = abs(deviation)
    if threshold != 0 and not magnitude > threshold:
        return None
    return _violation(SHOULDER_ASYMMETRY, compute_severity(magnitude, threshold))


def _lean_in_rule_name(toggles: RuleToggles) -> str:
    return FORWARD_HEAD if toggles.forward_head else TOO_CLOSE


def evaluate_all_rules(
    deviations: AngleDeviations,
    thresholds: RuleThresholds,
    toggles: RuleToggles,
) -> List[PostureViolation]:
    """Evaluate every enabled rule in fixed priority order."""
    checks = [
        (toggles.forward_head or toggles.too_close,
         lambda: forward_head_rule(deviations, thresholds, _lean_in_rule_name(toggles))),
        (toggles.slouch,
         lambda: slouch_rule(deviations.torso, thresholds.slouch)),
        (toggles.head_tilt,
         lambda: head_tilt_rule(deviations.head_tilt, thresholds.head_tilt)),
        (toggles.shoulder_asymmetry,
         lambda: shoulder_asymmetry_rule(deviations.shoulder_diff, thresholds.shoulder_asymmetry)),
    ]

    violations: List[PostureViolation] = []
    for enabled, evaluate in checks:
        if not enabled:
            continue
        result = evaluate()
        if result is not None:
            violations.append(result)
    return violations


# ----------------------------
# Sensitivity scaling
# ----------------------------

def get_scaled_thresholds(
    sensitivity: float,
    overrides: Optional[Mapping[str, Optional[float]]] = None,
    base: Optional[RuleThresholds] = None,
) -> RuleThresholds:
    """
    Scale thresholds by sensitivity: 0 doubles them, 1 halves them.

    overrides replace individual defaults before scaling; unknown keys are
    ignored.
    """
    s = float(sensitivity) if math.isfinite(sensitivity) else SENSITIVITY_SETTINGS['default']
    s = clamp(s, 0.0, 1.0)
    scale = SENSITIVITY_SETTINGS['scale_at_zero'] - SENSITIVITY_SETTINGS['scale_span'] * s

    thresholds = base or RuleThresholds()
    if overrides:
        known = {k: v for k, v in overrides.items() if hasattr(thresholds, k) and v is not None}
        thresholds = replace(thresholds, **known)

    def scaled(value: Optional[float]) -> Optional[float]:
        return None if value is None else value * scale

    return RuleThresholds(
        forward_head=scaled(thresholds.forward_head),
        forward_head_ffr=scaled(thresholds.forward_head_ffr),
        forward_head_nte=scaled(thresholds.forward_head_nte),
        slouch=scaled(thresholds.slouch),
        head_tilt=scaled(thresholds.head_tilt),
        shoulder_asymmetry=scaled(thresholds.shoulder_asymmetry),
    )
