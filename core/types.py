"""
Shared value types for the posture analysis engine.

Everything here is an immutable dataclass so values handed to callers are
always fresh copies: updating a field goes through ``dataclasses.replace``.

Landmark arrays follow the 33-point pose topology (see ``PoseLandmark``).
``landmarks`` are image-normalized (x, y in [0, 1] of the frame),
``world_landmarks`` are metric coordinates centred between the hips with
y pointing down.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import IntEnum
from numbers import Real
from typing import Any, Dict, Mapping, Optional, Tuple

from config.defaults import RULE_THRESHOLDS, RULE_TOGGLES

NUM_LANDMARKS = 33


class PoseLandmark(IntEnum):
    """Index of each landmark in a 33-point pose array."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


# Ears and shoulders drive every default rule
CRITICAL_LANDMARKS: Tuple[PoseLandmark, ...] = (
    PoseLandmark.LEFT_EAR,
    PoseLandmark.RIGHT_EAR,
    PoseLandmark.LEFT_SHOULDER,
    PoseLandmark.RIGHT_SHOULDER,
)


@dataclass(frozen=True)
class Landmark:
    """A single tracked body point."""
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0  # [0..1]


@dataclass(frozen=True)
class DetectionFrame:
    """
    One sampled instant from the external landmark detector.

    timestamp is a monotonic clock reading in milliseconds.
    """
    landmarks: Tuple[Landmark, ...]
    world_landmarks: Tuple[Landmark, ...]
    timestamp: float
    frame_width: int
    frame_height: int

    def is_well_formed(self) -> bool:
        """Both arrays hold exactly 33 landmarks with numeric coordinates."""
        return _is_landmark_array(self.landmarks) and _is_landmark_array(self.world_landmarks)


def _is_landmark_array(points: Any) -> bool:
    try:
        if len(points) != NUM_LANDMARKS:
            return False
    except TypeError:
        return False
    return all(
        isinstance(p, Landmark)
        and all(isinstance(c, Real) and not isinstance(c, bool) for c in (p.x, p.y, p.z))
        for p in points
    )


# ----------------------------
# Channel values
# ----------------------------

CHANNELS: Tuple[str, ...] = (
    "head_forward",
    "torso",
    "head_tilt",
    "face_frame_ratio",
    "face_y",
    "nose_to_ear_avg",
    "shoulder_diff",
)


@dataclass(frozen=True)
class _ChannelValues:
    """One float per posture channel."""
    head_forward: float = 0.0
    torso: float = 0.0
    head_tilt: float = 0.0
    face_frame_ratio: float = 0.0
    face_y: float = 0.0
    nose_to_ear_avg: float = 0.0
    shoulder_diff: float = 0.0

    @classmethod
    def zeros(cls):
        return cls()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]):
        """Build from a mapping; channels that are missing default to 0."""
        names = {f.name for f in fields(cls)}
        return cls(**{k: float(v) for k, v in data.items() if k in names and v is not None})

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in CHANNELS}

    def get(self, channel: str) -> float:
        return getattr(self, channel)


@dataclass(frozen=True)
class PostureAngles(_ChannelValues):
    """Per-frame measurements. Angle channels in degrees, the rest unitless."""


@dataclass(frozen=True)
class AngleDeviations(_ChannelValues):
    """Smoothed measurement minus the current baseline, per channel."""


# ----------------------------
# Screen angle
# ----------------------------

@dataclass(frozen=True)
class ScreenAngleSignals:
    """Dimensionless proxies for the camera's viewing angle on the face."""
    face_y: float
    nose_chin_ratio: float
    eye_mouth_ratio: float

    def as_dict(self) -> Dict[str, float]:
        return {
            "face_y": self.face_y,
            "nose_chin_ratio": self.nose_chin_ratio,
            "eye_mouth_ratio": self.eye_mouth_ratio,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScreenAngleSignals":
        return cls(
            face_y=float(data["face_y"]),
            nose_chin_ratio=float(data["nose_chin_ratio"]),
            eye_mouth_ratio=float(data["eye_mouth_ratio"]),
        )


@dataclass(frozen=True)
class ScreenAngleReference:
    """Signals captured at calibration, optionally tagged with the lid angle (deg)."""
    signals: ScreenAngleSignals
    angle: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        return {"angle": self.angle, "signals": self.signals.as_dict()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScreenAngleReference":
        angle = data.get("angle")
        return cls(
            signals=ScreenAngleSignals.from_dict(data["signals"]),
            angle=float(angle) if angle is not None else None,
        )


# ----------------------------
# Calibration
# ----------------------------

@dataclass(frozen=True)
class CalibrationData:
    """Baseline posture plus capture time and any screen-angle references."""
    baseline: PostureAngles
    timestamp: float
    screen_angle_reference: Optional[ScreenAngleReference] = None
    screen_angle_references: Tuple[ScreenAngleReference, ...] = ()

    def with_baseline(self, baseline: PostureAngles) -> "CalibrationData":
        return replace(self, baseline=baseline)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "baseline": self.baseline.as_dict(),
            "timestamp": self.timestamp,
            "screen_angle_reference": (
                self.screen_angle_reference.as_dict()
                if self.screen_angle_reference is not None else None
            ),
            "screen_angle_references": [r.as_dict() for r in self.screen_angle_references],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CalibrationData":
        single = data.get("screen_angle_reference")
        return cls(
            baseline=PostureAngles.from_dict(data.get("baseline", {})),
            timestamp=float(data.get("timestamp", 0.0)),
            screen_angle_reference=(
                ScreenAngleReference.from_dict(single) if single else None
            ),
            screen_angle_references=tuple(
                ScreenAngleReference.from_dict(r)
                for r in data.get("screen_angle_references", ()) or ()
            ),
        )


# ----------------------------
# Rules
# ----------------------------

@dataclass(frozen=True)
class RuleThresholds:
    """
    Per-rule cutoffs. The forward-head ratio thresholds are optional:
    None removes that signal from the fused forward-head score.
    """
    forward_head: float = RULE_THRESHOLDS['forward_head']
    forward_head_ffr: Optional[float] = RULE_THRESHOLDS['forward_head_ffr']
    forward_head_nte: Optional[float] = RULE_THRESHOLDS['forward_head_nte']
    slouch: float = RULE_THRESHOLDS['slouch']
    head_tilt: float = RULE_THRESHOLDS['head_tilt']
    shoulder_asymmetry: float = RULE_THRESHOLDS['shoulder_asymmetry']


@dataclass(frozen=True)
class RuleToggles:
    """Enable flags. too_close alone reports the merged lean-in check as TOO_CLOSE."""
    forward_head: bool = RULE_TOGGLES['forward_head']
    slouch: bool = RULE_TOGGLES['slouch']
    head_tilt: bool = RULE_TOGGLES['head_tilt']
    too_close: bool = RULE_TOGGLES['too_close']
    shoulder_asymmetry: bool = RULE_TOGGLES['shoulder_asymmetry']

    @classmethod
    def all_enabled(cls) -> "RuleToggles":
        return cls(True, True, True, True, True)

    @classmethod
    def all_disabled(cls) -> "RuleToggles":
        return cls(False, False, False, False, False)


@dataclass(frozen=True)
class PostureViolation:
    rule: str
    severity: float  # [0..1]
    message: str

    def as_dict(self) -> Dict[str, Any]:
        return {"rule": self.rule, "severity": self.severity, "message": self.message}


@dataclass(frozen=True)
class PostureStatus:
    """Per-frame verdict consumed by the reminder/UI layer."""
    is_good: bool
    violations: Tuple[PostureViolation, ...] = ()
    confidence: float = 0.0
    timestamp: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "is_good": self.is_good,
            "violations": [v.as_dict() for v in self.violations],
            "confidence": self.confidence,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class AnalyzeResult:
    status: PostureStatus
    angles: PostureAngles = field(default_factory=PostureAngles)
    deviations: AngleDeviations = field(default_factory=AngleDeviations)
