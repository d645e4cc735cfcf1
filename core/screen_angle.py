"""
Screen angle estimation for the posture analysis engine.

Tilting a laptop lid moves the built-in camera, which changes the viewing
angle on the face and biases the head-forward angle even when the user's
posture has not changed. Three 2-D signals react mostly to that viewing
angle:

    face_y           nose height in the frame
    nose_chin_ratio  nose -> mouth vertical span / ear span
    eye_mouth_ratio  eye -> mouth vertical span / ear span

A snapshot of those signals taken at calibration (a reference) lets every
later frame estimate how far the screen has pitched since, and the
head-forward channel is corrected by a fixed fraction of that pitch.

With several references (e.g. captured at 90, 110 and 130 degrees) the
nearest one in signal space is used, which keeps the linear model close to
its operating point across the whole lid range.
"""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Optional, Sequence, Union

from config.defaults import SCREEN_ANGLE_SETTINGS
from core.types import (
    Landmark,
    PoseLandmark,
    PostureAngles,
    ScreenAngleReference,
    ScreenAngleSignals,
)

FACE_Y_SCALE = SCREEN_ANGLE_SETTINGS['face_y_scale']
NOSE_CHIN_SCALE = SCREEN_ANGLE_SETTINGS['nose_chin_scale']
EYE_MOUTH_SCALE = SCREEN_ANGLE_SETTINGS['eye_mouth_scale']
HEAD_FORWARD_COMPENSATION = SCREEN_ANGLE_SETTINGS['head_forward_compensation']
MIN_EAR_SPAN = SCREEN_ANGLE_SETTINGS['min_ear_span']

ReferenceLike = Union[ScreenAngleReference, ScreenAngleSignals]


def _signals_of(reference: ReferenceLike) -> ScreenAngleSignals:
    if isinstance(reference, ScreenAngleReference):
        return reference.signals
    return reference


def extract_screen_angle_signals(landmarks: Sequence[Landmark]) -> ScreenAngleSignals:
    """Derive the viewing-angle signals from image-normalized landmarks."""
    nose = landmarks[PoseLandmark.NOSE]
    left_eye = landmarks[PoseLandmark.LEFT_EYE]
    right_eye = landmarks[PoseLandmark.RIGHT_EYE]
    left_ear = landmarks[PoseLandmark.LEFT_EAR]
    right_ear = landmarks[PoseLandmark.RIGHT_EAR]
    mouth_left = landmarks[PoseLandmark.MOUTH_LEFT]
    mouth_right = landmarks[PoseLandmark.MOUTH_RIGHT]

    ear_span = abs(left_ear.x - right_ear.x)
    if not math.isfinite(ear_span) or ear_span < MIN_EAR_SPAN:
        ear_span = 1.0

    mouth_mid_y = (mouth_left.y + mouth_right.y) / 2.0
    eye_mid_y = (left_eye.y + right_eye.y) / 2.0

    return ScreenAngleSignals(
        face_y=nose.y,
        nose_chin_ratio=(mouth_mid_y - nose.y) / ear_span,
        eye_mouth_ratio=(mouth_mid_y - eye_mid_y) / ear_span,
    )


def calibrate_screen_angle(
    signals: ScreenAngleSignals,
    angle: Optional[float] = None,
) -> ScreenAngleReference:
    """Capture signals as a reference, optionally labelled with the lid angle."""
    return ScreenAngleReference(signals=signals, angle=angle)


def estimate_angle_change(current: ScreenAngleSignals, reference: ReferenceLike) -> float:
    """
    Estimated screen pitch change in degrees since the reference was taken.
    Positive means the screen is tilted further back.
    """
    ref = _signals_of(reference)
    face_y_delta = current.face_y - ref.face_y
    nose_chin_delta = current.nose_chin_ratio - ref.nose_chin_ratio
    eye_mouth_delta = current.eye_mouth_ratio - ref.eye_mouth_ratio

    return (
        face_y_delta * FACE_Y_SCALE
        + nose_chin_delta * NOSE_CHIN_SCALE
        + eye_mouth_delta * EYE_MOUTH_SCALE
    )


def signal_distance(a: ScreenAngleSignals, b: ScreenAngleSignals) -> float:
    return math.sqrt(
        (a.face_y - b.face_y) ** 2
        + (a.nose_chin_ratio - b.nose_chin_ratio) ** 2
        + (a.eye_mouth_ratio - b.eye_mouth_ratio) ** 2
    )


def nearest_reference(
    current: ScreenAngleSignals,
    references: Sequence[ReferenceLike],
) -> Optional[ReferenceLike]:
    """Reference closest to current in signal space (first wins on ties)."""
    best = None
    best_dist = math.inf
    for ref in references:
        dist = signal_distance(current, _signals_of(ref))
        if best is None or dist < best_dist:
            best, best_dist = ref, dist
    return best


def estimate_angle_change_multi(
    current: ScreenAngleSignals,
    references: Sequence[ReferenceLike],
) -> float:
    """Pitch change relative to the nearest of several references; 0 without any."""
    if not references:
        return 0.0
    if len(references) == 1:
        return estimate_angle_change(current, references[0])
    return estimate_angle_change(current, nearest_reference(current, references))


def compensate_angles(angles: PostureAngles, pitch_delta: float) -> PostureAngles:
    """Remove the screen-tilt bias from head_forward; other channels pass through."""
    if pitch_delta == 0 or not math.isfinite(pitch_delta):
        return angles
    return replace(
        angles,
        head_forward=angles.head_forward - pitch_delta * HEAD_FORWARD_COMPENSATION,
    )
