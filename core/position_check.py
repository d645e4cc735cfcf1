"""
Face position check run before calibration sampling starts
"""
from dataclasses import dataclass
from typing import Optional, Sequence

from config.defaults import POSITION_CHECK_SETTINGS, POSITION_MESSAGES
from core.types import NUM_LANDMARKS, Landmark, PoseLandmark

NO_FACE = "no_face"
TOO_FAR = "too_far"
TOO_CLOSE = "too_close"
OFF_CENTER = "off_center"
GOOD = "good"


@dataclass(frozen=True)
class PositionCheckResult:
    status: str
    message: str

    @property
    def ok(self) -> bool:
        return self.status == GOOD


def _result(status: str) -> PositionCheckResult:
    return PositionCheckResult(status=status, message=POSITION_MESSAGES[status])


def check_face_position(
    landmarks: Optional[Sequence[Landmark]],
    settings: dict = POSITION_CHECK_SETTINGS,
) -> PositionCheckResult:
    """Classify where the face sits in the frame from image-normalized landmarks"""
    if not landmarks or len(landmarks) < NUM_LANDMARKS:
        return _result(NO_FACE)

    left_ear = landmarks[PoseLandmark.LEFT_EAR]
    right_ear = landmarks[PoseLandmark.RIGHT_EAR]
    nose = landmarks[PoseLandmark.NOSE]

    min_vis = settings['min_visibility']
    if min(left_ear.visibility, right_ear.visibility, nose.visibility) < min_vis:
        return _result(NO_FACE)

    face_ratio = abs(left_ear.x - right_ear.x)
    if face_ratio < settings['face_ratio_too_far']:
        return _result(TOO_FAR)
    if face_ratio > settings['face_ratio_too_close']:
        return _result(TOO_CLOSE)

    tolerance = settings['center_tolerance']
    if abs(nose.x - 0.5) > tolerance or abs(nose.y - 0.5) > tolerance:
        return _result(OFF_CENTER)

    return _result(GOOD)
