"""
Extract posture angles and ratios from pose landmarks
"""
import math
from typing import Sequence

import numpy as np

from core.types import Landmark, PoseLandmark, PostureAngles

VERTICAL_UP = np.array([0.0, -1.0, 0.0])
VERTICAL_DOWN = np.array([0.0, 1.0, 0.0])


def _point(landmark: Landmark) -> np.ndarray:
    return np.array([landmark.x, landmark.y, landmark.z], dtype=float)


def _midpoint(a: Landmark, b: Landmark) -> np.ndarray:
    return (_point(a) + _point(b)) / 2.0


def _finite_or_zero(value: float) -> float:
    value = float(value)
    return value if math.isfinite(value) else 0.0


def vector_angle(v1: np.ndarray, v2: np.ndarray) -> float:
    """Angle between two vectors in degrees; 0 when either has zero length."""
    mag1 = float(np.linalg.norm(v1))
    mag2 = float(np.linalg.norm(v2))
    if mag1 == 0 or mag2 == 0 or not math.isfinite(mag1 * mag2):
        return 0.0
    cos_theta = float(np.clip(np.dot(v1, v2) / (mag1 * mag2), -1.0, 1.0))
    return _finite_or_zero(math.degrees(math.acos(cos_theta)))


class LandmarkExtractor:
    """Calculate posture channels from one frame's landmarks.

    All methods are static and never mutate their inputs. World-space
    landmarks feed the 3-D angles, image-normalized landmarks the 2-D ones.
    """

    @staticmethod
    def head_forward_angle(world_landmarks: Sequence[Landmark]) -> float:
        """Angle between the shoulder->ear vector and world up"""
        ear_mid = _midpoint(world_landmarks[PoseLandmark.LEFT_EAR],
                            world_landmarks[PoseLandmark.RIGHT_EAR])
        shoulder_mid = _midpoint(world_landmarks[PoseLandmark.LEFT_SHOULDER],
                                 world_landmarks[PoseLandmark.RIGHT_SHOULDER])
        return vector_angle(ear_mid - shoulder_mid, VERTICAL_UP)

    @staticmethod
    def torso_angle(world_landmarks: Sequence[Landmark]) -> float:
        """Angle between the shoulder->hip vector and world down"""
        shoulder_mid = _midpoint(world_landmarks[PoseLandmark.LEFT_SHOULDER],
                                 world_landmarks[PoseLandmark.RIGHT_SHOULDER])
        hip_mid = _midpoint(world_landmarks[PoseLandmark.LEFT_HIP],
                            world_landmarks[PoseLandmark.RIGHT_HIP])
        return vector_angle(hip_mid - shoulder_mid, VERTICAL_DOWN)

    @staticmethod
    def head_tilt_angle(landmarks: Sequence[Landmark]) -> float:
        """Signed tilt of the ear line from horizontal; positive = left ear lower"""
        left_ear = landmarks[PoseLandmark.LEFT_EAR]
        right_ear = landmarks[PoseLandmark.RIGHT_EAR]
        # The subject's left ear sits at the higher x in a non-mirrored frame,
        # so a level head gives dx > 0 and atan2 ~ 0.
        dy = left_ear.y - right_ear.y
        dx = left_ear.x - right_ear.x
        if dx == 0 and dy == 0:
            return 0.0
        return _finite_or_zero(math.degrees(math.atan2(dy, dx)))

    @staticmethod
    def face_frame_ratio(landmarks: Sequence[Landmark], frame_width: float) -> float:
        """Ear-to-ear span over frame width; larger means closer to the camera"""
        try:
            width = float(frame_width)
        except (TypeError, ValueError):
            return 0.0
        if not width > 0 or not math.isfinite(width):
            return 0.0
        span_px = abs(landmarks[PoseLandmark.LEFT_EAR].x - landmarks[PoseLandmark.RIGHT_EAR].x) * width
        return _finite_or_zero(span_px / width)

    @staticmethod
    def face_y(landmarks: Sequence[Landmark]) -> float:
        return _finite_or_zero(landmarks[PoseLandmark.NOSE].y)

    @staticmethod
    def nose_to_ear_avg(landmarks: Sequence[Landmark]) -> float:
        """Mean drop of the nose below each ear, grows as the head leans in"""
        nose_y = landmarks[PoseLandmark.NOSE].y
        left = nose_y - landmarks[PoseLandmark.LEFT_EAR].y
        right = nose_y - landmarks[PoseLandmark.RIGHT_EAR].y
        return _finite_or_zero((left + right) / 2.0)

    @staticmethod
    def shoulder_diff(world_landmarks: Sequence[Landmark]) -> float:
        """Shoulder line slope as an angle (unsigned)"""
        left = world_landmarks[PoseLandmark.LEFT_SHOULDER]
        right = world_landmarks[PoseLandmark.RIGHT_SHOULDER]
        dx = abs(right.x - left.x)
        dy = abs(left.y - right.y)
        if dx == 0 and dy == 0:
            return 0.0
        return _finite_or_zero(math.degrees(math.atan2(dy, dx)))

    @staticmethod
    def extract_posture_angles(
        world_landmarks: Sequence[Landmark],
        landmarks: Sequence[Landmark],
        frame_width: float,
    ) -> PostureAngles:
        """Get all posture channels for one frame"""
        return PostureAngles(
            head_forward=LandmarkExtractor.head_forward_angle(world_landmarks),
            torso=LandmarkExtractor.torso_angle(world_landmarks),
            head_tilt=LandmarkExtractor.head_tilt_angle(landmarks),
            face_frame_ratio=LandmarkExtractor.face_frame_ratio(landmarks, frame_width),
            face_y=LandmarkExtractor.face_y(landmarks),
            nose_to_ear_avg=LandmarkExtractor.nose_to_ear_avg(landmarks),
            shoulder_diff=LandmarkExtractor.shoulder_diff(world_landmarks),
        )
