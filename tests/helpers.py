"""
Synthetic landmark builders shared by the test modules.

The default pose is a person sitting upright facing the camera:
ears level and directly above the shoulders, hips directly below.
"""
from typing import Dict, Optional, Tuple

from core.types import NUM_LANDMARKS, DetectionFrame, Landmark, PoseLandmark

FRAME_WIDTH = 640
FRAME_HEIGHT = 480

# Image-normalized (x, y) of the upright pose
UPRIGHT_IMAGE = {
    PoseLandmark.NOSE: (0.50, 0.45),
    PoseLandmark.LEFT_EYE: (0.53, 0.42),
    PoseLandmark.RIGHT_EYE: (0.47, 0.42),
    PoseLandmark.LEFT_EAR: (0.58, 0.44),
    PoseLandmark.RIGHT_EAR: (0.42, 0.44),
    PoseLandmark.MOUTH_LEFT: (0.52, 0.50),
    PoseLandmark.MOUTH_RIGHT: (0.48, 0.50),
    PoseLandmark.LEFT_SHOULDER: (0.65, 0.70),
    PoseLandmark.RIGHT_SHOULDER: (0.35, 0.70),
    PoseLandmark.LEFT_HIP: (0.60, 0.98),
    PoseLandmark.RIGHT_HIP: (0.40, 0.98),
}

# World-space (x, y, z) in metres, y pointing down
UPRIGHT_WORLD = {
    PoseLandmark.NOSE: (0.0, -0.58, -0.08),
    PoseLandmark.LEFT_EAR: (0.08, -0.55, 0.0),
    PoseLandmark.RIGHT_EAR: (-0.08, -0.55, 0.0),
    PoseLandmark.LEFT_SHOULDER: (0.18, -0.40, 0.0),
    PoseLandmark.RIGHT_SHOULDER: (-0.18, -0.40, 0.0),
    PoseLandmark.LEFT_HIP: (0.10, 0.0, 0.0),
    PoseLandmark.RIGHT_HIP: (-0.10, 0.0, 0.0),
}


def make_landmarks(
    points: Dict[int, Tuple[float, ...]],
    visibility: Optional[Dict[int, float]] = None,
) -> Tuple[Landmark, ...]:
    """33 landmarks; unspecified points sit at the frame centre."""
    visibility = visibility or {}
    result = []
    for idx in range(NUM_LANDMARKS):
        coords = points.get(idx, (0.5, 0.5, 0.0))
        x, y = coords[0], coords[1]
        z = coords[2] if len(coords) > 2 else 0.0
        result.append(Landmark(x=x, y=y, z=z, visibility=visibility.get(idx, 1.0)))
    return tuple(result)


def upright_landmarks(**image_overrides) -> Tuple[Landmark, ...]:
    points = dict(UPRIGHT_IMAGE)
    for name, value in image_overrides.items():
        points[PoseLandmark[name.upper()]] = value
    return make_landmarks(points)


def upright_world(visibility: Optional[Dict[int, float]] = None, **world_overrides) -> Tuple[Landmark, ...]:
    points = dict(UPRIGHT_WORLD)
    for name, value in world_overrides.items():
        points[PoseLandmark[name.upper()]] = value
    return make_landmarks(points, visibility)


def make_frame(
    timestamp: float = 0.0,
    landmarks: Optional[Tuple[Landmark, ...]] = None,
    world_landmarks: Optional[Tuple[Landmark, ...]] = None,
    frame_width: int = FRAME_WIDTH,
) -> DetectionFrame:
    return DetectionFrame(
        landmarks=landmarks if landmarks is not None else upright_landmarks(),
        world_landmarks=world_landmarks if world_landmarks is not None else upright_world(),
        timestamp=timestamp,
        frame_width=frame_width,
        frame_height=FRAME_HEIGHT,
    )


def leaning_in_landmarks(nose_drop: float = 0.06) -> Tuple[Landmark, ...]:
    """Head pitched toward the screen: nose drops below the ear line."""
    x, y = UPRIGHT_IMAGE[PoseLandmark.NOSE]
    return upright_landmarks(nose=(x, y + nose_drop))
