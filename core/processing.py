"""
Frame adapters for the posture analysis engine.

The landmark detector is an external collaborator. These helpers turn its
output into the engine's immutable DetectionFrame:

  * frame_from_landmarker_result(): a pose-landmarker result object exposing
    ``pose_landmarks`` and ``pose_world_landmarks`` (lists of poses, each a
    list of points with x / y / z / visibility attributes)
  * frame_from_dict(): a plain mapping, as used by JSON replay files

Malformed input yields None rather than an exception; the caller simply
skips that tick.
"""

from typing import Any, Mapping, Optional, Sequence, Tuple
import logging
import math

from core.types import NUM_LANDMARKS, DetectionFrame, Landmark

logger = logging.getLogger(__name__)


def _field(point: Any, name: str, default: float = 0.0) -> float:
    if isinstance(point, Mapping):
        value = point.get(name, default)
    else:
        value = getattr(point, name, default)
    if value is None:
        return default
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def landmarks_from_sequence(points: Optional[Sequence[Any]]) -> Optional[Tuple[Landmark, ...]]:
    """Convert detector points (objects or mappings) into a 33-tuple of Landmark."""
    if points is None:
        return None
    try:
        count = len(points)
    except TypeError:
        return None
    if count != NUM_LANDMARKS:
        logger.debug("Expected %d landmarks, got %d", NUM_LANDMARKS, count)
        return None
    return tuple(
        Landmark(
            x=_field(p, "x"),
            y=_field(p, "y"),
            z=_field(p, "z"),
            visibility=min(1.0, max(0.0, _field(p, "visibility"))),
        )
        for p in points
    )


def frame_from_landmarker_result(
    result: Any,
    frame_width: int,
    frame_height: int,
    timestamp_ms: float,
) -> Optional[DetectionFrame]:
    """Build a DetectionFrame from the first pose of a pose-landmarker result."""
    poses = getattr(result, "pose_landmarks", None)
    world_poses = getattr(result, "pose_world_landmarks", None)
    if not poses or not world_poses:
        return None

    landmarks = landmarks_from_sequence(poses[0])
    world_landmarks = landmarks_from_sequence(world_poses[0])
    if landmarks is None or world_landmarks is None:
        return None

    return DetectionFrame(
        landmarks=landmarks,
        world_landmarks=world_landmarks,
        timestamp=float(timestamp_ms),
        frame_width=int(frame_width),
        frame_height=int(frame_height),
    )


def frame_from_dict(data: Mapping[str, Any]) -> Optional[DetectionFrame]:
    """
    Build a DetectionFrame from a mapping:
        {
            "landmarks": [{"x": .., "y": .., "z": .., "visibility": ..}, ...],
            "world_landmarks": [...],
            "timestamp": 1234.5,          # ms
            "frame_width": 640,
            "frame_height": 480
        }
    """
    landmarks = landmarks_from_sequence(data.get("landmarks"))
    world_landmarks = landmarks_from_sequence(data.get("world_landmarks"))
    if landmarks is None or world_landmarks is None:
        return None
    return DetectionFrame(
        landmarks=landmarks,
        world_landmarks=world_landmarks,
        timestamp=_field(data, "timestamp"),
        frame_width=int(_field(data, "frame_width")),
        frame_height=int(_field(data, "frame_height")),
    )
