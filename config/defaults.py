"""
Default configuration values for the posture analysis engine
"""

# Rule thresholds at sensitivity 0.5 before scaling.
# Angle thresholds are degrees of deviation from baseline, ratio thresholds
# are unitless deltas of the matching channel.
RULE_THRESHOLDS = {
    'forward_head': 15.0,        # head-forward angle delta (deg)
    'forward_head_ffr': 0.05,    # face/frame ratio delta
    'forward_head_nte': 0.02,    # nose-below-ears delta
    'slouch': 20.0,              # torso angle delta (deg)
    'head_tilt': 12.0,           # ear line tilt delta (deg)
    'shoulder_asymmetry': 10.0,  # shoulder line delta (deg)
}

# Weights of the fused forward-head / too-close score
FORWARD_HEAD_WEIGHTS = {
    'nte': 0.6,
    'ffr': 0.2,
    'angle': 0.2,
}

# Hips are rarely visible from a desk webcam, so slouch is off by default
RULE_TOGGLES = {
    'forward_head': True,
    'slouch': False,
    'head_tilt': True,
    'too_close': True,
    'shoulder_asymmetry': True,
}

RULE_MESSAGES = {
    'FORWARD_HEAD': "Head is leaning forward or too close to the screen",
    'TOO_CLOSE': "Too close to the screen",
    'SLOUCH': "Slouching detected",
    'HEAD_TILT': "Head is tilted",
    'SHOULDER_ASYMMETRY': "Shoulders are uneven",
}

# sensitivity 0 -> thresholds x2.0, sensitivity 1 -> thresholds x0.5
SENSITIVITY_SETTINGS = {
    'default': 0.5,
    'scale_at_zero': 2.0,
    'scale_span': 1.5,
}

# Per-channel smoothing. 'unit' selects the drift ceiling below.
CHANNEL_SETTINGS = {
    'head_forward': {'unit': 'angle', 'alpha': 0.5, 'deadzone': 1.0},
    'torso': {'unit': 'angle', 'alpha': 0.5, 'deadzone': 1.0},
    'head_tilt': {'unit': 'angle', 'alpha': 0.5, 'deadzone': 1.0},
    'face_frame_ratio': {'unit': 'ratio', 'alpha': 0.5, 'deadzone': 0.02},
    'face_y': {'unit': 'ratio', 'alpha': 0.5, 'deadzone': 0.02},
    'nose_to_ear_avg': {'unit': 'ratio', 'alpha': 0.5, 'deadzone': 0.005},
    'shoulder_diff': {'unit': 'angle', 'alpha': 0.5, 'deadzone': 1.0},
}

# Adaptive baseline drift
DRIFT_SETTINGS = {
    'warmup_seconds': 30.0,   # continuous good posture before drift starts
    'drift_rate': 0.001,      # fraction of the gap closed per second
    'max_drift': {
        'angle': 8.0,
        'ratio': 0.1,
    },
}

# Screen tilt estimation (degrees of pitch per unit of signal change)
SCREEN_ANGLE_SETTINGS = {
    'face_y_scale': 45.0,
    'nose_chin_scale': 30.0,
    'eye_mouth_scale': 20.0,
    'head_forward_compensation': 0.8,
    'min_ear_span': 1e-6,
    'supported_lid_angles': (90, 110, 130),
}

VISIBILITY_SETTINGS = {
    'min_visibility': 0.5,
}

CALIBRATION_SETTINGS = {
    'total_samples': 30,
}

# Face position check run before calibration sampling
POSITION_CHECK_SETTINGS = {
    'face_ratio_too_close': 0.35,
    'face_ratio_too_far': 0.08,
    'center_tolerance': 0.25,
    'min_visibility': 0.5,
}

POSITION_MESSAGES = {
    'no_face': "No face detected. Make sure your face is in the camera view.",
    'too_far': "Please move a little closer to the camera.",
    'too_close': "Too close. Please lean back a little.",
    'off_center': "Please move your face to the center of the frame.",
    'good': "Position looks good!",
}
