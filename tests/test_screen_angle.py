import math
import unittest

from config.defaults import SCREEN_ANGLE_SETTINGS
from core.screen_angle import (
    calibrate_screen_angle,
    compensate_angles,
    estimate_angle_change,
    estimate_angle_change_multi,
    extract_screen_angle_signals,
    nearest_reference,
)
from core.types import PostureAngles, ScreenAngleReference, ScreenAngleSignals
from tests.helpers import upright_landmarks


class TestEstimateAngleChange(unittest.TestCase):

    def setUp(self):
        self.reference = ScreenAngleSignals(face_y=0.35, nose_chin_ratio=0.29, eye_mouth_ratio=0.50)

    def test_face_lower_in_frame_means_screen_tilted_back(self):
        current = ScreenAngleSignals(face_y=0.45, nose_chin_ratio=0.29, eye_mouth_ratio=0.50)
        change = estimate_angle_change(current, self.reference)
        self.assertGreaterEqual(change, 3.5)
        self.assertLessEqual(change, 5.5)

    def test_same_signals_give_zero(self):
        self.assertAlmostEqual(estimate_angle_change(self.reference, self.reference), 0.0)

    def test_accepts_reference_objects(self):
        current = ScreenAngleSignals(face_y=0.35, nose_chin_ratio=0.39, eye_mouth_ratio=0.50)
        ref = calibrate_screen_angle(self.reference, angle=110)
        self.assertEqual(ref.angle, 110)
        self.assertAlmostEqual(estimate_angle_change(current, ref), 3.0)


class TestMultiReference(unittest.TestCase):

    def setUp(self):
        self.ref_90 = ScreenAngleReference(ScreenAngleSignals(0.30, 0.25, 0.45), angle=90)
        self.ref_110 = ScreenAngleReference(ScreenAngleSignals(0.40, 0.30, 0.50), angle=110)
        self.ref_130 = ScreenAngleReference(ScreenAngleSignals(0.50, 0.35, 0.55), angle=130)

    def test_no_references_gives_zero(self):
        self.assertEqual(estimate_angle_change_multi(ScreenAngleSignals(0.4, 0.3, 0.5), []), 0.0)

    def test_single_reference_matches_single_estimate(self):
        current = ScreenAngleSignals(0.42, 0.31, 0.49)
        self.assertEqual(
            estimate_angle_change_multi(current, [self.ref_110]),
            estimate_angle_change(current, self.ref_110),
        )

    def test_uses_nearest_reference(self):
        current = ScreenAngleSignals(0.49, 0.35, 0.55)
        refs = [self.ref_90, self.ref_110, self.ref_130]
        self.assertIs(nearest_reference(current, refs), self.ref_130)
        self.assertAlmostEqual(
            estimate_angle_change_multi(current, refs),
            estimate_angle_change(current, self.ref_130),
        )

    def test_first_reference_wins_ties(self):
        current = ScreenAngleSignals(0.40, 0.30, 0.50)
        duplicate = ScreenAngleReference(self.ref_110.signals, angle=111)
        self.assertIs(nearest_reference(current, [self.ref_110, duplicate]), self.ref_110)


class TestCompensationAccuracy(unittest.TestCase):
    """Compensated head-forward stays within 5 degrees of the true angle across lid angles."""

    TRUE_HEAD_FORWARD = 12.0
    REFERENCE = ScreenAngleSignals(face_y=0.35, nose_chin_ratio=0.29, eye_mouth_ratio=0.50)
    LID_OFFSETS = {
        90: (0.0, 0.0, 0.0),
        110: (0.06, 0.03, 0.02),
        130: (0.12, 0.06, 0.04),
    }

    def _signals_at(self, lid_angle, extra=(0.0, 0.0, 0.0)):
        d_face, d_nose, d_eye = self.LID_OFFSETS[lid_angle]
        return ScreenAngleSignals(
            face_y=self.REFERENCE.face_y + d_face + extra[0],
            nose_chin_ratio=self.REFERENCE.nose_chin_ratio + d_nose + extra[1],
            eye_mouth_ratio=self.REFERENCE.eye_mouth_ratio + d_eye + extra[2],
        )

    def _assert_close_to_true(self, measured, pitch_delta):
        compensated = compensate_angles(PostureAngles(head_forward=measured), pitch_delta)
        self.assertLess(abs(compensated.head_forward - self.TRUE_HEAD_FORWARD), 5.0)

    def test_single_reference(self):
        for lid_angle in (90, 110, 130):
            with self.subTest(lid_angle=lid_angle):
                pitch = estimate_angle_change(self._signals_at(lid_angle), self.REFERENCE)
                measured = self.TRUE_HEAD_FORWARD + 0.8 * pitch
                self._assert_close_to_true(measured, pitch)

    def test_tilted_screens_report_backward_pitch(self):
        pitch_110 = estimate_angle_change(self._signals_at(110), self.REFERENCE)
        pitch_130 = estimate_angle_change(self._signals_at(130), self.REFERENCE)
        self.assertGreater(pitch_110, 0.0)
        self.assertGreater(pitch_130, pitch_110)

    def test_multi_reference(self):
        references = [
            calibrate_screen_angle(self._signals_at(lid_angle), angle=lid_angle)
            for lid_angle in SCREEN_ANGLE_SETTINGS['supported_lid_angles']
        ]
        nudge = (0.01, 0.005, 0.003)
        for lid_angle in (90, 110, 130):
            with self.subTest(lid_angle=lid_angle):
                current = self._signals_at(lid_angle, nudge)
                self.assertEqual(nearest_reference(current, references).angle, lid_angle)

                true_pitch = estimate_angle_change(current, self._signals_at(lid_angle))
                measured = self.TRUE_HEAD_FORWARD + 0.8 * true_pitch
                self._assert_close_to_true(measured, estimate_angle_change_multi(current, references))


class TestSignalsAndCompensation(unittest.TestCase):

    def test_signals_from_landmarks(self):
        signals = extract_screen_angle_signals(upright_landmarks())
        self.assertAlmostEqual(signals.face_y, 0.45)
        self.assertAlmostEqual(signals.nose_chin_ratio, 0.05 / 0.16)
        self.assertAlmostEqual(signals.eye_mouth_ratio, 0.08 / 0.16)

    def test_zero_ear_span_stays_finite(self):
        landmarks = upright_landmarks(left_ear=(0.5, 0.44), right_ear=(0.5, 0.44))
        signals = extract_screen_angle_signals(landmarks)
        for value in signals.as_dict().values():
            self.assertTrue(math.isfinite(value))

    def test_zero_pitch_leaves_angles_unchanged(self):
        angles = PostureAngles(head_forward=12.0, torso=4.0)
        self.assertEqual(compensate_angles(angles, 0.0), angles)
        self.assertEqual(compensate_angles(angles, math.nan), angles)

    def test_compensation_only_touches_head_forward(self):
        angles = PostureAngles(head_forward=12.0, torso=4.0, head_tilt=2.0, face_frame_ratio=0.2)
        compensated = compensate_angles(angles, 5.0)
        self.assertAlmostEqual(compensated.head_forward, 8.0)
        self.assertEqual(compensated.torso, 4.0)
        self.assertEqual(compensated.head_tilt, 2.0)
        self.assertEqual(compensated.face_frame_ratio, 0.2)
        self.assertEqual(angles.head_forward, 12.0)


if __name__ == "__main__":
    unittest.main()
