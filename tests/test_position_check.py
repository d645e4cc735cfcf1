import unittest

from core.position_check import (
    GOOD,
    NO_FACE,
    OFF_CENTER,
    TOO_CLOSE,
    TOO_FAR,
    check_face_position,
)
from core.types import PoseLandmark
from tests.helpers import UPRIGHT_IMAGE, make_landmarks, upright_landmarks


class TestCheckFacePosition(unittest.TestCase):

    def test_good_position(self):
        result = check_face_position(upright_landmarks())
        self.assertEqual(result.status, GOOD)
        self.assertTrue(result.ok)

    def test_no_landmarks(self):
        self.assertEqual(check_face_position(None).status, NO_FACE)
        self.assertEqual(check_face_position(()).status, NO_FACE)

    def test_hidden_face(self):
        landmarks = make_landmarks(UPRIGHT_IMAGE, visibility={PoseLandmark.NOSE: 0.1})
        result = check_face_position(landmarks)
        self.assertEqual(result.status, NO_FACE)
        self.assertFalse(result.ok)

    def test_distance(self):
        far = upright_landmarks(left_ear=(0.52, 0.44), right_ear=(0.48, 0.44))
        close = upright_landmarks(left_ear=(0.75, 0.44), right_ear=(0.25, 0.44))
        self.assertEqual(check_face_position(far).status, TOO_FAR)
        self.assertEqual(check_face_position(close).status, TOO_CLOSE)

    def test_off_center(self):
        landmarks = upright_landmarks(nose=(0.9, 0.45))
        result = check_face_position(landmarks)
        self.assertEqual(result.status, OFF_CENTER)
        self.assertTrue(result.message)


if __name__ == "__main__":
    unittest.main()
