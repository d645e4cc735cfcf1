import contextlib
import io
import json
import os
import tempfile
import unittest
from dataclasses import asdict

import main
from tests.helpers import leaning_in_landmarks, make_frame


class TestReplay(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)

    def _write_frames(self, frames, extra_lines=()):
        path = os.path.join(self.tmpdir.name, "frames.jsonl")
        with open(path, "w", encoding="utf-8") as handle:
            for frame in frames:
                handle.write(json.dumps(asdict(frame)) + "\n")
            for line in extra_lines:
                handle.write(line + "\n")
        return path

    def test_read_frames_skips_bad_lines(self):
        path = self._write_frames([make_frame(0.0)], extra_lines=["not json", "{}"])
        with self.assertLogs("main", level="WARNING"):
            frames = list(main.read_frames(path))
        self.assertEqual(len(frames), 1)

    def test_replay_reports_violations(self):
        frames = [make_frame(i * 100.0) for i in range(3)]
        frames += [make_frame(i * 100.0, landmarks=leaning_in_landmarks()) for i in range(3, 13)]
        path = self._write_frames(frames)

        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = main.main([path, "--calibration-frames", "3"])

        self.assertEqual(code, 0)
        lines = out.getvalue().strip().splitlines()
        self.assertEqual(len(lines), 11)
        self.assertIn("FORWARD_HEAD", lines[-2])
        self.assertTrue(lines[-1].startswith("10 frames analysed"))

    def test_saved_calibration_file(self):
        calibration = main.calibrate([make_frame(0.0)])
        cal_path = os.path.join(self.tmpdir.name, "calibration.json")
        with open(cal_path, "w", encoding="utf-8") as handle:
            json.dump(calibration.as_dict(), handle)

        loaded = main.load_calibration(cal_path)
        self.assertEqual(loaded, calibration)

        path = self._write_frames([make_frame(i * 100.0) for i in range(4)])
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = main.main([path, "--calibration", cal_path])
        self.assertEqual(code, 0)
        self.assertIn("4 frames analysed, 0 with violations", out.getvalue())

    def test_empty_input(self):
        path = self._write_frames([])
        self.assertEqual(main.main([path]), 1)


if __name__ == "__main__":
    unittest.main()
