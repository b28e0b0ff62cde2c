import unittest
from unittest import mock

import numpy as np
import torch

from arm_rl.perception import AllocationError, FormatError, PerceptionBuffer, packed_to_planar_bgr


def solid_frame(width: int, height: int, rgb: tuple[int, int, int]) -> bytes:
    img = np.zeros((height, width, 3), dtype=np.uint8)
    img[:, :] = rgb
    return img.tobytes()


class TestPerceptionBuffer(unittest.TestCase):
    def test_64x64_frame_converts_to_policy_tensor(self):
        buf = PerceptionBuffer(width=64, height=64, channels=3)
        buf.ingest_frame(solid_frame(64, 64, (255, 10, 0)), 64, 64, 3)
        self.assertTrue(buf.frame_ready)

        out = buf.convert()
        self.assertEqual(tuple(out.shape), (3, 64, 64))
        # planar BGR: channel 0 is blue, channel 2 is red
        self.assertTrue(torch.all(out[0] == 0.0).item())
        self.assertTrue(torch.all(out[1] == 10.0).item())
        self.assertTrue(torch.all(out[2] == 255.0).item())
        self.assertIs(out, buf.tensor)

    def test_unsupported_depth_is_rejected_without_state_change(self):
        buf = PerceptionBuffer(width=8, height=8)
        with self.assertRaises(FormatError):
            buf.ingest_frame(bytes(8 * 8 * 4), 8, 8, 4)
        self.assertFalse(buf.frame_ready)
        self.assertEqual(buf.staging_size, 0)
        self.assertEqual(buf.frames_received, 0)

    def test_short_buffer_is_rejected(self):
        buf = PerceptionBuffer(width=8, height=8)
        with self.assertRaises(FormatError):
            buf.ingest_frame(bytes(10), 8, 8, 3)
        self.assertFalse(buf.frame_ready)

    def test_staging_reallocates_only_on_size_change(self):
        buf = PerceptionBuffer(width=8, height=8)
        self.assertTrue(buf.ingest_frame(bytes(8 * 8 * 3), 8, 8, 3))
        self.assertFalse(buf.ingest_frame(bytes(8 * 8 * 3), 8, 8, 3))
        self.assertEqual(buf.resizes, 1)
        self.assertTrue(buf.ingest_frame(bytes(16 * 16 * 3), 16, 16, 3))
        self.assertEqual(buf.resizes, 2)
        self.assertEqual(buf.staging_size, 16 * 16 * 3)
        self.assertEqual(buf.raw_shape, (16, 16))

    def test_failed_reallocation_keeps_previous_frame(self):
        buf = PerceptionBuffer(width=4, height=4)
        buf.ingest_frame(solid_frame(4, 4, (50, 50, 50)), 4, 4, 3)

        with mock.patch.object(PerceptionBuffer, "_allocate", side_effect=AllocationError("out of memory")):
            with self.assertRaises(AllocationError):
                buf.ingest_frame(solid_frame(8, 8, (200, 200, 200)), 8, 8, 3)

        self.assertTrue(buf.frame_ready)
        self.assertEqual(buf.staging_size, 4 * 4 * 3)
        self.assertEqual(buf.raw_shape, (4, 4))
        self.assertEqual(buf.frames_received, 1)
        self.assertTrue(buf.take_frame())
        out = buf.convert()
        self.assertTrue(torch.all(out == 50.0).item())

    def test_newest_frame_wins_and_flag_is_consumed_once(self):
        buf = PerceptionBuffer(width=4, height=4)
        buf.ingest_frame(solid_frame(4, 4, (10, 10, 10)), 4, 4, 3)
        buf.ingest_frame(solid_frame(4, 4, (200, 200, 200)), 4, 4, 3)
        self.assertTrue(buf.take_frame())
        self.assertFalse(buf.take_frame())
        out = buf.convert()
        self.assertTrue(torch.all(out == 200.0).item())

    def test_resized_and_padded_rows(self):
        buf = PerceptionBuffer(width=8, height=8)
        width, height, step = 4, 4, 16
        rows = np.zeros((height, step), dtype=np.uint8)
        rows[:, : width * 3] = 50
        rows[:, width * 3 :] = 255  # row padding must be ignored
        buf.ingest_frame(rows.tobytes(), width, height, 3, step=step)
        out = buf.convert()
        self.assertEqual(tuple(out.shape), (3, 8, 8))
        self.assertTrue(torch.allclose(out, torch.full((3, 8, 8), 50.0)))

    def test_convert_without_frame_raises(self):
        buf = PerceptionBuffer(width=4, height=4)
        with self.assertRaises(FormatError):
            buf.convert()

    def test_packed_to_planar_rejects_bad_output_shape(self):
        raw = np.zeros((4 * 4 * 3,), dtype=np.uint8)
        with self.assertRaises(FormatError):
            packed_to_planar_bgr(raw, 4, 4, 12, torch.zeros((1, 4, 4)))


if __name__ == "__main__":
    unittest.main()
