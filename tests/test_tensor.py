import unittest

import numpy as np

from screw_kit.errors import TensorShapeError
from screw_kit.tensor import OutputTensor


class TestOutputTensor(unittest.TestCase):
    def test_accessors(self) -> None:
        p = np.arange(37 * 8400, dtype=np.float32).reshape(37, 8400)
        t = OutputTensor(p)
        self.assertEqual(t.shape, (37, 8400))
        self.assertEqual(t.boxes().shape, (4, 8400))
        self.assertTrue(np.array_equal(t.confidences(), p[4]))
        self.assertTrue(np.array_equal(t.row(2), p[2]))
        self.assertTrue(np.array_equal(t.column(10), p[:, 10]))
        coeffs = t.mask_coefficients(10)
        self.assertEqual(len(coeffs), 32)
        self.assertEqual(coeffs, tuple(float(v) for v in p[5:, 10]))

    def test_batch_axis_is_dropped(self) -> None:
        p = np.zeros((1, 37, 8400), dtype=np.float32)
        self.assertEqual(OutputTensor(p).shape, (37, 8400))

    def test_view_is_read_only_and_caller_array_untouched(self) -> None:
        p = np.zeros((37, 8400), dtype=np.float32)
        t = OutputTensor(p)
        with self.assertRaises(ValueError):
            t.data[0, 0] = 1.0
        self.assertTrue(p.flags.writeable)

    def test_wrong_channel_count(self) -> None:
        with self.assertRaises(TensorShapeError):
            OutputTensor(np.zeros((36, 8400), dtype=np.float32))

    def test_wrong_anchor_count(self) -> None:
        with self.assertRaises(TensorShapeError):
            OutputTensor(np.zeros((37, 8000), dtype=np.float32))

    def test_transposed_layout_rejected(self) -> None:
        with self.assertRaises(TensorShapeError):
            OutputTensor(np.zeros((8400, 37), dtype=np.float32))

    def test_batch_larger_than_one_rejected(self) -> None:
        with self.assertRaises(TensorShapeError):
            OutputTensor(np.zeros((2, 37, 8400), dtype=np.float32))

    def test_shape_error_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            OutputTensor(np.zeros((37,), dtype=np.float32))

    def test_custom_layout(self) -> None:
        t = OutputTensor(np.zeros((5, 16), dtype=np.float32), channels=5, anchors=16)
        self.assertEqual(t.mask_coefficients(0), ())


if __name__ == "__main__":
    unittest.main()
