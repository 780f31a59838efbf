"""
Tests for the color filter engine.

Tests cover:
- Identity parameters
- Individual adjustments and their fixed order
- Clamping and rounding
- Alpha preservation
- Gaussian blur pass
"""

import unittest

import numpy as np

from KB_Libs.ImageEditingLib.color_filter import (
    adjust_channels,
    apply_blur,
    apply_filters,
    to_bytes,
)
from KB_Libs.ImageEditingLib.errors import InvalidParameter
from KB_Libs.ImageEditingLib.image_models import FilterParameters, PixelBuffer

from conftest import make_gradient_array


def solid(color, width=4, height=4):
    return PixelBuffer.blank(width, height, color)


class TestIdentity(unittest.TestCase):
    """Identity parameters leave pixels untouched."""

    def test_identity_returns_equal_buffer(self):
        buffer = PixelBuffer.from_array(make_gradient_array(30, 20, alpha=128))
        self.assertEqual(apply_filters(buffer, FilterParameters()), buffer)

    def test_identity_dict(self):
        buffer = solid((1, 2, 3, 4))
        self.assertEqual(apply_filters(buffer, {}), buffer)

    def test_explicit_identity_values(self):
        buffer = solid((9, 99, 199, 255))
        params = FilterParameters(brightness=100, contrast=100, saturation=100, grayscale=0, sepia=0, blur=0)
        self.assertEqual(apply_filters(buffer, params), buffer)


class TestAdjustments(unittest.TestCase):
    """Single adjustments on solid colors."""

    def test_brightness_doubles_and_clamps(self):
        result = apply_filters(solid((200, 100, 50, 255)), FilterParameters(brightness=200))
        self.assertEqual(result.pixel(0, 0), (255, 200, 100, 255))

    def test_brightness_zero_is_black(self):
        result = apply_filters(solid((200, 100, 50, 77)), FilterParameters(brightness=0))
        self.assertEqual(result.pixel(0, 0), (0, 0, 0, 77))

    def test_contrast_zero_is_mid_gray(self):
        # 127.5 rounds half to even
        result = apply_filters(solid((10, 200, 255, 255)), FilterParameters(contrast=0))
        self.assertEqual(result.pixel(0, 0), (128, 128, 128, 255))

    def test_saturation_zero_equalizes_channels(self):
        buffer = PixelBuffer.from_array(make_gradient_array(50, 20))
        arr = apply_filters(buffer, FilterParameters(saturation=0)).to_array()
        np.testing.assert_array_equal(arr[..., 0], arr[..., 1])
        np.testing.assert_array_equal(arr[..., 1], arr[..., 2])

    def test_saturation_zero_uses_luma(self):
        result = apply_filters(solid((255, 0, 0, 255)), FilterParameters(saturation=0))
        # 0.2989 * 255 = 76.22
        self.assertEqual(result.pixel(0, 0), (76, 76, 76, 255))

    def test_full_grayscale_is_near_luma(self):
        result = apply_filters(solid((0, 255, 0, 255)), FilterParameters(grayscale=100))
        r, g, b, _ = result.pixel(0, 0)
        # 0.5870 * 255 = 149.69
        for value in (r, g, b):
            self.assertLessEqual(abs(value - 150), 1)

    def test_full_sepia_on_white(self):
        result = apply_filters(solid((255, 255, 255, 255)), FilterParameters(sepia=100))
        # red and green overflow; blue = 0.937 * 255 = 238.9
        self.assertEqual(result.pixel(0, 0), (255, 255, 239, 255))

    def test_half_sepia_blends(self):
        full = apply_filters(solid((100, 100, 100, 255)), FilterParameters(sepia=100)).pixel(0, 0)
        half = apply_filters(solid((100, 100, 100, 255)), FilterParameters(sepia=50)).pixel(0, 0)
        for original, toned, blended in zip((100, 100, 100), full[:3], half[:3]):
            self.assertLessEqual(abs(blended - (original + toned) / 2), 1)


class TestOrderAndClamping(unittest.TestCase):
    """The chain runs in a fixed order and clamps once at the end."""

    def test_brightness_runs_before_contrast(self):
        # brightness first: 100 -> 50 -> (50 - 127.5) * 2 + 127.5 < 0
        result = apply_filters(solid((100, 100, 100, 255)), FilterParameters(brightness=50, contrast=200))
        self.assertEqual(result.pixel(0, 0)[:3], (0, 0, 0))

    def test_intermediate_values_not_clamped(self):
        # 200 -> 400 -> (400 - 127.5) * 0.5 + 127.5 = 263.75 -> 255
        # clamping after brightness would give 191
        result = apply_filters(solid((200, 200, 200, 255)), FilterParameters(brightness=200, contrast=50))
        self.assertEqual(result.pixel(0, 0)[:3], (255, 255, 255))

    def test_adjust_channels_is_unclamped(self):
        rgb = np.array([[[200.0, 200.0, 200.0]]])
        out = adjust_channels(rgb, FilterParameters(brightness=200))
        self.assertAlmostEqual(out[0, 0, 0], 400.0)

    def test_to_bytes_rounds_half_to_even(self):
        values = np.array([0.5, 1.5, 2.5, -3.0, 300.0])
        np.testing.assert_array_equal(to_bytes(values), np.array([0, 2, 2, 0, 255], dtype=np.uint8))

    def test_deterministic(self):
        buffer = PixelBuffer.from_array(make_gradient_array(40, 40))
        params = FilterParameters(brightness=130, contrast=80, saturation=150, grayscale=20, sepia=40, blur=1.5)
        self.assertEqual(apply_filters(buffer, params), apply_filters(buffer, params))


class TestAlpha(unittest.TestCase):
    """Color adjustments never touch alpha."""

    def test_alpha_untouched(self):
        rgba = make_gradient_array(40, 30)
        rgba[..., 3] = np.arange(40 * 30).reshape(30, 40) % 256
        buffer = PixelBuffer.from_array(rgba)
        params = FilterParameters(brightness=150, contrast=70, saturation=0, grayscale=50, sepia=80)

        result = apply_filters(buffer, params)

        np.testing.assert_array_equal(result.to_array()[..., 3], buffer.to_array()[..., 3])


class TestBlur(unittest.TestCase):
    """Gaussian blur pass."""

    def setUp(self):
        checker = np.zeros((32, 32, 4), dtype=np.uint8)
        checker[..., 3] = 255
        checker[::2, ::2, :3] = 255
        checker[1::2, 1::2, :3] = 255
        self.checker = PixelBuffer.from_array(checker)

    def test_zero_radius_is_copy(self):
        self.assertEqual(apply_blur(self.checker, 0), self.checker)

    def test_blur_smooths(self):
        blurred = apply_blur(self.checker, 2)
        before = self.checker.to_array()[..., :3].astype(float).std()
        after = blurred.to_array()[..., :3].astype(float).std()
        self.assertEqual(blurred.size, self.checker.size)
        self.assertLess(after, before / 2)

    def test_blur_keeps_solid_color(self):
        blurred = apply_blur(solid((40, 80, 120, 255), 16, 16), 3)
        arr = blurred.to_array().astype(int)
        self.assertLessEqual(np.abs(arr - np.array([40, 80, 120, 255])).max(), 1)

    def test_blur_through_filters(self):
        self.assertEqual(
            apply_filters(self.checker, FilterParameters(blur=2)),
            apply_blur(self.checker, 2),
        )

    def test_invalid_radius(self):
        with self.assertRaises(InvalidParameter):
            apply_blur(self.checker, 101)
        with self.assertRaises(InvalidParameter):
            apply_filters(self.checker, {"blur": -2})
