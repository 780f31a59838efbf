"""
Tests for the crop operation and view-to-source rescaling.
"""

import unittest

import pytest

from KB_Libs.ImageEditingLib.crop_op import crop, validate_crop_region, view_to_source_rect
from KB_Libs.ImageEditingLib.errors import InvalidCrop
from KB_Libs.ImageEditingLib.image_models import CropRegion, PixelBuffer

from conftest import make_gradient_array


class TestViewToSourceRect:
    """Tests for view_to_source_rect."""

    def test_identity_scale(self):
        assert view_to_source_rect((10, 5, 30, 20), 100, 50, 100, 50) == (10, 5, 30, 20)

    def test_downscaled_view(self):
        # view is twice the natural size, so every view unit is half a pixel
        assert view_to_source_rect((10, 5, 30, 20), 200, 100, 100, 50) == (5, 2, 15, 10)

    def test_upscaled_view(self):
        assert view_to_source_rect((1, 1, 10, 5), 50, 25, 100, 50) == (2, 2, 20, 10)

    def test_fractional_scale_floors_to_full(self):
        assert view_to_source_rect((0, 0, 300, 150), 300, 150, 100, 50) == (0, 0, 100, 50)

    def test_clamped_to_source(self):
        x, y, width, height = view_to_source_rect((90, 40, 10, 10), 100, 50, 100, 50)
        assert x + width <= 100
        assert y + height <= 50


class TestValidateCropRegion:
    """Tests for validate_crop_region."""

    @pytest.mark.parametrize("region, view", [
        ((0, 0, 0, 10), (100, 50)),
        ((0, 0, 10, -1), (100, 50)),
        ((-1, 0, 10, 10), (100, 50)),
        ((0, -5, 10, 10), (100, 50)),
        ((95, 0, 10, 10), (100, 50)),
        ((0, 45, 10, 10), (100, 50)),
        ((0, 0, 10, 10), (0, 50)),
        ((0, 0, 10, 10), (100, -1)),
        ((0, 0, float("nan"), 10), (100, 50)),
        ((0, 0, 10), (100, 50)),
    ])
    def test_rejects(self, region, view):
        with pytest.raises(InvalidCrop):
            validate_crop_region(region, *view)

    def test_accepts_full_view(self):
        assert validate_crop_region((0, 0, 100, 50), 100, 50) == CropRegion(0, 0, 100, 50)

    def test_tolerates_float_noise_at_edge(self):
        validate_crop_region((0, 0, 100.0000000001, 50), 100, 50)


class TestCrop(unittest.TestCase):
    """Test crop extraction."""

    def setUp(self):
        self.buffer = PixelBuffer.from_array(make_gradient_array(100, 50))

    def test_full_view_is_identity(self):
        self.assertEqual(crop(self.buffer, (0, 0, 100, 50), 100, 50), self.buffer)

    def test_full_scaled_view_is_identity(self):
        self.assertEqual(crop(self.buffer, (0, 0, 300, 150), 300, 150), self.buffer)

    def test_region_object_and_tuple_agree(self):
        a = crop(self.buffer, CropRegion(10, 5, 20, 10), 100, 50)
        b = crop(self.buffer, (10, 5, 20, 10), 100, 50)
        self.assertEqual(a, b)

    def test_exact_pixels_at_unit_scale(self):
        result = crop(self.buffer, (10, 5, 20, 10), 100, 50)
        self.assertEqual(result.size, (20, 10))
        self.assertEqual(result.pixel(0, 0), self.buffer.pixel(10, 5))
        self.assertEqual(result.pixel(19, 9), self.buffer.pixel(29, 14))

    def test_scaled_view_maps_to_source(self):
        # displayed at 2x; region (20, 10, 100, 50) is source (10, 5, 50, 25)
        result = crop(self.buffer, (20, 10, 100, 50), 200, 100)
        self.assertEqual(result.size, (50, 25))
        self.assertEqual(result.pixel(0, 0), self.buffer.pixel(10, 5))
        self.assertEqual(result.pixel(49, 24), self.buffer.pixel(59, 29))

    def test_device_pixel_ratio_scales_output(self):
        result = crop(self.buffer, (0, 0, 50, 25), 100, 50, device_pixel_ratio=2)
        self.assertEqual(result.size, (100, 50))

    def test_fractional_ratio_floors_output(self):
        result = crop(self.buffer, (0, 0, 50, 25), 100, 50, device_pixel_ratio=1.5)
        self.assertEqual(result.size, (75, 37))

    def test_invalid_ratio_raises(self):
        for ratio in (0, -1, float("inf"), "two"):
            with self.assertRaises(InvalidCrop):
                crop(self.buffer, (0, 0, 10, 10), 100, 50, device_pixel_ratio=ratio)

    def test_sub_pixel_region_raises(self):
        with self.assertRaises(InvalidCrop):
            crop(self.buffer, (0, 0, 0.5, 0.5), 100, 50)

    def test_region_outside_view_raises(self):
        with self.assertRaises(InvalidCrop):
            crop(self.buffer, (50, 0, 60, 10), 100, 50)

    def test_input_not_modified(self):
        before = self.buffer.pixels
        crop(self.buffer, (5, 5, 10, 10), 100, 50)
        self.assertEqual(self.buffer.pixels, before)
