"""
Pytest configuration and shared fixtures for KayaBlue tests.

This module provides shared buffers and encoded images used across
multiple test modules.
"""

import io

import numpy as np
import pytest
from PIL import Image

from KB_Libs.ImageEditingLib.image_models import PixelBuffer


def make_gradient_array(width, height, alpha=255):
    """
    Build a (height, width, 4) uint8 array where every pixel differs.

    Red follows x, green follows y, blue mixes both.
    """
    ys, xs = np.mgrid[0:height, 0:width]
    rgba = np.empty((height, width, 4), dtype=np.uint8)
    rgba[..., 0] = (xs * 255) // max(1, width - 1)
    rgba[..., 1] = (ys * 255) // max(1, height - 1)
    rgba[..., 2] = (xs * 7 + ys * 13) % 256
    rgba[..., 3] = alpha
    return rgba


def encode_with_pillow(buffer, fmt="PNG", **kwargs):
    """Encode a buffer with Pillow directly, bypassing the codec."""
    image = buffer.to_image()
    if fmt == "JPEG":
        image = image.convert("RGB")
    output = io.BytesIO()
    image.save(output, format=fmt, **kwargs)
    return output.getvalue()


@pytest.fixture
def gradient_buffer():
    """
    Provide a 100x50 opaque buffer with a distinct color at every pixel.

    Returns:
        PixelBuffer of size 100x50
    """
    return PixelBuffer.from_array(make_gradient_array(100, 50))


@pytest.fixture
def translucent_buffer():
    """Provide a 40x30 buffer with varying alpha."""
    rgba = make_gradient_array(40, 30)
    ys, xs = np.mgrid[0:30, 0:40]
    rgba[..., 3] = (xs * 5 + ys * 3) % 256
    return PixelBuffer.from_array(rgba)


@pytest.fixture
def sample_rgba_colors():
    """
    Provide a list of sample RGBA color tuples for testing.

    Returns:
        List of (R, G, B, A) tuples with common test colors
    """
    return [
        (255, 0, 0, 255),    # Red
        (0, 255, 0, 255),    # Green
        (0, 0, 255, 255),    # Blue
        (255, 255, 255, 255),  # White
        (0, 0, 0, 255),      # Black
        (128, 128, 128, 255),  # Gray
    ]


@pytest.fixture
def png_bytes(gradient_buffer):
    """Provide the gradient buffer encoded as PNG bytes."""
    return encode_with_pillow(gradient_buffer, "PNG")


@pytest.fixture
def temp_output_dir(tmp_path):
    """Provide a temporary directory for CLI output files."""
    return tmp_path
