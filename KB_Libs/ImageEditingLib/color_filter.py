"""
Color Filter Operations.

Per-pixel color and tone adjustments followed by a spatial blur pass.
The color steps run in a fixed order on the R, G and B channels; alpha is
never touched:

1. Brightness   channel *= brightness / 100
2. Contrast     channel = ((channel / 255 - 0.5) * contrast / 100 + 0.5) * 255
3. Saturation   channel = L + saturation / 100 * (channel - L)
4. Grayscale    channel = channel + grayscale / 100 * (L - channel)
5. Sepia        channel = channel + sepia / 100 * (tone - channel)
6. Clamp to [0, 255] once, round half to even
7. Gaussian blur with radius = blur

L is the BT.601 luma of the current (already adjusted) values.
Intermediate values may leave the 0-255 range; only the final result is
clamped.

Example:
    >>> params = FilterParameters(saturation=0, blur=2)
    >>> result = apply_filters(buffer, params)
"""

import logging
from typing import Any, Dict, Union

import numpy as np

from KB_Libs.constants import (
    BRIGHTNESS_IDENTITY,
    CONTRAST_IDENTITY,
    GRAYSCALE_IDENTITY,
    LUMA_WEIGHTS,
    SATURATION_IDENTITY,
    SEPIA_BLUE,
    SEPIA_GREEN,
    SEPIA_IDENTITY,
    SEPIA_RED,
)
from KB_Libs.ImageEditingLib.image_models import FilterParameters, PixelBuffer
from KB_Libs.pillow_compat import ImageFilter

logger = logging.getLogger(__name__)


# ============================================================================
# Channel math
# ============================================================================

def _luma(r: np.ndarray, g: np.ndarray, b: np.ndarray) -> np.ndarray:
    wr, wg, wb = LUMA_WEIGHTS
    return wr * r + wg * g + wb * b


def _tone(r: np.ndarray, g: np.ndarray, b: np.ndarray, row) -> np.ndarray:
    cr, cg, cb = row
    return cr * r + cg * g + cb * b


def adjust_channels(rgb: np.ndarray, params: FilterParameters) -> np.ndarray:
    """
    Run steps 1-5 on a float array of shape (..., 3) and return the result.

    Identity steps are skipped. The output is not clamped.
    """
    r = rgb[..., 0].astype(np.float64)
    g = rgb[..., 1].astype(np.float64)
    b = rgb[..., 2].astype(np.float64)

    if params.brightness != BRIGHTNESS_IDENTITY:
        factor = params.brightness / 100.0
        r, g, b = r * factor, g * factor, b * factor

    if params.contrast != CONTRAST_IDENTITY:
        factor = params.contrast / 100.0
        r = ((r / 255.0 - 0.5) * factor + 0.5) * 255.0
        g = ((g / 255.0 - 0.5) * factor + 0.5) * 255.0
        b = ((b / 255.0 - 0.5) * factor + 0.5) * 255.0

    if params.saturation != SATURATION_IDENTITY:
        gray = _luma(r, g, b)
        factor = params.saturation / 100.0
        r = gray + factor * (r - gray)
        g = gray + factor * (g - gray)
        b = gray + factor * (b - gray)

    if params.grayscale > GRAYSCALE_IDENTITY:
        gray = _luma(r, g, b)
        factor = params.grayscale / 100.0
        r = r + factor * (gray - r)
        g = g + factor * (gray - g)
        b = b + factor * (gray - b)

    if params.sepia > SEPIA_IDENTITY:
        factor = params.sepia / 100.0
        tr = _tone(r, g, b, SEPIA_RED)
        tg = _tone(r, g, b, SEPIA_GREEN)
        tb = _tone(r, g, b, SEPIA_BLUE)
        r = r + factor * (tr - r)
        g = g + factor * (tg - g)
        b = b + factor * (tb - b)

    return np.stack([r, g, b], axis=-1)


def to_bytes(values: np.ndarray) -> np.ndarray:
    """Clamp to [0, 255] and round half to even into uint8."""
    return np.rint(np.clip(values, 0.0, 255.0)).astype(np.uint8)


# ============================================================================
# Buffer operations
# ============================================================================

def apply_color_adjustments(buffer: PixelBuffer, params: FilterParameters) -> PixelBuffer:
    """Apply steps 1-6 (no blur) and return a new buffer."""
    if not params.has_color_adjustments:
        return buffer.copy()

    source = buffer.to_array()
    output = source.copy()
    output[..., :3] = to_bytes(adjust_channels(source[..., :3], params))
    return PixelBuffer.from_array(output)


def apply_blur(buffer: PixelBuffer, radius: float) -> PixelBuffer:
    """
    Apply a Gaussian blur with the given radius in pixels.

    Radius 0 returns an unchanged copy.

    Raises:
        InvalidParameter: If radius is outside 0-100
    """
    radius = FilterParameters(blur=radius).blur
    if radius == 0:
        return buffer.copy()

    blurred = buffer.to_image().filter(ImageFilter.GaussianBlur(radius=radius))
    return PixelBuffer.from_image(blurred)


def apply_filters(
    buffer: PixelBuffer,
    params: Union[FilterParameters, Dict[str, Any]],
) -> PixelBuffer:
    """
    Apply the full filter chain in its fixed order.

    Args:
        buffer: Source pixels
        params: FilterParameters or a dict of its fields

    Returns:
        New PixelBuffer of the same size. All-identity parameters return a
        byte-identical copy.

    Raises:
        InvalidParameter: If any parameter is out of range
    """
    if isinstance(params, dict):
        params = FilterParameters.from_dict(params)

    if params.is_identity:
        return buffer.copy()

    result = apply_color_adjustments(buffer, params)
    if params.blur > 0:
        result = apply_blur(result, params.blur)

    logger.debug(f"filters: {buffer.width}x{buffer.height} with {params.to_dict()}")
    return result
