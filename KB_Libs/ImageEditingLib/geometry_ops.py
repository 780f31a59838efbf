"""
Geometric transformations for pixel buffers.

Functions:
    normalize_angle: Map any angle to [0, 360)
    rotated_size: Bounding box of a rotated width x height rectangle
    rotate: Rotate clockwise about the center, growing the canvas to fit
    resize: Resample to an exact target size
    aspect_locked_size: Target size that keeps the source aspect ratio
"""

import logging
import math
from typing import Optional, Tuple

import numpy as np

from KB_Libs.constants import TRANSPARENT
from KB_Libs.ImageEditingLib.errors import InvalidDimension, InvalidParameter
from KB_Libs.ImageEditingLib.image_models import PixelBuffer, as_dimension
from KB_Libs.pillow_compat import Image

logger = logging.getLogger(__name__)

# Angles within this many degrees of a multiple of 90 take the exact path
RIGHT_ANGLE_TOLERANCE = 1e-9


def _check_angle(angle: float) -> float:
    try:
        value = float(angle)
    except (TypeError, ValueError):
        raise InvalidParameter(f"angle must be a number, got {angle!r}")
    if not math.isfinite(value):
        raise InvalidParameter(f"angle must be finite, got {angle}")
    return value


def normalize_angle(angle: float) -> float:
    """Map an angle in degrees to the range [0, 360)."""
    normalized = _check_angle(angle) % 360.0
    # tiny negative inputs round up to exactly 360.0
    if normalized >= 360.0:
        normalized = 0.0
    return normalized


def _trig(angle: float) -> Tuple[float, float]:
    radians = math.radians(angle)
    return round(math.cos(radians), 15), round(math.sin(radians), 15)


def rotated_size(width: int, height: int, angle: float) -> Tuple[int, int]:
    """
    Axis-aligned bounding box of a width x height rectangle rotated by angle.

    Returns:
        (ceil(w|cos| + h|sin|), ceil(w|sin| + h|cos|))
    """
    cos_a, sin_a = _trig(_check_angle(angle))
    cos_a, sin_a = abs(cos_a), abs(sin_a)
    new_width = math.ceil(round(width * cos_a + height * sin_a, 9))
    new_height = math.ceil(round(width * sin_a + height * cos_a, 9))
    return max(1, new_width), max(1, new_height)


def _quarter_turns(angle: float) -> Optional[int]:
    turns = angle / 90.0
    nearest = round(turns)
    if abs(turns - nearest) * 90.0 <= RIGHT_ANGLE_TOLERANCE:
        return int(nearest) % 4
    return None


def _rotate_resampled(source: PixelBuffer, angle: float) -> PixelBuffer:
    new_width, new_height = rotated_size(source.width, source.height, angle)
    cos_a, sin_a = _trig(angle)

    # Inverse map output -> source about the two centers (y axis points down,
    # so this matrix turns the picture clockwise on screen)
    src_cx, src_cy = source.width / 2.0, source.height / 2.0
    out_cx, out_cy = new_width / 2.0, new_height / 2.0
    a, b = cos_a, sin_a
    d, e = -sin_a, cos_a
    c = src_cx - a * out_cx - b * out_cy
    f = src_cy - d * out_cx - e * out_cy

    rotated = source.to_image().transform(
        (new_width, new_height),
        Image.Transform.AFFINE,
        (a, b, c, d, e, f),
        resample=Image.Resampling.BICUBIC,
        fillcolor=TRANSPARENT,
    )
    return PixelBuffer.from_image(rotated)


def rotate(buffer: PixelBuffer, angle: float) -> PixelBuffer:
    """
    Rotate a buffer clockwise by angle degrees about its center.

    The output is the bounding box of the rotated source; uncovered pixels are
    transparent. Multiples of 90 degrees are exact pixel permutations. When
    the input was itself produced by rotate(), the original source is rotated
    by the combined angle instead, so repeated rotations neither grow the
    canvas nor accumulate resampling error.

    That lineage is carried in PixelBuffer.rotation_origin, which equality
    ignores. Two buffers that compare equal can therefore rotate differently:
    buffer.copy() drops the lineage, so rotate(buffer.copy(), angle) resamples
    the padded canvas while rotate(buffer, angle) goes back to the source.
    A rotated buffer also keeps its pre-rotation source alive for as long as
    it is referenced.

    Args:
        buffer: Source pixels
        angle: Degrees, any finite value; positive is clockwise

    Returns:
        New PixelBuffer

    Raises:
        InvalidParameter: If angle is not a finite number
    """
    angle = _check_angle(angle)
    source = buffer
    if buffer.rotation_origin is not None:
        source, previous = buffer.rotation_origin
        angle = previous + angle

    total = normalize_angle(angle)
    turns = _quarter_turns(total)

    if turns == 0:
        logger.debug(f"rotate: {source.width}x{source.height} by {total:.3f} is identity")
        return source.copy()

    if turns is not None:
        # np.rot90 turns counter-clockwise for positive k
        rotated = PixelBuffer.from_array(np.rot90(source.to_array(), k=-turns, axes=(0, 1)))
    else:
        rotated = _rotate_resampled(source, total)

    logger.debug(
        f"rotate: {source.width}x{source.height} by {total:.3f} "
        f"-> {rotated.width}x{rotated.height}"
    )
    return PixelBuffer(rotated.width, rotated.height, rotated.pixels, rotation_origin=(source, total))


def resize(buffer: PixelBuffer, width: int, height: int) -> PixelBuffer:
    """
    Resample a buffer to exactly width x height using a Lanczos filter.

    Aspect ratio is the caller's concern; see aspect_locked_size().

    Raises:
        InvalidDimension: If width or height is not a positive integer
    """
    width = as_dimension(width, "width")
    height = as_dimension(height, "height")

    if (width, height) == buffer.size:
        return buffer.copy()

    resized = buffer.to_image().resize((width, height), Image.Resampling.LANCZOS)
    logger.debug(f"resize: {buffer.width}x{buffer.height} -> {width}x{height}")
    return PixelBuffer.from_image(resized)


def aspect_locked_size(
    width: int,
    height: int,
    target_width: Optional[int] = None,
    target_height: Optional[int] = None,
) -> Tuple[int, int]:
    """
    Compute a target size that keeps width:height.

    With one target given, the other side follows the ratio. With both given,
    the result is the largest size that fits inside the box.

    Raises:
        InvalidDimension: If no target is given or any size is invalid
    """
    width = as_dimension(width, "width")
    height = as_dimension(height, "height")

    if target_width is None and target_height is None:
        raise InvalidDimension("aspect_locked_size needs target_width or target_height")

    if target_height is None:
        target_width = as_dimension(target_width, "target_width")
        return target_width, max(1, round(target_width * height / width))

    if target_width is None:
        target_height = as_dimension(target_height, "target_height")
        return max(1, round(target_height * width / height)), target_height

    target_width = as_dimension(target_width, "target_width")
    target_height = as_dimension(target_height, "target_height")
    scale = min(target_width / width, target_height / height)
    return max(1, round(width * scale)), max(1, round(height * scale))
