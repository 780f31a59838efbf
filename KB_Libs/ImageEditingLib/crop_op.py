"""
Crop operation with view-to-source coordinate rescaling.

The crop selection is drawn on a displayed (possibly scaled) view of the
image. Its rectangle is converted to source-buffer pixels before extraction:

    scaleX = naturalWidth / viewWidth
    scaleY = naturalHeight / viewHeight

Offsets and sizes are floored so the source rectangle never reaches past the
buffer edge. A device pixel ratio multiplies the output size on both axes.

Functions:
    validate_crop_region: Reject degenerate or out-of-view regions
    view_to_source_rect: Convert a view region to a clamped source rectangle
    crop: Extract the region into a new PixelBuffer
"""

import logging
import math
from typing import Tuple, Union

from KB_Libs.constants import MAX_DIMENSION
from KB_Libs.ImageEditingLib.errors import InvalidCrop
from KB_Libs.ImageEditingLib.image_models import CropRegion, PixelBuffer
from KB_Libs.pillow_compat import Image

logger = logging.getLogger(__name__)

# Slack for view coordinates that come from floating point UI math
VIEW_EPSILON = 1e-6
# Slack before flooring products that should be whole numbers
FLOOR_EPSILON = 1e-9

RegionLike = Union[CropRegion, Tuple[float, float, float, float]]


def _floor_px(value: float) -> int:
    return int(math.floor(value + FLOOR_EPSILON))


def _as_region(region: RegionLike) -> CropRegion:
    if isinstance(region, CropRegion):
        return region
    try:
        return CropRegion.from_tuple(tuple(region))
    except (TypeError, ValueError):
        raise InvalidCrop(f"crop region must be (x, y, width, height), got {region!r}")


def validate_crop_region(region: RegionLike, view_width: float, view_height: float) -> CropRegion:
    """
    Check a crop region against the view it was drawn on.

    Returns:
        The region as a CropRegion

    Raises:
        InvalidCrop: If the region has a non-positive size, a negative offset,
            extends past the view, or the view itself is empty
    """
    region = _as_region(region)
    values = (region.x, region.y, region.width, region.height, view_width, view_height)
    if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in values):
        raise InvalidCrop(f"crop values must be finite numbers: {region}, view {view_width}x{view_height}")

    if view_width <= 0 or view_height <= 0:
        raise InvalidCrop(f"view size must be positive, got {view_width}x{view_height}")
    if region.width <= 0 or region.height <= 0:
        raise InvalidCrop(f"crop size must be positive, got {region.width}x{region.height}")
    if region.x < 0 or region.y < 0:
        raise InvalidCrop(f"crop offset must be non-negative, got ({region.x}, {region.y})")
    if region.right > view_width + VIEW_EPSILON or region.bottom > view_height + VIEW_EPSILON:
        raise InvalidCrop(
            f"crop {region.x},{region.y} {region.width}x{region.height} "
            f"exceeds view {view_width}x{view_height}"
        )
    return region


def view_to_source_rect(
    region: RegionLike,
    view_width: float,
    view_height: float,
    natural_width: int,
    natural_height: int,
) -> Tuple[int, int, int, int]:
    """
    Convert a view-space region into a source rectangle (x, y, width, height).

    Offsets and sizes are floored and the result is clamped to the source.
    """
    region = validate_crop_region(region, view_width, view_height)

    x = _floor_px(region.x * natural_width / view_width)
    y = _floor_px(region.y * natural_height / view_height)
    width = _floor_px(region.width * natural_width / view_width)
    height = _floor_px(region.height * natural_height / view_height)

    x = min(max(0, x), natural_width - 1)
    y = min(max(0, y), natural_height - 1)
    width = min(width, natural_width - x)
    height = min(height, natural_height - y)
    return x, y, width, height


def crop(
    buffer: PixelBuffer,
    region: RegionLike,
    view_width: float,
    view_height: float,
    device_pixel_ratio: float = 1.0,
) -> PixelBuffer:
    """
    Extract a view-space region from a buffer.

    Args:
        buffer: Source pixels
        region: Selection in view units (CropRegion or (x, y, width, height))
        view_width: Width of the rendered view the region was drawn on
        view_height: Height of the rendered view
        device_pixel_ratio: Physical pixels per logical pixel on the output

    Returns:
        New PixelBuffer of floor(width*scaleX*dpr) x floor(height*scaleY*dpr)

    Raises:
        InvalidCrop: If the region or ratio is invalid, or the output is empty
    """
    try:
        ratio = float(device_pixel_ratio)
    except (TypeError, ValueError):
        raise InvalidCrop(f"device_pixel_ratio must be a number, got {device_pixel_ratio!r}")
    if not math.isfinite(ratio) or ratio <= 0:
        raise InvalidCrop(f"device_pixel_ratio must be positive, got {device_pixel_ratio}")

    region = validate_crop_region(region, view_width, view_height)
    x, y, src_width, src_height = view_to_source_rect(
        region, view_width, view_height, buffer.width, buffer.height
    )

    out_width = _floor_px(region.width * buffer.width * ratio / view_width)
    out_height = _floor_px(region.height * buffer.height * ratio / view_height)

    if src_width <= 0 or src_height <= 0 or out_width <= 0 or out_height <= 0:
        raise InvalidCrop(
            f"crop {region.width}x{region.height} of view {view_width}x{view_height} "
            f"is smaller than one source pixel"
        )
    if out_width > MAX_DIMENSION or out_height > MAX_DIMENSION:
        raise InvalidCrop(f"crop output {out_width}x{out_height} exceeds {MAX_DIMENSION}px")

    if (out_width, out_height) == (src_width, src_height):
        window = buffer.to_array()[y:y + src_height, x:x + src_width]
        result = PixelBuffer.from_array(window)
    else:
        scaled = buffer.to_image().resize(
            (out_width, out_height),
            Image.Resampling.LANCZOS,
            box=(x, y, x + src_width, y + src_height),
        )
        result = PixelBuffer.from_image(scaled)

    logger.debug(
        f"crop: view ({region.x}, {region.y}, {region.width}, {region.height}) on "
        f"{view_width}x{view_height} -> source ({x}, {y}, {src_width}, {src_height}) "
        f"-> {result.width}x{result.height}"
    )
    return result
