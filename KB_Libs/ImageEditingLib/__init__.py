"""
ImageEditingLib - Core raster editing functionality

This module provides the pixel buffer model, geometric and color
operations, and the image codec for KayaBlue.
"""

from KB_Libs.ImageEditingLib.errors import (
    PipelineError,
    DecodeError,
    InvalidDimension,
    InvalidCrop,
    EncodeError,
    InvalidParameter,
    SessionStateError,
    SessionBusyError,
    StalePreviewError,
)
from KB_Libs.ImageEditingLib.image_models import (
    PixelBuffer,
    CropRegion,
    FilterParameters,
    EncodeSpec,
    EncodedImage,
    RgbaColor,
)
from KB_Libs.ImageEditingLib.geometry_ops import (
    normalize_angle,
    rotated_size,
    rotate,
    resize,
    aspect_locked_size,
)
from KB_Libs.ImageEditingLib.crop_op import crop, view_to_source_rect
from KB_Libs.ImageEditingLib.color_filter import apply_filters, apply_blur
from KB_Libs.ImageEditingLib.codec import (
    decode,
    encode,
    compare_sizes,
    format_size,
    download_filename,
)

__all__ = [
    "PipelineError",
    "DecodeError",
    "InvalidDimension",
    "InvalidCrop",
    "EncodeError",
    "InvalidParameter",
    "SessionStateError",
    "SessionBusyError",
    "StalePreviewError",
    "PixelBuffer",
    "CropRegion",
    "FilterParameters",
    "EncodeSpec",
    "EncodedImage",
    "RgbaColor",
    "normalize_angle",
    "rotated_size",
    "rotate",
    "resize",
    "aspect_locked_size",
    "crop",
    "view_to_source_rect",
    "apply_filters",
    "apply_blur",
    "decode",
    "encode",
    "compare_sizes",
    "format_size",
    "download_filename",
]
