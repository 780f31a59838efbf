"""
Image editing data models for KayaBlue.

This module defines the value types that flow through the editing pipeline.
All of them are frozen dataclasses: an operation never changes a record in
place, it builds a new one.

Classes:
    PixelBuffer: Immutable RGBA raster (width, height, contiguous bytes)
    CropRegion: Rectangle in displayed-view units
    FilterParameters: Color/tone filter settings with identity defaults
    EncodeSpec: Target MIME type and quality for the encoder
    EncodedImage: Encoded bytes plus the metadata needed to hand them off

Type Aliases:
    RgbaColor: A tuple of 4 integers representing RGBA color values (0-255)
"""

import base64
import math
import operator
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np

from KB_Libs.constants import (
    BLUR_IDENTITY,
    BLUR_RANGE,
    BRIGHTNESS_IDENTITY,
    CHANNELS,
    CONTRAST_IDENTITY,
    DEFAULT_LOSSY_QUALITY,
    DEFAULT_OUTPUT_MIME,
    FILE_EXTENSIONS,
    GRAYSCALE_IDENTITY,
    LOSSLESS_MIME_TYPES,
    MAX_DIMENSION,
    MIME_ALIASES,
    PERCENT_RANGE_BLEND,
    PERCENT_RANGE_WIDE,
    PIL_FORMATS,
    PIXEL_MODE,
    SATURATION_IDENTITY,
    SEPIA_IDENTITY,
    SUPPORTED_OUTPUT_MIME_TYPES,
    TRANSPARENT,
)
from KB_Libs.ImageEditingLib.errors import EncodeError, InvalidDimension, InvalidParameter
from KB_Libs.pillow_compat import Image, ImageClass

RgbaColor = Tuple[int, int, int, int]


def as_dimension(value: Any, name: str = "dimension") -> int:
    """
    Coerce a width or height to a positive int.

    Raises:
        InvalidDimension: If the value is not integral, not positive, or
            larger than MAX_DIMENSION
    """
    if isinstance(value, bool):
        raise InvalidDimension(f"{name} must be an integer, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidDimension(f"{name} must be a whole number of pixels, got {value}")
        value = int(value)
    try:
        number = operator.index(value)
    except TypeError:
        raise InvalidDimension(f"{name} must be an integer, got {type(value).__name__}")
    if number <= 0:
        raise InvalidDimension(f"{name} must be positive, got {number}")
    if number > MAX_DIMENSION:
        raise InvalidDimension(f"{name} must be <= {MAX_DIMENSION}, got {number}")
    return int(number)


@dataclass(frozen=True)
class PixelBuffer:
    """Decoded RGBA raster, 8 bits per channel, row-major.

    Attributes:
        width: Columns in pixels
        height: Rows in pixels
        pixels: width * height * 4 bytes
        rotation_origin: For buffers produced by rotate(), the pre-rotation
            buffer and the accumulated clockwise angle. Not part of equality.
    """
    width: int
    height: int
    pixels: bytes
    rotation_origin: Optional[Tuple["PixelBuffer", float]] = field(
        default=None, compare=False, repr=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "width", as_dimension(self.width, "width"))
        object.__setattr__(self, "height", as_dimension(self.height, "height"))
        if not isinstance(self.pixels, bytes):
            object.__setattr__(self, "pixels", bytes(self.pixels))

        expected = self.width * self.height * CHANNELS
        if len(self.pixels) != expected:
            raise InvalidDimension(
                f"pixel data length {len(self.pixels)} does not match "
                f"{self.width}x{self.height}x{CHANNELS} = {expected}"
            )

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def pixel(self, x: int, y: int) -> RgbaColor:
        """Return the RGBA tuple at column x, row y."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height}")
        offset = (y * self.width + x) * CHANNELS
        r, g, b, a = self.pixels[offset:offset + CHANNELS]
        return r, g, b, a

    def copy(self) -> "PixelBuffer":
        """Return an equal buffer without rotation lineage."""
        return PixelBuffer(self.width, self.height, self.pixels)

    def to_array(self) -> np.ndarray:
        """Read-only (height, width, 4) uint8 view of the pixels."""
        return np.frombuffer(self.pixels, dtype=np.uint8).reshape(
            self.height, self.width, CHANNELS
        )

    def to_image(self) -> ImageClass:
        """Build a new PIL Image (RGBA) holding a copy of the pixels."""
        return Image.frombytes(PIXEL_MODE, (self.width, self.height), self.pixels)

    @classmethod
    def from_array(cls, array: Any) -> "PixelBuffer":
        """
        Create a buffer from an (height, width, 4) or (height, width, 3) array.

        Float arrays are expected to be already clamped to 0-255.
        """
        arr = np.asarray(array)
        if arr.ndim != 3 or arr.shape[2] not in (3, CHANNELS):
            raise InvalidDimension(f"expected (height, width, 3|4) array, got shape {arr.shape}")
        if arr.shape[2] == 3:
            alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
            arr = np.concatenate([arr.astype(np.uint8), alpha], axis=2)
        arr = np.ascontiguousarray(arr, dtype=np.uint8)
        height, width = arr.shape[:2]
        return cls(width, height, arr.tobytes())

    @classmethod
    def from_image(cls, image: ImageClass) -> "PixelBuffer":
        """Create a buffer from a PIL Image, converting to RGBA if needed."""
        if not isinstance(image, ImageClass):
            raise TypeError(f"Expected PIL Image, got {type(image)}")
        if image.mode != PIXEL_MODE:
            image = image.convert(PIXEL_MODE)
        return cls(image.width, image.height, image.tobytes())

    @classmethod
    def blank(cls, width: int, height: int, color: RgbaColor = TRANSPARENT) -> "PixelBuffer":
        """Create a buffer filled with a single color."""
        width = as_dimension(width, "width")
        height = as_dimension(height, "height")
        return cls(width, height, bytes(color) * (width * height))


@dataclass(frozen=True)
class CropRegion:
    """Crop rectangle in displayed-view pixel units."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @classmethod
    def full(cls, view_width: float, view_height: float) -> "CropRegion":
        """Region covering the whole view."""
        return cls(0, 0, view_width, view_height)

    @classmethod
    def from_tuple(cls, values: Tuple[float, float, float, float]) -> "CropRegion":
        x, y, width, height = values
        return cls(x, y, width, height)


def _check_range(name: str, value: float, bounds: Tuple[float, float]) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidParameter(f"{name} must be a number, got {value!r}")
    low, high = bounds
    if not math.isfinite(number) or not (low <= number <= high):
        raise InvalidParameter(f"{name} must be {low:g}-{high:g}, got {value}")
    return number


@dataclass(frozen=True)
class FilterParameters:
    """Color and tone filter settings.

    Attributes:
        brightness: Percent, 0-200, 100 = unchanged
        contrast: Percent, 0-200, 100 = unchanged
        saturation: Percent, 0-200, 100 = unchanged, 0 = luma gray
        grayscale: Percent blend toward luma, 0-100
        sepia: Percent blend toward sepia tone, 0-100
        blur: Gaussian blur radius in pixels, 0-100
    """
    brightness: float = BRIGHTNESS_IDENTITY
    contrast: float = CONTRAST_IDENTITY
    saturation: float = SATURATION_IDENTITY
    grayscale: float = GRAYSCALE_IDENTITY
    sepia: float = SEPIA_IDENTITY
    blur: float = BLUR_IDENTITY

    def __post_init__(self) -> None:
        object.__setattr__(self, "brightness", _check_range("brightness", self.brightness, PERCENT_RANGE_WIDE))
        object.__setattr__(self, "contrast", _check_range("contrast", self.contrast, PERCENT_RANGE_WIDE))
        object.__setattr__(self, "saturation", _check_range("saturation", self.saturation, PERCENT_RANGE_WIDE))
        object.__setattr__(self, "grayscale", _check_range("grayscale", self.grayscale, PERCENT_RANGE_BLEND))
        object.__setattr__(self, "sepia", _check_range("sepia", self.sepia, PERCENT_RANGE_BLEND))
        object.__setattr__(self, "blur", _check_range("blur", self.blur, BLUR_RANGE))

    @property
    def has_color_adjustments(self) -> bool:
        return (
            self.brightness != BRIGHTNESS_IDENTITY
            or self.contrast != CONTRAST_IDENTITY
            or self.saturation != SATURATION_IDENTITY
            or self.grayscale != GRAYSCALE_IDENTITY
            or self.sepia != SEPIA_IDENTITY
        )

    @property
    def is_identity(self) -> bool:
        return not self.has_color_adjustments and self.blur == BLUR_IDENTITY

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FilterParameters":
        """Create from dictionary, ignoring unknown keys."""
        filtered = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**filtered)


def normalize_mime_type(mime_type: str) -> str:
    """
    Map a MIME type or short alias ("png", "jpg", ...) to a supported MIME type.

    Raises:
        EncodeError: If the format is not one the encoder produces
    """
    key = str(mime_type).strip().lower()
    key = MIME_ALIASES.get(key, key)
    if key not in SUPPORTED_OUTPUT_MIME_TYPES:
        supported = ", ".join(SUPPORTED_OUTPUT_MIME_TYPES)
        raise EncodeError(f"Unsupported output format: {mime_type}. Supported: {supported}")
    return key


@dataclass(frozen=True)
class EncodeSpec:
    """Encoder target: MIME type plus quality in [0, 1] (ignored for PNG)."""
    mime_type: str = DEFAULT_OUTPUT_MIME
    quality: float = DEFAULT_LOSSY_QUALITY

    def __post_init__(self) -> None:
        object.__setattr__(self, "mime_type", normalize_mime_type(self.mime_type))
        object.__setattr__(self, "quality", _check_range("quality", self.quality, (0.0, 1.0)))

    @property
    def is_lossless(self) -> bool:
        return self.mime_type in LOSSLESS_MIME_TYPES

    @property
    def pil_format(self) -> str:
        return PIL_FORMATS[self.mime_type]

    @property
    def extension(self) -> str:
        return FILE_EXTENSIONS[self.mime_type]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncodeSpec":
        """Create from dictionary, ignoring unknown keys."""
        filtered = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**filtered)


@dataclass(frozen=True)
class EncodedImage:
    """Encoded output ready for a save/download collaborator."""
    data: bytes
    mime_type: str
    width: int
    height: int

    @property
    def size(self) -> int:
        """Encoded size in bytes."""
        return len(self.data)

    @property
    def extension(self) -> str:
        return FILE_EXTENSIONS.get(self.mime_type, "")

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"
