"""
Image decoding and encoding for KayaBlue.

Decoding turns uploaded bytes into a PixelBuffer (first frame only, EXIF
orientation applied). Encoding serializes a PixelBuffer to PNG, JPEG or WebP
in memory; the pipeline never writes files itself.

Functions:
    decode: Bytes -> PixelBuffer
    sniff_mime_type: Detect the MIME type of uploaded bytes
    is_format_available: Whether the local Pillow build can write a format
    get_save_kwargs: PIL Image.save() kwargs for an EncodeSpec
    encode: PixelBuffer -> EncodedImage
    compare_sizes: Before/after size report for the compress/convert tools
    format_size: Human readable byte count
    download_filename: Suggested name for a download
"""

import io
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import numpy as np

from KB_Libs.constants import (
    DOWNLOAD_FILE_PREFIX,
    FILE_EXTENSIONS,
    MAX_UPLOAD_BYTES,
    PIL_FORMAT_TO_MIME,
    PNG_COMPRESS_LEVEL,
)
from KB_Libs.ImageEditingLib.errors import DecodeError, EncodeError
from KB_Libs.ImageEditingLib.image_models import (
    EncodedImage,
    EncodeSpec,
    PixelBuffer,
    normalize_mime_type,
)
from KB_Libs.pillow_compat import (
    DecompressionBombError,
    Image,
    ImageClass,
    ImageOps,
    UnidentifiedImageError,
    features,
)

logger = logging.getLogger(__name__)

# Pillow feature name that must be present to write each format
_FORMAT_FEATURES = {
    "PNG": "zlib",
    "JPEG": "jpg",
    "WEBP": "webp",
}


# ============================================================================
# Decoding
# ============================================================================

def _check_upload(data: Any, max_bytes: Optional[int]) -> bytes:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise DecodeError(f"Expected image bytes, got {type(data).__name__}")
    data = bytes(data)
    if not data:
        raise DecodeError("Image data is empty")
    if max_bytes is not None and len(data) > max_bytes:
        raise DecodeError(f"Image is {format_size(len(data))}, limit is {format_size(max_bytes)}")
    return data


def sniff_mime_type(data: bytes) -> Optional[str]:
    """
    Detect the MIME type of encoded image bytes.

    Returns:
        MIME type string, or None if Pillow does not recognize the data
    """
    try:
        with Image.open(io.BytesIO(bytes(data))) as image:
            pil_format = image.format
    except (UnidentifiedImageError, OSError, ValueError):
        return None
    return PIL_FORMAT_TO_MIME.get(pil_format or "")


def _narrow_wide_mode(image: ImageClass) -> ImageClass:
    """
    Reduce 16-bit, 32-bit integer and float grayscale images to 8-bit 'L'.

    Pillow's own convert() clips these modes instead of scaling them, which
    turns most of a 16-bit image white. Integer samples are read as 16-bit
    (high byte kept); float samples are read as 0.0-1.0.
    """
    mode = image.mode
    if mode.startswith("I;16") or mode == "I":
        samples = np.asarray(image).astype(np.int64)
        narrowed = (np.clip(samples, 0, 65535) >> 8).astype(np.uint8)
    elif mode == "F":
        samples = np.nan_to_num(np.asarray(image, dtype=np.float64))
        narrowed = np.round(np.clip(samples, 0.0, 1.0) * 255.0).astype(np.uint8)
    else:
        return image
    logger.debug(f"decode: narrowed {mode} samples to 8-bit")
    return Image.fromarray(narrowed)


def decode(data: bytes, max_bytes: Optional[int] = MAX_UPLOAD_BYTES) -> PixelBuffer:
    """
    Decode encoded image bytes into an RGBA PixelBuffer.

    Only the first frame of animated or multi-page images is used. Wide
    grayscale modes are scaled down to 8 bits before the RGBA conversion.

    Args:
        data: Encoded image bytes
        max_bytes: Upload limit in bytes, or None for no limit

    Returns:
        PixelBuffer

    Raises:
        DecodeError: If the data is empty, too large, or not a readable image
    """
    data = _check_upload(data, max_bytes)
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.seek(0)
            image.load()
            oriented = ImageOps.exif_transpose(image)
            buffer = PixelBuffer.from_image(_narrow_wide_mode(oriented))
    except (UnidentifiedImageError, DecompressionBombError) as exc:
        raise DecodeError(f"Unsupported or unreadable image: {exc}") from exc
    except (OSError, ValueError, SyntaxError, EOFError) as exc:
        raise DecodeError(f"Failed to decode image: {exc}") from exc

    logger.debug(f"decode: {len(data)} bytes -> {buffer.width}x{buffer.height}")
    return buffer


# ============================================================================
# Encoding
# ============================================================================

def is_format_available(mime_type: str) -> bool:
    """Whether the installed Pillow can write the given output format."""
    pil_format = EncodeSpec(mime_type=mime_type).pil_format
    return bool(features.check(_FORMAT_FEATURES[pil_format]))


def get_save_kwargs(spec: EncodeSpec) -> Dict[str, Any]:
    """Get PIL Image.save() kwargs for an encode spec."""
    kwargs: Dict[str, Any] = {"format": spec.pil_format}

    if spec.pil_format == "PNG":
        # fixed settings keep PNG output byte-identical for any quality
        kwargs["optimize"] = False
        kwargs["compress_level"] = PNG_COMPRESS_LEVEL
    elif spec.pil_format == "JPEG":
        kwargs["quality"] = max(1, min(100, int(round(spec.quality * 100))))
    elif spec.pil_format == "WEBP":
        kwargs["quality"] = max(0, min(100, int(round(spec.quality * 100))))
        kwargs["lossless"] = False

    return kwargs


def encode(
    buffer: PixelBuffer,
    spec: Union[EncodeSpec, Dict[str, Any], None] = None,
) -> EncodedImage:
    """
    Serialize a buffer to the target format.

    PNG ignores quality. JPEG drops the alpha channel. WebP keeps it.

    Args:
        buffer: Pixels to encode
        spec: EncodeSpec, dict of its fields, or None for PNG

    Returns:
        EncodedImage holding the bytes and their MIME type

    Raises:
        EncodeError: If the format is unsupported or the codec fails
    """
    if spec is None:
        spec = EncodeSpec()
    elif isinstance(spec, dict):
        spec = EncodeSpec.from_dict(spec)

    if not is_format_available(spec.mime_type):
        raise EncodeError(f"This Pillow build cannot write {spec.mime_type}")

    image = buffer.to_image()
    kwargs = get_save_kwargs(spec)
    if kwargs["format"] == "JPEG":
        image = image.convert("RGB")

    output = io.BytesIO()
    try:
        image.save(output, **kwargs)
    except (OSError, KeyError, ValueError) as exc:
        raise EncodeError(f"Failed to encode {spec.mime_type}: {exc}") from exc

    encoded = EncodedImage(
        data=output.getvalue(),
        mime_type=spec.mime_type,
        width=buffer.width,
        height=buffer.height,
    )
    logger.debug(
        f"encode: {buffer.width}x{buffer.height} as {spec.mime_type} "
        f"q={spec.quality:.2f} -> {format_size(encoded.size)}"
    )
    return encoded


# ============================================================================
# Size reporting
# ============================================================================

@dataclass(frozen=True)
class SizeComparison:
    """Before/after encoded sizes for the compress and convert tools."""
    original_size: int
    new_size: int

    @property
    def saved_bytes(self) -> int:
        return self.original_size - self.new_size

    @property
    def percent_saved(self) -> float:
        if self.original_size <= 0:
            return 0.0
        return 100.0 * self.saved_bytes / self.original_size

    def describe(self) -> str:
        return (
            f"{format_size(self.original_size)} -> {format_size(self.new_size)} "
            f"({self.percent_saved:.1f}% saved)"
        )


def compare_sizes(original_size: int, new_size: int) -> SizeComparison:
    return SizeComparison(int(original_size), int(new_size))


def format_size(num_bytes: int) -> str:
    """Format a byte count as B, KB or MB."""
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.2f} MB"


def download_filename(mime_type: str, timestamp_ms: Optional[int] = None) -> str:
    """
    Suggested download name, e.g. 'kayablue-image-1700000000000.png'.
    """
    mime_type = normalize_mime_type(mime_type)
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{DOWNLOAD_FILE_PREFIX}-{timestamp_ms}{FILE_EXTENSIONS[mime_type]}"
