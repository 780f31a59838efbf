"""
Constants and configuration values for KayaBlue.

This module centralizes all constant values, magic numbers, and
configuration settings used throughout the editing pipeline.
"""

# Application
APP_NAME = "KayaBlue"
LOG_LEVEL_ENV_VAR = "KAYABLUE_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"

# Pixel layout
CHANNELS = 4
PIXEL_MODE = "RGBA"
TRANSPARENT = (0, 0, 0, 0)

# Largest width or height accepted for any allocated buffer
MAX_DIMENSION = 32768

# Upload guard ("PNG, JPG, GIF up to 10MB")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024

# Filter identity values
BRIGHTNESS_IDENTITY = 100.0
CONTRAST_IDENTITY = 100.0
SATURATION_IDENTITY = 100.0
GRAYSCALE_IDENTITY = 0.0
SEPIA_IDENTITY = 0.0
BLUR_IDENTITY = 0.0

# Filter parameter ranges (inclusive)
PERCENT_RANGE_WIDE = (0.0, 200.0)
PERCENT_RANGE_BLEND = (0.0, 100.0)
BLUR_RANGE = (0.0, 100.0)

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = (0.2989, 0.5870, 0.1140)

# Sepia tone rows (output channel <- R, G, B)
SEPIA_RED = (0.393, 0.769, 0.189)
SEPIA_GREEN = (0.349, 0.686, 0.168)
SEPIA_BLUE = (0.272, 0.534, 0.131)

# Output formats
MIME_PNG = "image/png"
MIME_JPEG = "image/jpeg"
MIME_WEBP = "image/webp"
SUPPORTED_OUTPUT_MIME_TYPES = (MIME_PNG, MIME_JPEG, MIME_WEBP)
LOSSLESS_MIME_TYPES = {MIME_PNG}

MIME_ALIASES = {
    "png": MIME_PNG,
    "jpg": MIME_JPEG,
    "jpeg": MIME_JPEG,
    "webp": MIME_WEBP,
    "image/jpg": MIME_JPEG,
}

PIL_FORMATS = {
    MIME_PNG: "PNG",
    MIME_JPEG: "JPEG",
    MIME_WEBP: "WEBP",
}

FILE_EXTENSIONS = {
    MIME_PNG: ".png",
    MIME_JPEG: ".jpg",
    MIME_WEBP: ".webp",
}

# Pillow format name -> MIME type, for sniffing uploads
PIL_FORMAT_TO_MIME = {
    "PNG": MIME_PNG,
    "JPEG": MIME_JPEG,
    "MPO": MIME_JPEG,
    "WEBP": MIME_WEBP,
    "GIF": "image/gif",
    "BMP": "image/bmp",
    "TIFF": "image/tiff",
}

# Encoder settings
DEFAULT_OUTPUT_MIME = MIME_PNG
DEFAULT_LOSSY_QUALITY = 0.92
DEFAULT_COMPRESS_QUALITY = 0.8
DEFAULT_COMPRESS_MIME = MIME_JPEG
PNG_COMPRESS_LEVEL = 6

# Download naming
DOWNLOAD_FILE_PREFIX = "kayablue-image"

# Tool names
TOOL_ROTATE = "rotate"
TOOL_CROP = "crop"
TOOL_RESIZE = "resize"
TOOL_FILTERS = "filters"
TOOL_COMPRESS = "compress"
TOOL_CONVERT = "convert"
