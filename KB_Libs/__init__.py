"""
KB_Libs - KayaBlue Library Modules

This package contains the raster editing pipeline for KayaBlue,
organized into specialized sub-packages:

- ImageEditingLib: Pixel buffers, geometric and color operations, codecs
- SessionLib: Edit session state machine and tool registry
"""

__version__ = "0.1.0"
