"""
KayaBlue command line driver.

Runs one image through the editing pipeline in a fixed order:
rotate, crop, resize, filters, then encodes to the output format.

Usage:
    python kayablue.py photo.jpg -o out.png --rotate 90 --resize 800x600 --keep-aspect
    python kayablue.py photo.png -o small.webp --quality 0.6 --saturation 0
    python kayablue.py photo.png -o part.png --crop 10,10,200,100 --view 400x300
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from KB_Libs.constants import (
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOSSY_QUALITY,
    DEFAULT_OUTPUT_MIME,
    LOG_LEVEL_ENV_VAR,
    MIME_ALIASES,
    TOOL_CROP,
    TOOL_FILTERS,
    TOOL_RESIZE,
    TOOL_ROTATE,
)
from KB_Libs.ImageEditingLib import EncodeSpec, PipelineError, aspect_locked_size
from KB_Libs.SessionLib import EditResult, EditSession

logger = logging.getLogger("kayablue")

FILTER_OPTIONS = ("brightness", "contrast", "saturation", "grayscale", "sepia", "blur")


def parse_size(text: str) -> Tuple[int, int]:
    """Parse 'WxH' into (width, height)."""
    parts = text.lower().split("x")
    if len(parts) != 2:
        raise argparse.ArgumentTypeError(f"expected WxH, got '{text}'")
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected integer WxH, got '{text}'")


def parse_view_size(text: str) -> Tuple[float, float]:
    parts = text.lower().split("x")
    if len(parts) != 2:
        raise argparse.ArgumentTypeError(f"expected WxH, got '{text}'")
    try:
        return float(parts[0]), float(parts[1])
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected numeric WxH, got '{text}'")


def parse_rect(text: str) -> Tuple[float, float, float, float]:
    """Parse 'X,Y,W,H' into a tuple of floats."""
    parts = text.split(",")
    if len(parts) != 4:
        raise argparse.ArgumentTypeError(f"expected X,Y,W,H, got '{text}'")
    try:
        x, y, width, height = (float(p) for p in parts)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected numeric X,Y,W,H, got '{text}'")
    return x, y, width, height


def infer_mime_type(output: Path, explicit: Optional[str]) -> str:
    """Output format from --format, else from the output suffix, else PNG."""
    if explicit:
        return explicit
    suffix = output.suffix.lower().lstrip(".")
    return MIME_ALIASES.get(suffix, DEFAULT_OUTPUT_MIME)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kayablue",
        description="Rotate, crop, resize, filter and convert an image.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Operations run in the order: rotate, crop, resize, filters, encode.",
    )
    parser.add_argument("input", help="Input image file")
    parser.add_argument("-o", "--output", required=True, help="Output image file")

    geometry = parser.add_argument_group("Geometry")
    geometry.add_argument("--rotate", type=float, default=None, help="Degrees clockwise (any angle)")
    geometry.add_argument("--crop", type=parse_rect, default=None, help="Crop rectangle X,Y,W,H in view units")
    geometry.add_argument(
        "--view", type=parse_view_size, default=None,
        help="Size WxH of the view the crop was drawn on (default: image size)",
    )
    geometry.add_argument("--resize", type=parse_size, default=None, help="Target size WxH")
    geometry.add_argument(
        "--keep-aspect", action="store_true",
        help="With --resize, fit inside WxH keeping the aspect ratio",
    )

    filters = parser.add_argument_group("Filters")
    filters.add_argument("--brightness", type=float, default=None, help="Percent 0-200 (100 = unchanged)")
    filters.add_argument("--contrast", type=float, default=None, help="Percent 0-200 (100 = unchanged)")
    filters.add_argument("--saturation", type=float, default=None, help="Percent 0-200 (100 = unchanged)")
    filters.add_argument("--grayscale", type=float, default=None, help="Percent 0-100")
    filters.add_argument("--sepia", type=float, default=None, help="Percent 0-100")
    filters.add_argument("--blur", type=float, default=None, help="Blur radius in pixels 0-100")

    output = parser.add_argument_group("Output")
    output.add_argument("--format", default=None, help="png|jpg|webp (default: from output suffix)")
    output.add_argument(
        "--quality", type=float, default=DEFAULT_LOSSY_QUALITY,
        help=f"Lossy quality 0.0-1.0 (default: {DEFAULT_LOSSY_QUALITY})",
    )

    parser.add_argument(
        "--log-level", default=None,
        help=f"Logging level (default: ${LOG_LEVEL_ENV_VAR} or {DEFAULT_LOG_LEVEL})",
    )
    return parser


def _check(result: EditResult, step: str) -> bool:
    if result.ok:
        return True
    print(f"Error during {step}: {result.error}", file=sys.stderr)
    return False


def run(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    output_path = Path(args.output)

    try:
        data = input_path.read_bytes()
    except OSError as exc:
        print(f"Error reading {input_path}: {exc}", file=sys.stderr)
        return 1

    session = EditSession()
    if not _check(session.load(data), "load"):
        return 1

    if args.rotate is not None:
        if not _check(session.apply(TOOL_ROTATE, angle=args.rotate), TOOL_ROTATE):
            return 1

    if args.crop is not None:
        x, y, width, height = args.crop
        view_width, view_height = args.view or session.current.size
        result = session.apply(
            TOOL_CROP,
            x=x, y=y, width=width, height=height,
            view_width=view_width, view_height=view_height,
        )
        if not _check(result, TOOL_CROP):
            return 1

    if args.resize is not None:
        width, height = args.resize
        if args.keep_aspect:
            try:
                width, height = aspect_locked_size(*session.current.size, width, height)
            except PipelineError as exc:
                print(f"Error during {TOOL_RESIZE}: {exc}", file=sys.stderr)
                return 1
        if not _check(session.apply(TOOL_RESIZE, width=width, height=height), TOOL_RESIZE):
            return 1

    filter_params = {
        name: getattr(args, name)
        for name in FILTER_OPTIONS
        if getattr(args, name) is not None
    }
    if filter_params and not _check(session.apply(TOOL_FILTERS, **filter_params), TOOL_FILTERS):
        return 1

    try:
        spec = EncodeSpec(mime_type=infer_mime_type(output_path, args.format), quality=args.quality)
    except PipelineError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    result = session.export(spec)
    if not _check(result, "export"):
        return 1

    try:
        output_path.write_bytes(result.encoded.data)
    except OSError as exc:
        print(f"Error writing {output_path}: {exc}", file=sys.stderr)
        return 1

    print(
        f"Saved {output_path} ({result.encoded.width}x{result.encoded.height}, "
        f"{result.encoded.mime_type}, {result.encoded.size} bytes)"
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level_name = (args.log_level or os.environ.get(LOG_LEVEL_ENV_VAR) or DEFAULT_LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.debug(f"Arguments: {vars(args)}")
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
