"""
Tool Executors Registry.

This module provides a centralized registry for editing tools. Each tool is an
executor that turns the session's current buffer plus a flat parameter dict
into a new buffer, without touching the input.

Classes:
    ToolOutput: Result of running a tool executor
    ToolRegistry: Registry for tool executors

Functions:
    create_default_registry: Create a registry holding the built-in tools
    register_default_tools: Register all built-in tools
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from KB_Libs.constants import (
    DEFAULT_COMPRESS_MIME,
    DEFAULT_COMPRESS_QUALITY,
    DEFAULT_LOSSY_QUALITY,
    DEFAULT_OUTPUT_MIME,
    TOOL_COMPRESS,
    TOOL_CONVERT,
    TOOL_CROP,
    TOOL_FILTERS,
    TOOL_RESIZE,
    TOOL_ROTATE,
)
from KB_Libs.ImageEditingLib.codec import decode, encode
from KB_Libs.ImageEditingLib.color_filter import apply_filters
from KB_Libs.ImageEditingLib.crop_op import crop
from KB_Libs.ImageEditingLib.errors import InvalidParameter
from KB_Libs.ImageEditingLib.geometry_ops import aspect_locked_size, resize, rotate
from KB_Libs.ImageEditingLib.image_models import (
    CropRegion,
    EncodedImage,
    EncodeSpec,
    FilterParameters,
    PixelBuffer,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolOutput:
    """Buffer produced by a tool, plus the encoded bytes for codec tools."""
    buffer: PixelBuffer
    encoded: Optional[EncodedImage] = None


# Type aliases for executor and defaults functions
ToolExecutor = Callable[[PixelBuffer, Dict[str, Any]], ToolOutput]
DefaultsFactory = Callable[[PixelBuffer], Dict[str, Any]]


class ToolRegistry:
    """
    Registry for tool executors.

    Example:
        >>> registry = ToolRegistry()
        >>> registry.register("rotate", rotate_executor, defaults={"angle": 0.0})
        >>> output = registry.execute("rotate", buffer, {"angle": 90})
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._executors: Dict[str, ToolExecutor] = {}
        self._tool_metadata: Dict[str, Dict[str, Any]] = {}

    def register(
        self,
        tool: str,
        executor: ToolExecutor,
        description: str = "",
        defaults: Union[Dict[str, Any], DefaultsFactory, None] = None,
        tags: Optional[List[str]] = None,
    ) -> None:
        """
        Register a tool executor.

        Args:
            tool: Unique tool name (e.g., "rotate")
            executor: Callable accepting (buffer, params) and returning ToolOutput
            description: Human-readable description of the tool
            defaults: Identity parameters, as a dict or a function of the
                current buffer
            tags: Optional list of tags for categorization

        Raises:
            ValueError: If tool is empty or executor is not callable
            RuntimeError: If tool is already registered
        """
        tool = str(tool).strip().lower()

        if not tool:
            raise ValueError("tool cannot be empty")

        if not callable(executor):
            raise ValueError(f"executor must be callable, got {type(executor)}")

        if tool in self._executors:
            raise RuntimeError(
                f"Tool '{tool}' is already registered. "
                f"Use unregister() first to replace it."
            )

        self._executors[tool] = executor
        self._tool_metadata[tool] = {
            "description": str(description),
            "defaults": defaults if defaults is not None else {},
            "tags": list(tags) if tags else [],
        }

        logger.debug(f"Registered executor for tool: {tool}")

    def unregister(self, tool: str) -> bool:
        """
        Unregister a tool executor.

        Returns:
            True if unregistered, False if tool was not registered
        """
        tool = str(tool).strip().lower()

        if tool in self._executors:
            del self._executors[tool]
            del self._tool_metadata[tool]
            logger.debug(f"Unregistered executor for tool: {tool}")
            return True

        return False

    def get_executor(self, tool: str) -> ToolExecutor:
        """
        Get the executor for a tool.

        Raises:
            KeyError: If tool is not registered
        """
        tool = str(tool).strip().lower()

        if tool not in self._executors:
            available = ", ".join(self.list_tools())
            raise KeyError(
                f"No executor registered for tool '{tool}'. "
                f"Available tools: {available}"
            )

        return self._executors[tool]

    def has_executor(self, tool: str) -> bool:
        return str(tool).strip().lower() in self._executors

    def get_defaults(self, tool: str, buffer: PixelBuffer) -> Dict[str, Any]:
        """
        Identity parameters of a tool for the given buffer.

        Raises:
            KeyError: If tool is not registered
        """
        defaults = self.get_metadata(tool)["defaults"]
        if callable(defaults):
            return dict(defaults(buffer))
        return dict(defaults)

    def execute(
        self,
        tool: str,
        buffer: PixelBuffer,
        params: Optional[Dict[str, Any]] = None,
    ) -> ToolOutput:
        """
        Run a tool on a buffer with its defaults overlaid by params.

        Raises:
            KeyError: If tool is not registered
            InvalidParameter: If params names a key the tool does not accept
            PipelineError: Any error raised by the executor
        """
        executor = self.get_executor(tool)
        merged = self.get_defaults(tool, buffer)

        unknown = sorted(set(params or {}) - set(merged))
        if unknown:
            raise InvalidParameter(
                f"Unknown parameter(s) for tool '{tool}': {', '.join(unknown)}. "
                f"Accepted: {', '.join(sorted(merged))}"
            )

        merged.update(params or {})
        return executor(buffer, merged)

    def list_tools(self) -> List[str]:
        """Sorted list of all registered tool names."""
        return sorted(self._executors.keys())

    def get_metadata(self, tool: str) -> Dict[str, Any]:
        """
        Get metadata for a tool.

        Raises:
            KeyError: If tool is not registered
        """
        tool = str(tool).strip().lower()

        if tool not in self._tool_metadata:
            raise KeyError(f"No metadata for tool: {tool}")

        return dict(self._tool_metadata[tool])

    def filter_by_tag(self, tag: str) -> List[str]:
        """Sorted list of tool names carrying a tag."""
        tag = str(tag).strip().lower()
        return sorted([
            tool
            for tool, meta in self._tool_metadata.items()
            if tag in [t.lower() for t in meta.get("tags", [])]
        ])

    def clear(self) -> None:
        """Clear all registered executors. Use with caution."""
        self._executors.clear()
        self._tool_metadata.clear()
        logger.warning("Tool executor registry cleared")


# ============================================================================
# Built-in tools
# ============================================================================

def execute_rotate_tool(buffer: PixelBuffer, params: Dict[str, Any]) -> ToolOutput:
    return ToolOutput(rotate(buffer, params["angle"]))


def _crop_defaults(buffer: PixelBuffer) -> Dict[str, Any]:
    region = CropRegion.full(buffer.width, buffer.height)
    return {
        "x": region.x,
        "y": region.y,
        "width": region.width,
        "height": region.height,
        "view_width": buffer.width,
        "view_height": buffer.height,
        "device_pixel_ratio": 1.0,
    }


def execute_crop_tool(buffer: PixelBuffer, params: Dict[str, Any]) -> ToolOutput:
    region = CropRegion(params["x"], params["y"], params["width"], params["height"])
    return ToolOutput(crop(
        buffer,
        region,
        params["view_width"],
        params["view_height"],
        params["device_pixel_ratio"],
    ))


def _resize_defaults(buffer: PixelBuffer) -> Dict[str, Any]:
    return {"width": buffer.width, "height": buffer.height, "keep_aspect": False}


def execute_resize_tool(buffer: PixelBuffer, params: Dict[str, Any]) -> ToolOutput:
    width, height = params["width"], params["height"]
    if params["keep_aspect"]:
        # width leads; height follows unless width was cleared
        if width is not None:
            width, height = aspect_locked_size(buffer.width, buffer.height, target_width=width)
        else:
            width, height = aspect_locked_size(buffer.width, buffer.height, target_height=height)
    return ToolOutput(resize(buffer, width, height))


def execute_filters_tool(buffer: PixelBuffer, params: Dict[str, Any]) -> ToolOutput:
    return ToolOutput(apply_filters(buffer, FilterParameters.from_dict(params)))


def execute_encode_tool(buffer: PixelBuffer, params: Dict[str, Any]) -> ToolOutput:
    """Encode with the requested spec and decode it back for preview."""
    spec = EncodeSpec(mime_type=params["mime_type"], quality=params["quality"])
    encoded = encode(buffer, spec)
    return ToolOutput(decode(encoded.data, max_bytes=None), encoded)


def create_default_registry() -> ToolRegistry:
    """
    Create a new registry holding the built-in tools.

    Each call returns an independent registry, so changes made through one
    session never reach another.
    """
    registry = ToolRegistry()
    register_default_tools(registry)
    return registry


def register_default_tools(registry: ToolRegistry) -> None:
    """
    Register all built-in tools: rotate, crop, resize, filters, compress
    and convert.
    """
    registry.register(
        tool=TOOL_ROTATE,
        executor=execute_rotate_tool,
        description="Rotate clockwise by any angle, growing the canvas to fit",
        defaults={"angle": 0.0},
        tags=["geometry"],
    )

    registry.register(
        tool=TOOL_CROP,
        executor=execute_crop_tool,
        description="Crop a region selected on the displayed view",
        defaults=_crop_defaults,
        tags=["geometry"],
    )

    registry.register(
        tool=TOOL_RESIZE,
        executor=execute_resize_tool,
        description="Resample to a new width and height",
        defaults=_resize_defaults,
        tags=["geometry"],
    )

    registry.register(
        tool=TOOL_FILTERS,
        executor=execute_filters_tool,
        description="Brightness, contrast, saturation, grayscale, sepia and blur",
        defaults=FilterParameters().to_dict(),
        tags=["color", "filter"],
    )

    registry.register(
        tool=TOOL_COMPRESS,
        executor=execute_encode_tool,
        description="Re-encode with lossy compression to reduce file size",
        defaults={"quality": DEFAULT_COMPRESS_QUALITY, "mime_type": DEFAULT_COMPRESS_MIME},
        tags=["codec"],
    )

    registry.register(
        tool=TOOL_CONVERT,
        executor=execute_encode_tool,
        description="Convert to PNG, JPEG or WebP",
        defaults={"mime_type": DEFAULT_OUTPUT_MIME, "quality": DEFAULT_LOSSY_QUALITY},
        tags=["codec"],
    )

    logger.info("Registered default tools")
