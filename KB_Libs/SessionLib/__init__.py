"""
SessionLib - Edit session and tool registry

This module owns the image under edit and dispatches the editing tools.
"""

from KB_Libs.SessionLib.tool_registry import (
    ToolOutput,
    ToolRegistry,
    create_default_registry,
    register_default_tools,
)
from KB_Libs.SessionLib.edit_session import (
    EditResult,
    EditSession,
    ToolState,
)

__all__ = [
    "ToolOutput",
    "ToolRegistry",
    "create_default_registry",
    "register_default_tools",
    "EditResult",
    "EditSession",
    "ToolState",
]
