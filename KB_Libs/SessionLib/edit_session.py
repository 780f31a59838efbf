"""
Edit session: the single owner of the image under edit.

An EditSession holds exactly one authoritative PixelBuffer and, for the active
tool, the uncommitted parameters and their preview. Each tool follows the same
protocol:

    IDLE --preview()--> PREVIEWING --commit()--> IDLE (buffer replaced)
                             |
                             +--cancel() / other tool--> IDLE (preview dropped)

Previews are always recomputed from the authoritative buffer, so calling
preview() again with the same parameters gives the same result. Switching
tools never commits implicitly.

Every public operation returns an EditResult carrying either a buffer or an
error. Pipeline errors, including wrong argument types, are logged and
reported, never raised, and a failed operation leaves the authoritative
buffer untouched.

Heavy work can be moved to a worker with preview_async() / apply_async().
At most one apply is in flight per session; a worker result that arrives
after the session's generation has advanced is discarded.
"""

import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from KB_Libs.constants import MAX_UPLOAD_BYTES
from KB_Libs.ImageEditingLib.codec import (
    SizeComparison,
    compare_sizes,
    decode,
    download_filename,
    encode,
    sniff_mime_type,
)
from KB_Libs.ImageEditingLib.errors import (
    InvalidParameter,
    PipelineError,
    SessionBusyError,
    SessionStateError,
    StalePreviewError,
)
from KB_Libs.ImageEditingLib.image_models import EncodedImage, EncodeSpec, PixelBuffer
from KB_Libs.SessionLib.tool_registry import ToolOutput, ToolRegistry, create_default_registry

logger = logging.getLogger(__name__)


class ToolState(Enum):
    IDLE = "idle"
    PREVIEWING = "previewing"


@dataclass(frozen=True)
class EditResult:
    """Outcome of a session operation: a buffer or an error, never both.

    Attributes:
        buffer: Resulting (or current) buffer on success
        error: The pipeline error on failure
        encoded: Encoded bytes, for codec tools and export
        size_report: Before/after sizes, for codec tools
    """
    buffer: Optional[PixelBuffer] = None
    error: Optional[PipelineError] = None
    encoded: Optional[EncodedImage] = None
    size_report: Optional[SizeComparison] = None

    def __post_init__(self) -> None:
        if (self.buffer is None) == (self.error is None):
            raise InvalidParameter("EditResult needs exactly one of buffer or error")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: PipelineError) -> "EditResult":
        return cls(error=error)


class EditSession:
    """
    Owns the current image and drives the preview/commit protocol.

    Example:
        >>> session = EditSession()
        >>> session.load(upload_bytes)
        >>> session.preview("rotate", angle=45)
        >>> session.preview("rotate", angle=30)   # slider moved
        >>> session.commit()
        >>> session.export().encoded.data
    """

    def __init__(
        self,
        registry: Optional[ToolRegistry] = None,
        max_upload_bytes: Optional[int] = MAX_UPLOAD_BYTES,
    ):
        self._registry = registry if registry is not None else create_default_registry()
        self._max_upload_bytes = max_upload_bytes
        self._lock = threading.RLock()

        self._buffer: Optional[PixelBuffer] = None
        self._output_spec = EncodeSpec()
        # size of the bytes the current buffer came from, when known
        self._source_size: Optional[int] = None
        # encoded form produced by a committed compress/convert
        self._committed_encoding: Optional[EncodedImage] = None

        self._active_tool: Optional[str] = None
        self._state = ToolState.IDLE
        self._params: Dict[str, Any] = {}
        self._preview: Optional[ToolOutput] = None

        self._generation = 0
        self._preview_seq = 0
        self._in_flight = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def current(self) -> Optional[PixelBuffer]:
        return self._buffer

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def has_image(self) -> bool:
        return self._buffer is not None

    @property
    def active_tool(self) -> Optional[str]:
        return self._active_tool

    @property
    def state(self) -> ToolState:
        return self._state

    @property
    def preview_buffer(self) -> Optional[PixelBuffer]:
        with self._lock:
            return self._preview.buffer if self._preview is not None else None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def output_spec(self) -> EncodeSpec:
        return self._output_spec

    @property
    def is_busy(self) -> bool:
        return self._in_flight

    @property
    def parameters(self) -> Dict[str, Any]:
        """Parameters of the active tool, identity defaults included."""
        with self._lock:
            if self._active_tool is None or self._buffer is None:
                return {}
            merged = self._registry.get_defaults(self._active_tool, self._buffer)
            merged.update(self._params)
            return merged

    def tool_defaults(self, tool: str) -> Dict[str, Any]:
        """Identity parameters of a tool for the current buffer."""
        with self._lock:
            tool = self._check_tool(tool)
            return self._registry.get_defaults(tool, self._buffer)

    # ------------------------------------------------------------------
    # Document lifecycle
    # ------------------------------------------------------------------

    def load(self, data: bytes) -> EditResult:
        """
        Decode uploaded bytes and make them the session's image.

        On failure the previous image (if any) is kept.
        """
        try:
            buffer = decode(data, self._max_upload_bytes)
        except PipelineError as exc:
            return self._fail("load", exc)

        with self._lock:
            self._install(buffer, source_size=len(data))
        logger.info(
            f"Loaded {sniff_mime_type(data) or 'image'} "
            f"{buffer.width}x{buffer.height} ({len(data)} bytes)"
        )
        return EditResult(buffer=buffer)

    def load_buffer(self, buffer: PixelBuffer) -> EditResult:
        """Adopt an already decoded buffer as the session's image."""
        if not isinstance(buffer, PixelBuffer):
            return self._fail(
                "load_buffer",
                InvalidParameter(f"Expected PixelBuffer, got {type(buffer).__name__}"),
            )
        with self._lock:
            self._install(buffer)
        logger.info(f"Loaded buffer {buffer.width}x{buffer.height}")
        return EditResult(buffer=buffer)

    def reset(self) -> None:
        """Drop the image and all tool state."""
        with self._lock:
            self._buffer = None
            self._output_spec = EncodeSpec()
            self._source_size = None
            self._committed_encoding = None
            self._discard_preview()
            self._generation += 1
        logger.info("Session reset")

    def _install(
        self,
        buffer: PixelBuffer,
        source_size: Optional[int] = None,
        encoding: Optional[EncodedImage] = None,
    ) -> None:
        self._buffer = buffer
        self._source_size = source_size
        self._committed_encoding = encoding
        self._discard_preview()
        self._generation += 1

    # ------------------------------------------------------------------
    # Tool protocol
    # ------------------------------------------------------------------

    def select_tool(self, tool: str) -> EditResult:
        """
        Make a tool active. Any uncommitted preview of another tool is dropped.
        """
        with self._lock:
            try:
                tool = self._check_tool(tool)
            except PipelineError as exc:
                return self._fail("select_tool", exc)
            if tool != self._active_tool:
                self._discard_preview()
                self._active_tool = tool
            return EditResult(buffer=self._buffer)

    def preview(self, tool: str, **params: Any) -> EditResult:
        """
        Recompute the preview for a tool with updated parameters.

        The given parameters are merged into the tool's pending parameters.
        The authoritative buffer is not modified. If the computation fails,
        the previous preview and parameters stay as they were.
        """
        with self._lock:
            try:
                tool = self._check_tool(tool)
            except PipelineError as exc:
                return self._fail("preview", exc)
            if tool != self._active_tool:
                self._discard_preview()
                self._active_tool = tool
            candidate = dict(self._params)
            candidate.update(params)
            buffer = self._buffer
            generation = self._generation
            self._preview_seq += 1
            seq = self._preview_seq

        try:
            output = self._registry.execute(tool, buffer, candidate)
            report = self._size_report(buffer, generation, output)
        except PipelineError as exc:
            return self._fail(f"preview {tool}", exc)

        with self._lock:
            if generation != self._generation or seq != self._preview_seq or tool != self._active_tool:
                return self._fail(
                    f"preview {tool}",
                    StalePreviewError(f"{tool} preview superseded before it finished"),
                )
            self._params = candidate
            self._preview = output
            self._state = ToolState.PREVIEWING

        logger.debug(f"Preview {tool} {candidate} -> {output.buffer.width}x{output.buffer.height}")
        return EditResult(buffer=output.buffer, encoded=output.encoded, size_report=report)

    def commit(self) -> EditResult:
        """
        Make the active tool's preview the authoritative buffer.

        Parameters reset to identity and no tool stays active.
        """
        with self._lock:
            if self._in_flight:
                return self._fail("commit", SessionBusyError("An edit is already being applied"))
            if self._state is not ToolState.PREVIEWING or self._preview is None:
                return self._fail("commit", SessionStateError("Nothing to commit"))
            buffer = self._commit_locked()
        return EditResult(buffer=buffer)

    def cancel(self) -> EditResult:
        """Drop the uncommitted preview and deactivate the tool."""
        with self._lock:
            self._discard_preview()
            if self._buffer is None:
                return self._fail("cancel", SessionStateError("No image loaded"))
            return EditResult(buffer=self._buffer)

    def apply(self, tool: str, **params: Any) -> EditResult:
        """Preview and commit in one step."""
        with self._lock:
            if self._in_flight:
                return self._fail(f"apply {tool}", SessionBusyError("An edit is already being applied"))
            self._in_flight = True
        return self._apply_claimed(tool, params)

    def _apply_claimed(self, tool: str, params: Dict[str, Any]) -> EditResult:
        try:
            with self._lock:
                try:
                    tool = self._check_tool(tool)
                except PipelineError as exc:
                    return self._fail(f"apply {tool}", exc)
                if tool != self._active_tool:
                    self._discard_preview()
                candidate = dict(self._params) if tool == self._active_tool else {}
                candidate.update(params)
                buffer = self._buffer
                generation = self._generation

            try:
                output = self._registry.execute(tool, buffer, candidate)
                report = self._size_report(buffer, generation, output)
            except PipelineError as exc:
                return self._fail(f"apply {tool}", exc)

            with self._lock:
                if generation != self._generation:
                    return self._fail(
                        f"apply {tool}",
                        StalePreviewError(f"Image changed while {tool} was running"),
                    )
                self._active_tool = tool
                self._params = candidate
                self._preview = output
                self._state = ToolState.PREVIEWING
                committed = self._commit_locked()
            return EditResult(buffer=committed, encoded=output.encoded, size_report=report)
        finally:
            with self._lock:
                self._in_flight = False

    def _commit_locked(self) -> PixelBuffer:
        tool = self._active_tool
        output = self._preview
        before = self._buffer

        if output.encoded is not None:
            params = self._registry.get_defaults(tool, before)
            params.update(self._params)
            self._output_spec = EncodeSpec(
                mime_type=output.encoded.mime_type,
                quality=params.get("quality", self._output_spec.quality),
            )
            self._install(output.buffer, source_size=output.encoded.size, encoding=output.encoded)
        else:
            self._install(output.buffer)

        logger.info(
            f"Committed {tool}: {before.width}x{before.height} -> "
            f"{output.buffer.width}x{output.buffer.height} (generation {self._generation})"
        )
        return output.buffer

    def _discard_preview(self) -> None:
        if self._preview is not None:
            logger.debug(f"Discarding uncommitted {self._active_tool} preview")
        self._active_tool = None
        self._state = ToolState.IDLE
        self._params = {}
        self._preview = None

    # ------------------------------------------------------------------
    # Worker support
    # ------------------------------------------------------------------

    def preview_async(self, executor: Executor, tool: str, **params: Any) -> "Future[EditResult]":
        """Compute a preview on an executor; stale results are discarded."""
        return executor.submit(self.preview, tool, **params)

    def apply_async(self, executor: Executor, tool: str, **params: Any) -> "Future[EditResult]":
        """
        Preview and commit on an executor.

        If another apply is in flight, the returned future is already
        resolved with a SessionBusyError result.
        """
        with self._lock:
            if self._in_flight:
                future: "Future[EditResult]" = Future()
                future.set_result(
                    self._fail(f"apply {tool}", SessionBusyError("An edit is already being applied"))
                )
                return future
            self._in_flight = True
        try:
            return executor.submit(self._apply_claimed, tool, params)
        except RuntimeError:
            # executor shut down; release the claim
            with self._lock:
                self._in_flight = False
            raise

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def export(self, spec: Union[EncodeSpec, Dict[str, Any], None] = None) -> EditResult:
        """
        Encode the current buffer for download.

        Without a spec the session's output spec is used; bytes from a
        committed compress/convert are handed out as-is instead of being
        re-encoded.
        """
        with self._lock:
            buffer = self._buffer
            committed = self._committed_encoding
            output_spec = self._output_spec

        if buffer is None:
            return self._fail("export", SessionStateError("No image loaded"))

        try:
            if isinstance(spec, dict):
                spec = EncodeSpec.from_dict(spec)
            if spec is None and committed is not None:
                encoded = committed
            else:
                encoded = encode(buffer, spec or output_spec)
        except PipelineError as exc:
            return self._fail("export", exc)

        return EditResult(buffer=buffer, encoded=encoded)

    def download_name(self, timestamp_ms: Optional[int] = None) -> str:
        return download_filename(self._output_spec.mime_type, timestamp_ms)

    def current_size(self) -> Optional[int]:
        """Encoded size of the current image in bytes, if one is loaded."""
        with self._lock:
            buffer = self._buffer
            generation = self._generation
        if buffer is None:
            return None
        return self._encoded_size(buffer, generation)

    def _encoded_size(self, buffer: PixelBuffer, generation: int) -> int:
        with self._lock:
            if generation == self._generation and self._source_size is not None:
                return self._source_size
            spec = self._output_spec
        size = encode(buffer, spec).size
        with self._lock:
            if generation == self._generation:
                self._source_size = size
        return size

    def _size_report(
        self,
        buffer: PixelBuffer,
        generation: int,
        output: ToolOutput,
    ) -> Optional[SizeComparison]:
        if output.encoded is None:
            return None
        return compare_sizes(self._encoded_size(buffer, generation), output.encoded.size)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_tool(self, tool: str) -> str:
        if self._buffer is None:
            raise SessionStateError("No image loaded")
        name = str(tool).strip().lower()
        if not self._registry.has_executor(name):
            available = ", ".join(self._registry.list_tools())
            raise SessionStateError(f"Unknown tool '{tool}'. Available tools: {available}")
        return name

    def _fail(self, operation: str, error: PipelineError) -> EditResult:
        logger.warning(f"{operation} failed: {error}")
        return EditResult.failure(error)
