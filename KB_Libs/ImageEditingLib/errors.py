"""
Error kinds raised by the KayaBlue editing pipeline.

Every error derives from PipelineError (itself a ValueError), so callers can
catch the whole family at the session boundary while the pure operations keep
raising the way the rest of the library does.
"""


class PipelineError(ValueError):
    """Base class for all pipeline failures."""

    kind = "pipeline_error"


class DecodeError(PipelineError):
    """Input bytes are unreadable or not a supported image."""

    kind = "decode_error"


class InvalidDimension(PipelineError):
    """A width or height is zero, negative, non-integral or too large."""

    kind = "invalid_dimension"


class InvalidCrop(PipelineError):
    """A crop region is degenerate or lies outside the view."""

    kind = "invalid_crop"


class EncodeError(PipelineError):
    """The requested output format cannot be produced."""

    kind = "encode_error"


class InvalidParameter(PipelineError):
    """A tool parameter is outside its accepted range."""

    kind = "invalid_parameter"


class SessionStateError(PipelineError):
    """An operation was requested in a state that does not allow it."""

    kind = "session_state"


class SessionBusyError(SessionStateError):
    """Another apply or commit is already in flight for the session."""

    kind = "session_busy"


class StalePreviewError(SessionStateError):
    """A worker result arrived after the session had moved on."""

    kind = "stale_preview"
