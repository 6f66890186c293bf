"""Custom exceptions for the export pipeline.

Every failure of an export surfaces as one of these, each carrying a
machine-readable code and a distinct human-readable message. The codes map to
retryability and fix hints in ``constants.error_codes``.
"""

from typing import Any

from boba_export.constants.error_codes import get_error_spec
from boba_export.schemas.envelope import ErrorInfo, ErrorLocation


class BobaError(Exception):
    """Base exception for all export errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        location: ErrorLocation | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.location = location
        self.details = details
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return get_error_spec(self.code).get("retryable", False)

    def to_error_info(self) -> ErrorInfo:
        """Convert exception to ErrorInfo for API response."""
        spec = get_error_spec(self.code)
        return ErrorInfo(
            code=self.code,
            message=self.message,
            location=self.location,
            retryable=spec.get("retryable", False),
            suggested_fix=spec.get("suggested_fix"),
            details=self.details,
        )


# =============================================================================
# Source / preprocessing errors
# =============================================================================


class SourceUnavailableError(BobaError):
    """Raw bytes of a clip's source could not be fetched."""

    code = "SOURCE_UNAVAILABLE"
    status_code = 424
    message = "Source media is unavailable"

    def __init__(self, source_ref: str | None = None, *, clip_id: str | None = None, reason: str | None = None):
        message = f"Source media is unavailable: {source_ref}" if source_ref else self.message
        if reason:
            message += f" ({reason})"
        location = ErrorLocation(clip_id=clip_id) if clip_id else None
        super().__init__(message, location=location)
        self.source_ref = source_ref


class UnsupportedFormatError(BobaError):
    """Source container/codec is not in the supported set."""

    code = "UNSUPPORTED_FORMAT"
    status_code = 415
    message = "Unsupported media format"

    def __init__(self, source_ref: str | None = None, *, clip_id: str | None = None, kind: str | None = None):
        if source_ref and kind:
            message = f"Unsupported {kind} format: {source_ref}"
        elif source_ref:
            message = f"Unsupported media format: {source_ref}"
        else:
            message = self.message
        location = ErrorLocation(clip_id=clip_id, track=kind) if clip_id else None
        super().__init__(message, location=location)


# =============================================================================
# Structural (timeline / settings) errors
# =============================================================================


class ValidationError(BobaError):
    """Base class for structural errors in the project or the request."""

    code = "VALIDATION_ERROR"
    status_code = 400


class EmptyTimelineError(ValidationError):
    """All three tracks are empty."""

    code = "EMPTY_TIMELINE"
    message = "Nothing to export: the timeline has no clips"


class InvalidTimelineError(ValidationError):
    """Timeline cannot be compiled into a render graph."""

    code = "INVALID_TIMELINE"
    message = "The timeline cannot be rendered"


class ClipWindowOutOfRangeError(ValidationError):
    """Clip trim window extends past the end of its source."""

    code = "CLIP_WINDOW_OUT_OF_RANGE"
    message = "Clip extends past the end of its source"

    def __init__(
        self,
        clip_id: str | None = None,
        *,
        end_time: float | None = None,
        source_duration: float | None = None,
        kind: str | None = None,
    ):
        message = self.message
        if clip_id and end_time is not None and source_duration is not None:
            message = (
                f"Clip {clip_id} ends at {end_time:.3f}s but its source is only "
                f"{source_duration:.3f}s long"
            )
        location = ErrorLocation(clip_id=clip_id, track=kind) if clip_id else None
        super().__init__(message, location=location)


class InvalidSettingsError(ValidationError):
    """Export setting outside the enumerated set."""

    code = "INVALID_SETTINGS"
    message = "Invalid export settings"

    def __init__(self, field: str | None = None, value: Any = None):
        message = self.message
        if field:
            message = f"Invalid export setting '{field}': {value!r}"
        location = ErrorLocation(field=field) if field else None
        super().__init__(message, location=location)


class PluginValidationError(ValidationError):
    """Plugin rejected at registration."""

    code = "PLUGIN_INVALID"
    message = "Invalid plugin"


# =============================================================================
# Engine / export errors
# =============================================================================


class EngineNotReadyError(BobaError):
    """Transcoding engine has not been loaded."""

    code = "ENGINE_NOT_READY"
    status_code = 503
    message = "The video engine is not ready yet"


class EngineExecutionFailedError(BobaError):
    """Transcoding engine returned an error."""

    code = "ENGINE_EXECUTION_FAILED"
    status_code = 502
    message = "The video engine failed to render the export"

    def __init__(self, diagnostic: str | None = None, *, returncode: int | None = None):
        message = self.message
        if returncode is not None:
            message = f"{self.message} (exit code {returncode})"
        details = {"diagnostic": diagnostic} if diagnostic else None
        super().__init__(message, details=details)
        self.diagnostic = diagnostic
        self.returncode = returncode


class ExportInProgressError(BobaError):
    """Another export is already running on this exporter."""

    code = "EXPORT_IN_PROGRESS"
    status_code = 409
    message = "An export is already in progress"


class DeliveryError(BobaError):
    """Rendered output could not be delivered."""

    code = "DELIVERY_FAILED"
    status_code = 500
    message = "Failed to save the exported video"
