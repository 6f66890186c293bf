"""Error codes dictionary for the export API.

This is the single source of truth for all error codes, their retryability,
and the human-readable fix shown to the user. Used by the exception handlers
to generate machine-readable error responses.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


# Error codes dictionary - single source of truth
ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Structural errors (caller or project problem, never retried)
    # ==========================================================================
    "SOURCE_UNAVAILABLE": {
        "retryable": False,
        "suggested_fix": "Check that every clip still points to an existing media file",
    },
    "UNSUPPORTED_FORMAT": {
        "retryable": False,
        "suggested_fix": "Convert the clip to a supported video, audio or image format",
    },
    "EMPTY_TIMELINE": {
        "retryable": False,
        "suggested_fix": "Add at least one clip to the timeline before exporting",
    },
    "INVALID_TIMELINE": {
        "retryable": False,
        "suggested_fix": "Place a video clip under the images, or remove the image clips",
    },
    "CLIP_WINDOW_OUT_OF_RANGE": {
        "retryable": False,
        "suggested_fix": "Shorten the clip so it ends before its source does",
    },
    "INVALID_SETTINGS": {
        "retryable": False,
        "suggested_fix": "Pick a format, quality and resolution from the export dialog",
    },
    "PLUGIN_INVALID": {
        "retryable": False,
    },
    "VALIDATION_ERROR": {
        "retryable": False,
    },
    # ==========================================================================
    # Engine / delivery errors (caller may retry)
    # ==========================================================================
    "ENGINE_NOT_READY": {
        "retryable": True,
        "suggested_fix": "Wait for the video engine to finish loading, then export again",
    },
    "ENGINE_EXECUTION_FAILED": {
        "retryable": True,
        "suggested_fix": "The video engine failed to render the project; try again",
    },
    "EXPORT_IN_PROGRESS": {
        "retryable": True,
        "suggested_fix": "Wait for the current export to finish",
    },
    "DELIVERY_FAILED": {
        "retryable": True,
        "suggested_fix": "Check that the export folder is writable",
    },
    "INTERNAL_ERROR": {
        "retryable": False,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification by code.

    Args:
        code: The error code

    Returns:
        ErrorCodeSpec with retryable flag and suggested fix
    """
    return ERROR_CODES.get(code, {"retryable": False})


def is_retryable(code: str) -> bool:
    """Check if an error code is retryable."""
    spec = get_error_spec(code)
    return spec.get("retryable", False)
