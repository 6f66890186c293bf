"""Supported source formats and output container metadata."""

from pathlib import PurePosixPath
from urllib.parse import urlparse

from boba_export.schemas.export import ExportFormat
from boba_export.schemas.timeline import TrackKind

SUPPORTED_VIDEO_EXTENSIONS: frozenset[str] = frozenset(
    {".mp4", ".avi", ".mkv", ".mov", ".wmv", ".flv", ".webm"}
)
SUPPORTED_AUDIO_EXTENSIONS: frozenset[str] = frozenset(
    {".mp3", ".wav", ".ogg", ".flac", ".aac", ".wma", ".m4a"}
)
SUPPORTED_IMAGE_EXTENSIONS: frozenset[str] = frozenset(
    {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".webp"}
)

SUPPORTED_EXTENSIONS: dict[TrackKind, frozenset[str]] = {
    TrackKind.VIDEO: SUPPORTED_VIDEO_EXTENSIONS,
    TrackKind.AUDIO: SUPPORTED_AUDIO_EXTENSIONS,
    TrackKind.IMAGE: SUPPORTED_IMAGE_EXTENSIONS,
}

# Extension used for the processed copy handed to the engine
ENGINE_INPUT_EXTENSIONS: dict[TrackKind, str] = {
    TrackKind.VIDEO: "mp4",
    TrackKind.AUDIO: "m4a",
    TrackKind.IMAGE: "png",
}

CONTAINER_EXTENSIONS: dict[ExportFormat, str] = {
    ExportFormat.MP4: "mp4",
    ExportFormat.WEBM: "webm",
    ExportFormat.MOV: "mov",
}

CONTAINER_MEDIA_TYPES: dict[ExportFormat, str] = {
    ExportFormat.MP4: "video/mp4",
    ExportFormat.WEBM: "video/webm",
    ExportFormat.MOV: "video/quicktime",
}


def source_extension(source_ref: str) -> str:
    """Lower-cased extension of a path or URL, including the dot."""
    path = urlparse(source_ref).path if "://" in source_ref else source_ref
    return PurePosixPath(path.replace("\\", "/")).suffix.lower()


def is_supported(kind: TrackKind, source_ref: str) -> bool:
    return source_extension(source_ref) in SUPPORTED_EXTENSIONS[kind]
