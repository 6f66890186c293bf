from boba_export.schemas.export import (
    EncoderParameters,
    ExportFormat,
    ExportQuality,
    ExportRequest,
    ExportResolution,
    ExportResponse,
    ExportSettings,
)
from boba_export.schemas.timeline import TRACK_ORDER, Clip, Timeline, Track, TrackKind

__all__ = [
    "Clip",
    "EncoderParameters",
    "ExportFormat",
    "ExportQuality",
    "ExportRequest",
    "ExportResolution",
    "ExportResponse",
    "ExportSettings",
    "TRACK_ORDER",
    "Timeline",
    "Track",
    "TrackKind",
]
