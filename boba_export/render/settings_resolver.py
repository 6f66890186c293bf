"""
Export settings resolver.

Maps the enumerated (format, quality, resolution) choice of the export dialog
to concrete encoder arguments. Every combination is looked up in explicit
tables; there is no fallback branch.
"""

from enum import Enum
from typing import Any, TypeVar

from boba_export.constants.encoding import (
    AUDIO_BITRATES,
    CODECS,
    CRF,
    DIMENSIONS,
    PRESETS,
    VIDEO_BITRATES,
)
from boba_export.constants.formats import CONTAINER_EXTENSIONS, CONTAINER_MEDIA_TYPES
from boba_export.exceptions import InvalidSettingsError
from boba_export.schemas.export import (
    EncoderParameters,
    ExportFormat,
    ExportQuality,
    ExportResolution,
    ExportSettings,
)

E = TypeVar("E", bound=Enum)


def _coerce(enum_cls: type[E], value: Any, field: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidSettingsError(field, value) from None


def resolve_encoder_parameters(
    format: ExportFormat | str,
    quality: ExportQuality | str,
    resolution: ExportResolution | str,
) -> EncoderParameters:
    """Resolve concrete encoder parameters.

    Raises:
        InvalidSettingsError: If a value is outside its enumerated set
    """
    fmt = _coerce(ExportFormat, format, "format")
    qual = _coerce(ExportQuality, quality, "quality")
    res = _coerce(ExportResolution, resolution, "resolution")

    codec, audio_codec, container = CODECS[fmt]
    return EncoderParameters(
        codec=codec,
        audio_codec=audio_codec,
        container_format=container,
        constant_rate_factor=CRF[fmt][qual],
        bitrate=VIDEO_BITRATES[res][qual],
        audio_bitrate=AUDIO_BITRATES[qual],
        preset=PRESETS[qual],
        pixel_dimensions=DIMENSIONS[res],
        file_extension=CONTAINER_EXTENSIONS[fmt],
        media_type=CONTAINER_MEDIA_TYPES[fmt],
    )


def resolve_export_settings(settings: ExportSettings) -> EncoderParameters:
    return resolve_encoder_parameters(settings.format, settings.quality, settings.resolution)
