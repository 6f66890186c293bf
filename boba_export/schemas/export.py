from enum import Enum

from pydantic import BaseModel, ConfigDict

from boba_export.schemas.timeline import Timeline


class ExportFormat(str, Enum):
    MP4 = "mp4"
    WEBM = "webm"
    MOV = "mov"


class ExportQuality(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ExportResolution(str, Enum):
    UHD_2160P = "2160p"
    FHD_1080P = "1080p"
    HD_720P = "720p"
    SD_480P = "480p"


class ExportSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    format: ExportFormat = ExportFormat.MP4
    quality: ExportQuality = ExportQuality.MEDIUM
    resolution: ExportResolution = ExportResolution.FHD_1080P


class EncoderParameters(BaseModel):
    """Concrete encoder arguments derived from ExportSettings."""

    model_config = ConfigDict(frozen=True)

    codec: str
    audio_codec: str
    container_format: str
    constant_rate_factor: int
    bitrate: str
    audio_bitrate: str
    preset: str
    pixel_dimensions: tuple[int, int]
    file_extension: str
    media_type: str

    @property
    def width(self) -> int:
        return self.pixel_dimensions[0]

    @property
    def height(self) -> int:
        return self.pixel_dimensions[1]


class ExportRequest(BaseModel):
    timeline: Timeline
    settings: ExportSettings = ExportSettings()


class ExportResponse(BaseModel):
    filename: str
    media_type: str
