"""Encoder lookup tables for every export format, quality and resolution."""

from boba_export.schemas.export import ExportFormat, ExportQuality, ExportResolution

# (video codec, audio codec, ffmpeg muxer)
CODECS: dict[ExportFormat, tuple[str, str, str]] = {
    ExportFormat.MP4: ("libx264", "aac", "mp4"),
    ExportFormat.MOV: ("libx264", "aac", "mov"),
    ExportFormat.WEBM: ("libvpx-vp9", "libopus", "webm"),
}

# x264 and VP9 use different CRF scales (0-51 vs 0-63)
CRF: dict[ExportFormat, dict[ExportQuality, int]] = {
    ExportFormat.MP4: {ExportQuality.HIGH: 18, ExportQuality.MEDIUM: 23, ExportQuality.LOW: 28},
    ExportFormat.MOV: {ExportQuality.HIGH: 18, ExportQuality.MEDIUM: 23, ExportQuality.LOW: 28},
    ExportFormat.WEBM: {ExportQuality.HIGH: 24, ExportQuality.MEDIUM: 31, ExportQuality.LOW: 38},
}

PRESETS: dict[ExportQuality, str] = {
    ExportQuality.HIGH: "slow",
    ExportQuality.MEDIUM: "medium",
    ExportQuality.LOW: "veryfast",
}

VIDEO_BITRATES: dict[ExportResolution, dict[ExportQuality, str]] = {
    ExportResolution.UHD_2160P: {
        ExportQuality.HIGH: "45M",
        ExportQuality.MEDIUM: "35M",
        ExportQuality.LOW: "20M",
    },
    ExportResolution.FHD_1080P: {
        ExportQuality.HIGH: "12M",
        ExportQuality.MEDIUM: "8M",
        ExportQuality.LOW: "5M",
    },
    ExportResolution.HD_720P: {
        ExportQuality.HIGH: "7500k",
        ExportQuality.MEDIUM: "5M",
        ExportQuality.LOW: "2500k",
    },
    ExportResolution.SD_480P: {
        ExportQuality.HIGH: "4M",
        ExportQuality.MEDIUM: "2500k",
        ExportQuality.LOW: "1M",
    },
}

AUDIO_BITRATES: dict[ExportQuality, str] = {
    ExportQuality.HIGH: "320k",
    ExportQuality.MEDIUM: "192k",
    ExportQuality.LOW: "128k",
}

DIMENSIONS: dict[ExportResolution, tuple[int, int]] = {
    ExportResolution.UHD_2160P: (3840, 2160),
    ExportResolution.FHD_1080P: (1920, 1080),
    ExportResolution.HD_720P: (1280, 720),
    ExportResolution.SD_480P: (854, 480),
}

