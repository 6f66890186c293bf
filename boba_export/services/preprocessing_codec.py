"""
Per-clip preprocessing codec.

Normalises clip sources before they enter the render graph:
- Video/audio re-encoded at the export quality (FFmpeg)
- Images scaled to fit the export resolution (Pillow)
- Natural duration probing (FFprobe)
"""

import io
import json
import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Protocol

from PIL import Image, UnidentifiedImageError

from boba_export.config import get_settings
from boba_export.constants.encoding import AUDIO_BITRATES, CRF, DIMENSIONS, PRESETS
from boba_export.exceptions import UnsupportedFormatError
from boba_export.schemas.export import ExportFormat, ExportQuality, ExportResolution
from boba_export.schemas.timeline import TrackKind

logger = logging.getLogger(__name__)


class PreprocessingCodec(Protocol):
    def compress(self, data: bytes, quality: ExportQuality, *, kind: TrackKind) -> bytes: ...

    def resize(self, data: bytes, resolution: ExportResolution) -> bytes: ...

    def probe_duration(self, data: bytes, *, kind: TrackKind) -> float | None: ...


class FFmpegCodec:
    """Blocking codec backed by the ffmpeg/ffprobe binaries and Pillow."""

    def __init__(self, ffmpeg_path: str | None = None, ffprobe_path: str | None = None):
        settings = get_settings()
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self.ffprobe_path = ffprobe_path or settings.ffprobe_path
        self.sample_rate = settings.audio_sample_rate

    def build_compress_command(
        self,
        input_path: str,
        output_path: str,
        quality: ExportQuality,
        kind: TrackKind,
    ) -> list[str]:
        """Build the FFmpeg re-encode command without executing it."""
        if kind == TrackKind.VIDEO:
            return [
                self.ffmpeg_path,
                "-y",
                "-i", input_path,
                "-c:v", "libx264",
                "-preset", PRESETS[quality],
                "-crf", str(CRF[ExportFormat.MP4][quality]),
                "-pix_fmt", "yuv420p",
                "-c:a", "aac",
                "-b:a", AUDIO_BITRATES[quality],
                "-movflags", "+faststart",
                output_path,
            ]
        if kind == TrackKind.AUDIO:
            return [
                self.ffmpeg_path,
                "-y",
                "-i", input_path,
                "-vn",
                "-c:a", "aac",
                "-b:a", AUDIO_BITRATES[quality],
                "-ar", str(self.sample_rate),
                output_path,
            ]
        raise ValueError(f"Cannot compress {kind.value} clips; images are resized")

    def compress(self, data: bytes, quality: ExportQuality, *, kind: TrackKind) -> bytes:
        suffix = ".mp4" if kind == TrackKind.VIDEO else ".m4a"
        with tempfile.TemporaryDirectory(prefix="boba_compress_") as tmpdir:
            input_path = Path(tmpdir) / "source"
            output_path = Path(tmpdir) / f"compressed{suffix}"
            input_path.write_bytes(data)

            cmd = self.build_compress_command(str(input_path), str(output_path), quality, kind)
            result = subprocess.run(cmd, capture_output=True, text=True)
            if result.returncode != 0:
                logger.error(f"[PREPROCESS] FFmpeg compress failed: {result.stderr[-2000:]}")
                raise UnsupportedFormatError(kind=kind.value, source_ref="<decoded source>")
            return output_path.read_bytes()

    def resize(self, data: bytes, resolution: ExportResolution) -> bytes:
        """Scale an image to fit inside the export frame, keeping its aspect ratio."""
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise UnsupportedFormatError(kind=TrackKind.IMAGE.value, source_ref="<image data>") from e

        image = image.convert("RGBA")
        image.thumbnail(DIMENSIONS[resolution], Image.Resampling.LANCZOS)
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()

    def probe_duration(self, data: bytes, *, kind: TrackKind) -> float | None:
        """Natural length of a video/audio source in seconds; None for stills."""
        if kind == TrackKind.IMAGE:
            return None

        with tempfile.NamedTemporaryFile(prefix="boba_probe_") as tmp:
            tmp.write(data)
            tmp.flush()
            cmd = [
                self.ffprobe_path,
                "-v", "quiet",
                "-print_format", "json",
                "-show_format",
                tmp.name,
            ]
            result = subprocess.run(cmd, capture_output=True, text=True)

        if result.returncode != 0:
            raise UnsupportedFormatError(kind=kind.value, source_ref="<probed source>")
        try:
            format_info = json.loads(result.stdout).get("format", {})
            return float(format_info["duration"])
        except (json.JSONDecodeError, KeyError, ValueError):
            # Container without a duration (e.g. raw streams)
            logger.warning("[PREPROCESS] ffprobe reported no duration")
            return None
