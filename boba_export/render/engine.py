"""
FFmpeg transcoding engine.

Executes one compiled filter graph over the resolved inputs and returns the
muxed output bytes. The engine must be loaded before it accepts work.
"""

import asyncio
import logging
import shutil
import subprocess
import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Optional, Protocol

from boba_export.config import get_settings
from boba_export.exceptions import EngineExecutionFailedError, EngineNotReadyError
from boba_export.render.inputs import ResolvedInput
from boba_export.schemas.export import EncoderParameters

logger = logging.getLogger(__name__)

EngineProgressCallback = Callable[[int], None]  # 0 - 100 of the engine run

# Containers that support moving the index to the front for progressive playback
_FASTSTART_CONTAINERS = frozenset({"mp4", "mov"})

# Keep the tail of stderr; FFmpeg prints the actual error last
_DIAGNOSTIC_TAIL_CHARS = 4000


class TranscodingEngine(Protocol):
    @property
    def ready(self) -> bool: ...

    async def load(self) -> None: ...

    async def run(
        self,
        inputs: Sequence[ResolvedInput],
        graph_description: str,
        output_mapping: Sequence[str],
        encoder_params: EncoderParameters,
        *,
        duration_s: float | None = None,
        progress: Optional[EngineProgressCallback] = None,
    ) -> bytes: ...


class FFmpegEngine:
    """Transcoding engine running the ffmpeg binary as a subprocess."""

    def __init__(self, ffmpeg_path: str | None = None):
        self.ffmpeg_path = ffmpeg_path or get_settings().ffmpeg_path
        self._ready = False
        self.version: str | None = None

    @property
    def ready(self) -> bool:
        return self._ready

    async def load(self) -> None:
        """Verify the ffmpeg binary is usable.

        Raises:
            EngineNotReadyError: If ffmpeg cannot be executed
        """
        try:
            result = await asyncio.to_thread(
                subprocess.run,
                [self.ffmpeg_path, "-hide_banner", "-version"],
                capture_output=True,
                text=True,
            )
        except OSError as e:
            logger.error(f"[ENGINE] Failed to start {self.ffmpeg_path}: {e}")
            raise EngineNotReadyError(f"The video engine could not be started: {e}") from e

        if result.returncode != 0:
            logger.error(f"[ENGINE] {self.ffmpeg_path} -version failed: {result.stderr}")
            raise EngineNotReadyError()

        self.version = result.stdout.splitlines()[0] if result.stdout else "unknown"
        self._ready = True
        logger.info(f"[ENGINE] Loaded: {self.version}")

    def build_command(
        self,
        input_paths: Sequence[tuple[ResolvedInput, str]],
        graph_description: str,
        output_mapping: Sequence[str],
        params: EncoderParameters,
        output_path: str,
    ) -> list[str]:
        """Build the FFmpeg command without executing it.

        Args:
            input_paths: Inputs in engine order, each with its file path in the work area
            graph_description: ``-filter_complex`` description
            output_mapping: ``-map`` arguments
            params: Encoder parameters
            output_path: Path of the produced file

        Returns:
            FFmpeg command as list[str]
        """
        cmd = [self.ffmpeg_path, "-y", "-hide_banner"]
        for resolved, path in input_paths:
            if resolved.is_still:
                # Stills become an endless stream; the trim node cuts the window
                cmd.extend(["-loop", "1"])
            cmd.extend(["-i", path])

        cmd.extend(["-filter_complex", graph_description])
        cmd.extend(output_mapping)

        cmd.extend(["-c:v", params.codec, "-crf", str(params.constant_rate_factor)])
        if params.codec == "libx264":
            cmd.extend([
                "-preset", params.preset,
                "-maxrate", params.bitrate,
                "-bufsize", params.bitrate,
            ])
        else:
            # libvpx: CRF with a bitrate ceiling (constrained quality)
            cmd.extend(["-b:v", params.bitrate])
        cmd.extend([
            "-s", f"{params.width}x{params.height}",
            "-pix_fmt", "yuv420p",
            "-c:a", params.audio_codec,
            "-b:a", params.audio_bitrate,
        ])
        if params.container_format in _FASTSTART_CONTAINERS:
            cmd.extend(["-movflags", "+faststart"])
        cmd.extend(["-f", params.container_format])
        cmd.extend(["-progress", "pipe:1", "-nostats"])
        cmd.append(output_path)
        return cmd

    async def run(
        self,
        inputs: Sequence[ResolvedInput],
        graph_description: str,
        output_mapping: Sequence[str],
        encoder_params: EncoderParameters,
        *,
        duration_s: float | None = None,
        progress: Optional[EngineProgressCallback] = None,
    ) -> bytes:
        """Run one export and return the produced file.

        Raises:
            EngineNotReadyError: If ``load()`` has not succeeded
            EngineExecutionFailedError: If FFmpeg exits with an error
        """
        if not self._ready:
            raise EngineNotReadyError()

        work_dir = Path(tempfile.mkdtemp(prefix="boba_engine_"))
        try:
            input_paths = await asyncio.to_thread(_write_inputs, work_dir, inputs)
            output_path = work_dir / f"output.{encoder_params.file_extension}"
            cmd = self.build_command(
                input_paths, graph_description, output_mapping, encoder_params, str(output_path)
            )
            logger.info(f"[ENGINE] Running FFmpeg with {len(inputs)} inputs")
            logger.debug(f"[ENGINE] filter_complex: {graph_description}")

            returncode, stderr_text = await self._execute(cmd, duration_s, progress)
            if returncode != 0:
                logger.error(f"[ENGINE] FFmpeg exited with {returncode}")
                raise EngineExecutionFailedError(
                    stderr_text[-_DIAGNOSTIC_TAIL_CHARS:], returncode=returncode
                )
            if not output_path.exists():
                raise EngineExecutionFailedError("FFmpeg produced no output file")

            return await asyncio.to_thread(output_path.read_bytes)
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

    async def _execute(
        self,
        cmd: list[str],
        duration_s: float | None,
        progress: Optional[EngineProgressCallback],
    ) -> tuple[int, str]:
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self._ready = False
            raise EngineNotReadyError(f"The video engine could not be started: {e}") from e

        # Drain stderr concurrently so a chatty FFmpeg never blocks on a full pipe
        stderr_task = asyncio.create_task(proc.stderr.read())

        last_reported_pct = 0
        async for raw_line in proc.stdout:
            line = raw_line.decode("utf-8", errors="replace").strip()
            if line.startswith("out_time_us=") and duration_s and progress:
                try:
                    time_s = int(line.split("=", 1)[1]) / 1_000_000
                except ValueError:
                    # FFmpeg prints N/A before the first frame
                    continue
                pct = min(99, int(time_s / duration_s * 100))
                if pct > last_reported_pct:
                    last_reported_pct = pct
                    progress(pct)
            elif line.startswith("progress=end"):
                if progress:
                    progress(100)

        stderr_output = await stderr_task
        await proc.wait()
        return proc.returncode, stderr_output.decode("utf-8", errors="replace")


def _write_inputs(
    work_dir: Path, inputs: Sequence[ResolvedInput]
) -> list[tuple[ResolvedInput, str]]:
    paths: list[tuple[ResolvedInput, str]] = []
    for resolved in sorted(inputs, key=lambda r: r.input_index):
        path = work_dir / resolved.filename
        path.write_bytes(resolved.data)
        paths.append((resolved, str(path)))
    return paths
