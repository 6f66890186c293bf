"""
Export pipeline.

Orchestrates one export of a timeline:
1. Resolve encoder parameters from the export settings
2. Preprocess every clip (fetch + compress/resize, concurrently)
3. Compile the filter graph
4. Run the transcoding engine once
5. Deliver the produced file

Only one export may run per exporter at a time because the engine is a shared
single-use resource.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from typing import Optional

from boba_export.config import get_settings
from boba_export.exceptions import BobaError, EngineNotReadyError, ExportInProgressError
from boba_export.render.engine import TranscodingEngine
from boba_export.render.filter_graph import check_timeline, compile_filter_graph
from boba_export.render.preprocessor import Preprocessor
from boba_export.render.settings_resolver import resolve_export_settings
from boba_export.schemas.export import ExportSettings
from boba_export.schemas.timeline import Timeline
from boba_export.services.delivery import DeliverySink
from boba_export.utils.timefmt import format_duration

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]  # 0 - 100

# Progress checkpoints; the engine run fills ENGINE_START..ENGINE_END
PROGRESS_PREPROCESS = 5
PROGRESS_COMPILE = 35
PROGRESS_ENGINE_START = 40
PROGRESS_ENGINE_END = 95
PROGRESS_DONE = 100


def generate_output_filename(extension: str, prefix: str | None = None) -> str:
    """``<prefix>_<unique token>.<extension>``; the token is a random UUID."""
    prefix = prefix or get_settings().output_prefix
    return f"{prefix}_{uuid.uuid4().hex}.{extension}"


class TimelineExporter:
    """
    Exports timelines to a single muxed file.

    Collaborators:
    - preprocessor: resolves clips into engine inputs
    - engine: transcoding engine (must be loaded)
    - delivery: receives the finished file
    - progress: optional observer receiving 0-100
    """

    def __init__(
        self,
        preprocessor: Preprocessor,
        engine: TranscodingEngine,
        delivery: DeliverySink,
        progress: Optional[ProgressCallback] = None,
    ):
        self.preprocessor = preprocessor
        self.engine = engine
        self.delivery = delivery
        self._progress_callback = progress
        self._progress = 0
        self._in_flight = False
        self._cancel_requested = False
        self._engine_started = False

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def is_exporting(self) -> bool:
        return self._in_flight

    def set_progress_callback(self, callback: Optional[ProgressCallback]) -> None:
        """Set callback for progress updates."""
        self._progress_callback = callback

    def _update_progress(self, percent: int, stage: str) -> None:
        # Progress only moves forward during an export
        percent = max(0, min(100, int(percent)))
        if percent <= self._progress:
            return
        self._progress = percent
        logger.debug(f"[EXPORT] {percent}% {stage}")
        if self._progress_callback:
            self._progress_callback(percent)

    def _reset_progress(self) -> None:
        self._progress = 0
        if self._progress_callback:
            self._progress_callback(0)

    async def load_engine(self) -> None:
        """Load the transcoding engine if it is not ready yet."""
        if not self.engine.ready:
            await self.engine.load()

    def cancel(self) -> bool:
        """Request cancellation of the running export.

        Only honoured before the engine is invoked; once FFmpeg runs the export
        is left to finish or fail.

        Returns:
            True if the cancel will take effect
        """
        if not self._in_flight or self._engine_started:
            return False
        self._cancel_requested = True
        return True

    def _check_cancelled(self) -> None:
        if self._cancel_requested:
            raise asyncio.CancelledError("Export cancelled")

    async def export_timeline(self, timeline: Timeline, settings: ExportSettings) -> str:
        """
        Export a timeline and deliver the result.

        Args:
            timeline: Timeline to export
            settings: Export format, quality and resolution

        Returns:
            Filename of the delivered export

        Raises:
            ExportInProgressError: If another export is running on this exporter
            EngineNotReadyError: If the engine has not been loaded
            asyncio.CancelledError: If cancelled before the engine started
            BobaError: Any preprocessing, compile, engine or delivery error
        """
        if self._in_flight:
            raise ExportInProgressError()
        if not self.engine.ready:
            raise EngineNotReadyError()

        self._in_flight = True
        self._cancel_requested = False
        self._engine_started = False
        self._progress = 0
        started = time.monotonic()

        try:
            filename = await self._export(timeline, settings)
        except BobaError as e:
            logger.error(f"[EXPORT] Failed ({e.code}): {e.message}")
            self._reset_progress()
            raise
        except asyncio.CancelledError:
            logger.info("[EXPORT] Cancelled")
            self._reset_progress()
            raise
        except Exception:
            logger.exception("[EXPORT] Unexpected failure")
            self._reset_progress()
            raise
        finally:
            self._in_flight = False
            self._engine_started = False
            self._cancel_requested = False

        logger.info(f"[EXPORT] Delivered {filename} in {time.monotonic() - started:.1f}s")
        return filename

    async def _export(self, timeline: Timeline, settings: ExportSettings) -> str:
        params = resolve_export_settings(settings)
        check_timeline(timeline)

        logger.info(
            f"[EXPORT] Starting: {timeline.clip_count} clips, "
            f"{format_duration(timeline.total_duration)}, "
            f"{settings.format.value}/{settings.quality.value}/{settings.resolution.value}"
        )

        self._update_progress(PROGRESS_PREPROCESS, "Preprocessing clips")
        inputs = await self.preprocessor.resolve_all(timeline, settings)
        self._check_cancelled()

        self._update_progress(PROGRESS_COMPILE, "Compiling filter graph")
        graph = compile_filter_graph(timeline, inputs, params.pixel_dimensions)
        self._check_cancelled()

        self._update_progress(PROGRESS_ENGINE_START, "Encoding")
        span = PROGRESS_ENGINE_END - PROGRESS_ENGINE_START

        def on_engine_progress(pct: int) -> None:
            self._update_progress(PROGRESS_ENGINE_START + pct * span // 100, "Encoding")

        self._engine_started = True
        output = await self.engine.run(
            inputs,
            graph.to_filter_complex(),
            graph.output_mapping(),
            params,
            duration_s=timeline.total_duration or None,
            progress=on_engine_progress,
        )
        self._update_progress(PROGRESS_ENGINE_END, "Delivering")

        filename = generate_output_filename(params.file_extension)
        await self.delivery.deliver(output, filename, params.media_type)
        self._update_progress(PROGRESS_DONE, "Complete")
        return filename
