"""
Preprocessing adapter.

Fetches every clip's source from the source store and normalises it with the
preprocessing codec, producing the ordered engine input list. Clips are
processed concurrently (bounded); the first failure aborts the whole export.
"""

import asyncio
import logging

from boba_export.config import get_settings
from boba_export.constants.formats import is_supported
from boba_export.exceptions import (
    ClipWindowOutOfRangeError,
    EmptyTimelineError,
    UnsupportedFormatError,
)
from boba_export.render.inputs import InputSlot, ResolvedInput, plan_inputs
from boba_export.schemas.export import ExportSettings
from boba_export.schemas.timeline import Timeline, TrackKind
from boba_export.services.preprocessing_codec import PreprocessingCodec
from boba_export.services.source_store import SourceStore

logger = logging.getLogger(__name__)

# Tolerance for container durations rounded by ffprobe
DURATION_EPSILON_S = 0.001


class Preprocessor:
    """Resolves the clips of a timeline into engine inputs."""

    def __init__(
        self,
        source_store: SourceStore,
        codec: PreprocessingCodec,
        max_concurrency: int | None = None,
    ):
        self.source_store = source_store
        self.codec = codec
        self.max_concurrency = max_concurrency or get_settings().preprocess_concurrency

    async def resolve_clip(self, slot: InputSlot, settings: ExportSettings) -> ResolvedInput:
        """Fetch, validate and normalise one clip.

        Raises:
            UnsupportedFormatError: If the source format is not supported
            SourceUnavailableError: If the source cannot be fetched
            ClipWindowOutOfRangeError: If the trim window ends after the source
        """
        clip = slot.clip
        if not is_supported(slot.kind, clip.source_ref):
            raise UnsupportedFormatError(clip.source_ref, clip_id=clip.id, kind=slot.kind.value)

        raw = await self.source_store.fetch(clip.source_ref)

        try:
            source_duration = await asyncio.to_thread(self.codec.probe_duration, raw, kind=slot.kind)
            if source_duration is not None and clip.end_time > source_duration + DURATION_EPSILON_S:
                raise ClipWindowOutOfRangeError(
                    clip.id,
                    end_time=clip.end_time,
                    source_duration=source_duration,
                    kind=slot.kind.value,
                )

            if slot.kind == TrackKind.IMAGE:
                data = await asyncio.to_thread(self.codec.resize, raw, settings.resolution)
            else:
                data = await asyncio.to_thread(
                    self.codec.compress, raw, settings.quality, kind=slot.kind
                )
        except UnsupportedFormatError as e:
            raise UnsupportedFormatError(clip.source_ref, clip_id=clip.id, kind=slot.kind.value) from e

        logger.info(
            f"[PREPROCESS] {slot.kind.value}[{slot.position}] {clip.id}: "
            f"{len(raw)} -> {len(data)} bytes (input #{slot.input_index})"
        )
        return ResolvedInput(
            kind=slot.kind,
            position=slot.position,
            clip_id=clip.id,
            input_index=slot.input_index,
            filename=slot.filename,
            data=data,
        )

    async def resolve_all(self, timeline: Timeline, settings: ExportSettings) -> list[ResolvedInput]:
        """Resolve every clip concurrently.

        Fails fast on the first error. Clips still in flight are left to finish
        on their own rather than cancelled.

        Returns:
            Resolved inputs ordered by engine input index
        """
        slots = plan_inputs(timeline)
        if not slots:
            raise EmptyTimelineError()

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run(slot: InputSlot) -> ResolvedInput:
            async with semaphore:
                return await self.resolve_clip(slot, settings)

        tasks = [asyncio.create_task(run(slot)) for slot in slots]
        for task in tasks:
            task.add_done_callback(_log_straggler_failure)

        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        for task in tasks:
            if task not in done:
                continue
            exc = task.exception()
            if exc is not None:
                logger.error(
                    f"[PREPROCESS] Aborting export: {exc} "
                    f"({len(pending)} clip(s) still in flight)"
                )
                raise exc

        return sorted((task.result() for task in tasks), key=lambda r: r.input_index)


def _log_straggler_failure(task: "asyncio.Task[ResolvedInput]") -> None:
    # Retrieve every exception so late failures after an abort are not reported as unhandled
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"[PREPROCESS] Clip failed: {exc}")
