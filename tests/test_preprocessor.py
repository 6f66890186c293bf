"""Tests for the preprocessing adapter."""

import asyncio

import pytest

from boba_export.exceptions import (
    ClipWindowOutOfRangeError,
    EmptyTimelineError,
    SourceUnavailableError,
    UnsupportedFormatError,
)
from boba_export.render.preprocessor import Preprocessor
from boba_export.schemas.export import ExportQuality, ExportResolution, ExportSettings
from boba_export.schemas.timeline import Clip, Timeline, Track, TrackKind
from tests.factories import FakeCodec, FakeSourceStore, make_timeline


SETTINGS = ExportSettings(quality=ExportQuality.HIGH, resolution=ExportResolution.HD_720P)


class CountingSourceStore(FakeSourceStore):
    """Tracks how many fetches are in flight at once."""

    def __init__(self) -> None:
        super().__init__()
        self.active = 0
        self.peak = 0

    async def fetch(self, source_ref: str) -> bytes:
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(0.01)
            return await super().fetch(source_ref)
        finally:
            self.active -= 1


class TestResolveAll:
    """Tests for Preprocessor.resolve_all."""

    @pytest.mark.asyncio
    async def test_inputs_ordered_by_engine_index(self, source_store, codec):
        timeline = make_timeline(video=[(0, 1), (1, 1)], audio=[(0, 2)], image=[(0, 1)])
        preprocessor = Preprocessor(source_store, codec, max_concurrency=4)

        inputs = await preprocessor.resolve_all(timeline, SETTINGS)

        assert [i.input_index for i in inputs] == [0, 1, 2, 3]
        assert [(i.kind, i.position) for i in inputs] == [
            (TrackKind.VIDEO, 0),
            (TrackKind.VIDEO, 1),
            (TrackKind.AUDIO, 0),
            (TrackKind.IMAGE, 0),
        ]
        assert [i.clip_id for i in inputs] == ["video-0", "video-1", "audio-0", "image-0"]

    @pytest.mark.asyncio
    async def test_media_compressed_and_images_resized(self, source_store, codec):
        timeline = make_timeline(video=[(0, 1)], audio=[(0, 2)], image=[(0, 1)])
        preprocessor = Preprocessor(source_store, codec, max_concurrency=1)

        video, audio, image = await preprocessor.resolve_all(timeline, SETTINGS)

        assert video.data == b"compressed-high:media"
        assert audio.data == b"compressed-high:media"
        assert image.data == b"resized-720p:media"
        assert image.is_still and not video.is_still
        assert ("compress", (TrackKind.VIDEO, ExportQuality.HIGH)) in codec.calls
        assert ("compress", (TrackKind.AUDIO, ExportQuality.HIGH)) in codec.calls
        assert ("resize", ExportResolution.HD_720P) in codec.calls

    @pytest.mark.asyncio
    async def test_every_clip_fetched_once(self, source_store, codec, scenario_a):
        preprocessor = Preprocessor(source_store, codec, max_concurrency=2)
        await preprocessor.resolve_all(scenario_a, SETTINGS)
        assert sorted(source_store.fetched) == ["audio_0.mp3", "video_0.mp4", "video_1.mp4"]

    @pytest.mark.asyncio
    async def test_empty_timeline_rejected(self, source_store, codec):
        preprocessor = Preprocessor(source_store, codec)
        with pytest.raises(EmptyTimelineError):
            await preprocessor.resolve_all(Timeline(), SETTINGS)

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, codec):
        store = CountingSourceStore()
        timeline = make_timeline(video=[(0, 1)] * 6, audio=[(0, 1)] * 2)
        preprocessor = Preprocessor(store, codec, max_concurrency=3)

        inputs = await preprocessor.resolve_all(timeline, SETTINGS)

        assert len(inputs) == 8
        assert store.peak <= 3
        assert store.peak > 1

    @pytest.mark.asyncio
    async def test_missing_source_fails_export(self, source_store, codec, scenario_a):
        source_store.missing.add("audio_0.mp3")
        preprocessor = Preprocessor(source_store, codec, max_concurrency=4)

        with pytest.raises(SourceUnavailableError) as exc_info:
            await preprocessor.resolve_all(scenario_a, SETTINGS)
        assert "audio_0.mp3" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_fails_fast_without_cancelling_in_flight_clips(self, source_store, codec, scenario_a):
        gate = asyncio.Event()
        source_store.gates["video_1.mp4"] = gate
        source_store.missing.add("audio_0.mp3")
        preprocessor = Preprocessor(source_store, codec, max_concurrency=4)

        with pytest.raises(SourceUnavailableError):
            await preprocessor.resolve_all(scenario_a, SETTINGS)

        # The blocked clip is still running and completes once released
        assert "video_1.mp4" not in source_store.fetched
        gate.set()
        for _ in range(50):
            if "video_1.mp4" in source_store.fetched:
                break
            await asyncio.sleep(0.01)
        assert "video_1.mp4" in source_store.fetched


class TestResolveClip:
    """Tests for per-clip validation."""

    @pytest.mark.asyncio
    async def test_unsupported_extension_rejected_before_fetch(self, source_store, codec):
        timeline = Timeline(
            video=Track(
                kind=TrackKind.VIDEO,
                clips=[Clip(id="doc", source_ref="notes.txt", duration=1)],
            )
        )
        preprocessor = Preprocessor(source_store, codec)

        with pytest.raises(UnsupportedFormatError) as exc_info:
            await preprocessor.resolve_all(timeline, SETTINGS)

        assert exc_info.value.location.clip_id == "doc"
        assert source_store.requested == []

    @pytest.mark.asyncio
    async def test_image_extension_on_video_track_rejected(self, source_store, codec):
        timeline = Timeline(
            video=Track(
                kind=TrackKind.VIDEO,
                clips=[Clip(id="still", source_ref="photo.png", duration=1)],
            )
        )
        with pytest.raises(UnsupportedFormatError):
            await Preprocessor(source_store, codec).resolve_all(timeline, SETTINGS)

    @pytest.mark.asyncio
    async def test_url_sources_checked_by_path_extension(self, codec):
        store = FakeSourceStore()
        timeline = Timeline(
            audio=Track(
                kind=TrackKind.AUDIO,
                clips=[Clip(id="a", source_ref="https://cdn.example.com/song.mp3?sig=1", duration=1)],
            )
        )
        inputs = await Preprocessor(store, codec).resolve_all(timeline, SETTINGS)
        assert inputs[0].filename == "audio_0.m4a"

    @pytest.mark.asyncio
    async def test_window_past_source_end_rejected(self, codec):
        store = FakeSourceStore(sources={"video_0.mp4": b"short"})
        codec.durations[b"short"] = 4.0
        timeline = make_timeline(video=[(0, 5)])

        with pytest.raises(ClipWindowOutOfRangeError) as exc_info:
            await Preprocessor(store, codec).resolve_all(timeline, SETTINGS)

        assert exc_info.value.location.clip_id == "video-0"
        assert "5.000s" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_window_within_probe_rounding_accepted(self, codec):
        store = FakeSourceStore(sources={"video_0.mp4": b"exact"})
        codec.durations[b"exact"] = 4.9995
        timeline = make_timeline(video=[(0, 5)])

        inputs = await Preprocessor(store, codec).resolve_all(timeline, SETTINGS)
        assert len(inputs) == 1

    @pytest.mark.asyncio
    async def test_still_images_have_no_window_limit(self, source_store, codec):
        timeline = make_timeline(video=[(0, 1)], image=[(0, 10_000)])
        inputs = await Preprocessor(source_store, codec).resolve_all(timeline, SETTINGS)
        assert inputs[-1].is_still

    @pytest.mark.asyncio
    async def test_codec_format_error_gets_clip_context(self, source_store):
        class RejectingCodec(FakeCodec):
            def compress(self, data, quality, *, kind):
                raise UnsupportedFormatError(kind=kind.value, source_ref="<decoded source>")

        timeline = make_timeline(audio=[(0, 1)])
        with pytest.raises(UnsupportedFormatError) as exc_info:
            await Preprocessor(source_store, RejectingCodec()).resolve_all(timeline, SETTINGS)

        assert exc_info.value.location.clip_id == "audio-0"
        assert "audio_0.mp3" in exc_info.value.message
