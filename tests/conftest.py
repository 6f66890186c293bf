"""
Pytest fixtures for boba_export tests.

Most tests run against the in-memory fakes in ``tests.factories`` (source
store, preprocessing codec, transcoding engine, delivery sink). Tests that
need the real ffmpeg/ffprobe binaries are marked with ``requires_ffmpeg`` and
are skipped when the binaries are not installed.
"""

import pytest

from boba_export.render.pipeline import TimelineExporter
from boba_export.render.preprocessor import Preprocessor
from boba_export.schemas.timeline import Timeline
from tests.factories import (
    FakeCodec,
    FakeEngine,
    FakeSourceStore,
    RecordingDelivery,
    make_timeline,
)


@pytest.fixture
def source_store() -> FakeSourceStore:
    return FakeSourceStore()


@pytest.fixture
def codec() -> FakeCodec:
    return FakeCodec()


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def delivery() -> RecordingDelivery:
    return RecordingDelivery()


@pytest.fixture
def progress_log() -> list[int]:
    return []


@pytest.fixture
def exporter(source_store, codec, engine, delivery, progress_log) -> TimelineExporter:
    return TimelineExporter(
        preprocessor=Preprocessor(source_store, codec, max_concurrency=2),
        engine=engine,
        delivery=delivery,
        progress=progress_log.append,
    )


@pytest.fixture
def scenario_a() -> Timeline:
    """2 video clips (0-5s, 5-12s), 1 audio clip (0-12s), no images."""
    return make_timeline(video=[(0, 5), (5, 7)], audio=[(0, 12)])


@pytest.fixture
def scenario_b() -> Timeline:
    """1 video clip, no audio, 2 image clips."""
    return make_timeline(video=[(0, 10)], image=[(0, 3), (0, 4)])
