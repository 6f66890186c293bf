"""Tests for the export pipeline.

Runs complete exports against in-memory collaborators and checks:
- One engine invocation per export with the compiled graph
- Progress reporting (monotonic, ends at 100, reset on failure)
- Mutual exclusion of concurrent exports
- Cancellation before the engine starts
"""

import asyncio
import re

import pytest

from boba_export.exceptions import (
    EmptyTimelineError,
    EngineExecutionFailedError,
    EngineNotReadyError,
    ExportInProgressError,
    InvalidTimelineError,
    SourceUnavailableError,
)
from boba_export.render.filter_graph import compile_filter_graph
from boba_export.render.inputs import plan_inputs
from boba_export.render.pipeline import TimelineExporter, generate_output_filename
from boba_export.render.preprocessor import Preprocessor
from boba_export.schemas.export import ExportFormat, ExportQuality, ExportResolution, ExportSettings
from boba_export.schemas.timeline import Timeline
from tests.factories import FakeEngine, make_timeline

FILENAME_RE = re.compile(r"^boba_export_[0-9a-f]{32}\.mp4$")


async def wait_for(predicate, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


class TestGenerateOutputFilename:
    def test_prefix_token_extension(self):
        assert FILENAME_RE.match(generate_output_filename("mp4"))

    def test_unique(self):
        names = {generate_output_filename("webm") for _ in range(100)}
        assert len(names) == 100

    def test_custom_prefix(self):
        assert generate_output_filename("mov", prefix="clip").startswith("clip_")


class TestExportTimeline:
    """End-to-end exports with fakes."""

    @pytest.mark.asyncio
    async def test_scenario_a_exports_once(self, exporter, engine, delivery, scenario_a):
        filename = await exporter.export_timeline(scenario_a, ExportSettings())

        assert FILENAME_RE.match(filename)
        assert len(engine.runs) == 1
        assert delivery.delivered == [(b"rendered", filename, "video/mp4")]

        run = engine.runs[0]
        expected = compile_filter_graph(scenario_a, plan_inputs(scenario_a), (1920, 1080))
        assert run["graph_description"] == expected.to_filter_complex()
        assert run["output_mapping"] == ["-map", "[outv]", "-map", "[outa]"]
        assert [i.input_index for i in run["inputs"]] == [0, 1, 2]
        assert run["duration_s"] == 12.0

    @pytest.mark.asyncio
    async def test_settings_flow_into_engine(self, exporter, engine, delivery, scenario_b):
        settings = ExportSettings(
            format=ExportFormat.WEBM,
            quality=ExportQuality.LOW,
            resolution=ExportResolution.SD_480P,
        )
        filename = await exporter.export_timeline(scenario_b, settings)

        params = engine.runs[0]["encoder_params"]
        assert params.codec == "libvpx-vp9"
        assert params.pixel_dimensions == (854, 480)
        assert filename.endswith(".webm")
        assert delivery.delivered[0][2] == "video/webm"
        assert engine.runs[0]["output_mapping"] == ["-map", "[ov1]"]
        # Video is letterboxed into the 480p export frame
        assert "scale=854:480:force_original_aspect_ratio=decrease" in engine.runs[0]["graph_description"]

    @pytest.mark.asyncio
    async def test_successive_exports_get_distinct_names(self, exporter, scenario_a):
        first = await exporter.export_timeline(scenario_a, ExportSettings())
        second = await exporter.export_timeline(scenario_a, ExportSettings())
        assert first != second

    @pytest.mark.asyncio
    async def test_empty_timeline_rejected(self, exporter, engine, delivery):
        with pytest.raises(EmptyTimelineError):
            await exporter.export_timeline(Timeline(), ExportSettings())
        assert engine.runs == []
        assert delivery.delivered == []

    @pytest.mark.asyncio
    async def test_images_without_video_rejected_before_fetch(
        self, exporter, source_store, codec, engine, progress_log
    ):
        timeline = make_timeline(audio=[(0, 5)], image=[(0, 1), (0, 2)])

        with pytest.raises(InvalidTimelineError):
            await exporter.export_timeline(timeline, ExportSettings())

        assert source_store.requested == []
        assert codec.calls == []
        assert engine.runs == []
        assert progress_log == [0]


class TestProgress:
    """Progress reporting."""

    @pytest.mark.asyncio
    async def test_progress_monotonic_and_complete(self, exporter, progress_log, scenario_a):
        await exporter.export_timeline(scenario_a, ExportSettings())

        assert progress_log
        assert progress_log == sorted(progress_log)
        assert all(0 <= p <= 100 for p in progress_log)
        assert progress_log[-1] == 100
        assert exporter.progress == 100

    @pytest.mark.asyncio
    async def test_engine_progress_mapped_into_encode_span(self, exporter, progress_log, scenario_a):
        await exporter.export_timeline(scenario_a, ExportSettings())
        assert progress_log == [5, 35, 40, 45, 67, 89, 95, 100]

    @pytest.mark.asyncio
    async def test_failure_resets_progress(self, exporter, engine, delivery, progress_log, scenario_a):
        engine.fail_with = "Invalid filtergraph"

        with pytest.raises(EngineExecutionFailedError) as exc_info:
            await exporter.export_timeline(scenario_a, ExportSettings())

        assert exc_info.value.details == {"diagnostic": "Invalid filtergraph"}
        assert progress_log[-1] == 0
        assert exporter.progress == 0
        assert delivery.delivered == []
        assert not exporter.is_exporting


class TestFailures:
    """Error propagation."""

    @pytest.mark.asyncio
    async def test_preprocess_failure_skips_compile_and_engine(
        self, exporter, source_store, engine, delivery, scenario_a, monkeypatch
    ):
        compiled = []
        monkeypatch.setattr(
            "boba_export.render.pipeline.compile_filter_graph",
            lambda *args: compiled.append(args),
        )
        source_store.missing.add("video_1.mp4")

        with pytest.raises(SourceUnavailableError):
            await exporter.export_timeline(scenario_a, ExportSettings())

        assert compiled == []
        assert engine.runs == []
        assert delivery.delivered == []

    @pytest.mark.asyncio
    async def test_engine_not_ready(self, source_store, codec, delivery, scenario_a):
        engine = FakeEngine(ready=False)
        exporter = TimelineExporter(Preprocessor(source_store, codec), engine, delivery)

        with pytest.raises(EngineNotReadyError):
            await exporter.export_timeline(scenario_a, ExportSettings())
        assert source_store.requested == []

    @pytest.mark.asyncio
    async def test_load_engine_then_export(self, source_store, codec, delivery, scenario_a):
        engine = FakeEngine(ready=False)
        exporter = TimelineExporter(Preprocessor(source_store, codec), engine, delivery)

        await exporter.load_engine()
        await exporter.load_engine()
        await exporter.export_timeline(scenario_a, ExportSettings())

        assert engine.load_calls == 1
        assert len(delivery.delivered) == 1

    @pytest.mark.asyncio
    async def test_export_after_failure_succeeds(self, exporter, engine, delivery, scenario_a):
        engine.fail_with = "boom"
        with pytest.raises(EngineExecutionFailedError):
            await exporter.export_timeline(scenario_a, ExportSettings())

        engine.fail_with = None
        filename = await exporter.export_timeline(scenario_a, ExportSettings())
        assert delivery.delivered[-1][1] == filename


class TestConcurrency:
    """Exclusive use of the engine."""

    @pytest.mark.asyncio
    async def test_second_export_rejected_while_running(self, exporter, engine, delivery, scenario_a):
        engine.gate = asyncio.Event()
        first = asyncio.create_task(exporter.export_timeline(scenario_a, ExportSettings()))
        await engine.started.wait()

        assert exporter.is_exporting
        with pytest.raises(ExportInProgressError):
            await exporter.export_timeline(scenario_a, ExportSettings())

        engine.gate.set()
        await first
        assert len(engine.runs) == 1
        assert len(delivery.delivered) == 1
        assert not exporter.is_exporting


class TestCancel:
    """Cancellation before the engine starts."""

    @pytest.mark.asyncio
    async def test_cancel_during_preprocessing(self, exporter, source_store, engine, delivery, scenario_a):
        gate = asyncio.Event()
        source_store.gates["video_0.mp4"] = gate
        task = asyncio.create_task(exporter.export_timeline(scenario_a, ExportSettings()))
        await wait_for(lambda: "video_0.mp4" in source_store.requested)

        assert exporter.cancel() is True
        gate.set()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert engine.runs == []
        assert delivery.delivered == []
        assert exporter.progress == 0
        assert not exporter.is_exporting

    @pytest.mark.asyncio
    async def test_cancel_ignored_once_engine_started(self, exporter, engine, delivery, scenario_a):
        engine.gate = asyncio.Event()
        task = asyncio.create_task(exporter.export_timeline(scenario_a, ExportSettings()))
        await engine.started.wait()

        assert exporter.cancel() is False
        engine.gate.set()
        await task
        assert len(delivery.delivered) == 1

    def test_cancel_without_export(self, exporter):
        assert exporter.cancel() is False
