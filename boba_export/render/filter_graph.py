"""
Timeline to filter graph compiler.

Builds the FFmpeg processing graph for one export in four strict phases:
1. Trim    - one node per clip, cutting its window out of the source stream
2. Combine - one concat node per non-empty video/audio track
3. Overlay - image clips chained on top of the combined video
4. Merge   - visual and audio outputs joined into the final output

A node may only consume labels produced before it. Labels are derived from
(track kind, position in track) alone, so compiling the same timeline twice
gives identical graphs.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, Union

from boba_export.exceptions import EmptyTimelineError, InvalidTimelineError
from boba_export.schemas.timeline import TRACK_ORDER, Timeline, TrackKind

logger = logging.getLogger(__name__)


class NodeKind(str, Enum):
    TRIM = "trim"
    CONCAT = "concat"
    OVERLAY = "overlay"
    MERGE = "merge"


# Phase number of each node kind
PHASES: dict[NodeKind, int] = {
    NodeKind.TRIM: 1,
    NodeKind.CONCAT: 2,
    NodeKind.OVERLAY: 3,
    NodeKind.MERGE: 4,
}


class StreamType(str, Enum):
    VIDEO = "v"
    AUDIO = "a"


# Image clips are decoded as (looped) video frames
TRACK_STREAMS: dict[TrackKind, StreamType] = {
    TrackKind.VIDEO: StreamType.VIDEO,
    TrackKind.AUDIO: StreamType.AUDIO,
    TrackKind.IMAGE: StreamType.VIDEO,
}

MERGE_LABEL = "out"


def trim_label(kind: TrackKind, position: int) -> str:
    prefix = {TrackKind.VIDEO: "v", TrackKind.AUDIO: "a", TrackKind.IMAGE: "img"}[kind]
    return f"{prefix}{position}"


def combine_label(kind: TrackKind) -> str:
    if kind == TrackKind.IMAGE:
        raise ValueError("Image tracks are overlaid, not combined")
    return f"out{TRACK_STREAMS[kind].value}"


def overlay_label(position: int) -> str:
    return f"ov{position}"


@dataclass(frozen=True)
class InputStream:
    """A stream of one of the engine's raw inputs, e.g. ``0:v``."""

    input_index: int
    stream: StreamType

    def ref(self) -> str:
        return f"{self.input_index}:{self.stream.value}"


NodeInput = Union[InputStream, str]


def _fmt_seconds(value: float) -> str:
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return text or "0"


@dataclass(frozen=True)
class FilterNode:
    """One operation of the graph and its output label."""

    label: str
    kind: NodeKind
    stream: StreamType
    inputs: tuple[NodeInput, ...]
    params: dict[str, Any] = field(default_factory=dict)

    @property
    def phase(self) -> int:
        return PHASES[self.kind]

    @property
    def input_labels(self) -> list[str]:
        return [i for i in self.inputs if isinstance(i, str)]

    def _pads(self) -> str:
        return "".join(f"[{i.ref()}]" if isinstance(i, InputStream) else f"[{i}]" for i in self.inputs)

    def render(self) -> str | None:
        """Render as an FFmpeg filter chain. Merge nodes render as nothing (they are muxing)."""
        if self.kind == NodeKind.TRIM:
            start = _fmt_seconds(self.params["start"])
            duration = _fmt_seconds(self.params["duration"])
            if self.stream == StreamType.AUDIO:
                chain = f"atrim=start={start}:duration={duration},asetpts=PTS-STARTPTS"
            else:
                chain = f"trim=start={start}:duration={duration},setpts=PTS-STARTPTS"
            if "width" in self.params:
                # Letterbox into the export frame; concat needs equal size and SAR
                w, h = self.params["width"], self.params["height"]
                chain += (
                    f",scale={w}:{h}:force_original_aspect_ratio=decrease"
                    f",pad={w}:{h}:(ow-iw)/2:(oh-ih)/2,setsar=1"
                )
        elif self.kind == NodeKind.CONCAT:
            n = self.params["n"]
            if self.stream == StreamType.AUDIO:
                chain = f"concat=n={n}:v=0:a=1"
            else:
                chain = f"concat=n={n}:v=1:a=0"
        elif self.kind == NodeKind.OVERLAY:
            # Keep showing the video after the image ends
            chain = "overlay=eof_action=pass"
        else:
            return None
        return f"{self._pads()}{chain}[{self.label}]"


@dataclass(frozen=True)
class FilterGraph:
    """Compiled processing graph for one export."""

    nodes: tuple[FilterNode, ...]
    final_label: str

    def labels(self) -> list[str]:
        return [n.label for n in self.nodes]

    def node(self, label: str) -> FilterNode:
        for n in self.nodes:
            if n.label == label:
                return n
        raise KeyError(label)

    def nodes_by_kind(self, kind: NodeKind) -> list[FilterNode]:
        return [n for n in self.nodes if n.kind == kind]

    @property
    def final_node(self) -> FilterNode:
        return self.node(self.final_label)

    def validate(self) -> None:
        """Check ordering, uniqueness and single consumption of every label.

        Raises:
            InvalidTimelineError: If the graph is malformed
        """
        produced: dict[str, FilterNode] = {}
        open_labels: set[str] = set()
        for n in self.nodes:
            if n.label in produced:
                raise InvalidTimelineError(f"Duplicate graph label: {n.label}")
            for label in n.input_labels:
                source = produced.get(label)
                if source is None:
                    raise InvalidTimelineError(
                        f"Node {n.label} consumes {label} before it is produced"
                    )
                if label not in open_labels:
                    raise InvalidTimelineError(f"Label {label} consumed more than once")
                if source.phase > n.phase:
                    raise InvalidTimelineError(
                        f"Node {n.label} (phase {n.phase}) consumes later-phase label {label}"
                    )
                open_labels.discard(label)
            produced[n.label] = n
            open_labels.add(n.label)

        if open_labels != {self.final_label}:
            raise InvalidTimelineError(
                f"Graph must end in exactly one open output {self.final_label}, "
                f"found {sorted(open_labels)}"
            )

    def to_filter_complex(self) -> str:
        """Filter graph description for ``-filter_complex``."""
        return ";".join(chain for chain in (n.render() for n in self.nodes) if chain)

    def output_mapping(self) -> list[str]:
        """``-map`` arguments selecting the streams of the final output."""
        final = self.final_node
        if final.kind == NodeKind.MERGE:
            labels = final.input_labels
        else:
            labels = [final.label]
        args: list[str] = []
        for label in labels:
            args.extend(["-map", f"[{label}]"])
        return args


class _ResolvedStream(Protocol):
    kind: TrackKind
    position: int

    @property
    def stream_index(self) -> int: ...


def check_timeline(timeline: Timeline) -> None:
    """Reject timelines that cannot be compiled, before any source is touched.

    Raises:
        EmptyTimelineError: If all three tracks are empty
        InvalidTimelineError: If images have no video to be overlaid onto
    """
    if timeline.is_empty:
        raise EmptyTimelineError()
    if timeline.video.is_empty and not timeline.image.is_empty:
        raise InvalidTimelineError(
            "Image clips need at least one video clip to be overlaid onto"
        )


def compile_filter_graph(
    timeline: Timeline,
    inputs: Sequence[_ResolvedStream],
    frame_size: tuple[int, int],
) -> FilterGraph:
    """Compile a timeline into a filter graph.

    Args:
        timeline: Timeline to render
        inputs: Resolved engine inputs (``InputSlot`` or ``ResolvedInput``), one per clip
        frame_size: Export frame (width, height) every video clip is fitted into
        frame_size: Export frame (width, height) every video clip is fitted into

    Returns:
        Validated FilterGraph

    Raises:
        EmptyTimelineError: If all three tracks are empty
        InvalidTimelineError: If a clip has no resolved input, or images have no video to overlay
    """
    check_timeline(timeline)
    width, height = frame_size

    streams = {(i.kind, i.position): i.stream_index for i in inputs}
    nodes: list[FilterNode] = []

    # Phase 1: trim
    trims: dict[TrackKind, list[str]] = {}
    for kind in TRACK_ORDER:
        labels: list[str] = []
        for position, clip in enumerate(timeline.track(kind).clips):
            try:
                stream_index = streams[(kind, position)]
            except KeyError:
                raise InvalidTimelineError(
                    f"No resolved input for {kind.value} clip {clip.id}"
                ) from None
            label = trim_label(kind, position)
            params: dict[str, Any] = {"start": clip.start_time, "duration": clip.duration}
            if kind == TrackKind.VIDEO:
                params.update(width=width, height=height)
            nodes.append(
                FilterNode(
                    label=label,
                    kind=NodeKind.TRIM,
                    stream=TRACK_STREAMS[kind],
                    inputs=(InputStream(stream_index, TRACK_STREAMS[kind]),),
                    params=params,
                )
            )
            labels.append(label)
        trims[kind] = labels

    # Phase 2: combine (single-clip tracks still get a concat node)
    combined: dict[TrackKind, str] = {}
    for kind in (TrackKind.VIDEO, TrackKind.AUDIO):
        if not trims[kind]:
            continue
        label = combine_label(kind)
        nodes.append(
            FilterNode(
                label=label,
                kind=NodeKind.CONCAT,
                stream=TRACK_STREAMS[kind],
                inputs=tuple(trims[kind]),
                params={"n": len(trims[kind])},
            )
        )
        combined[kind] = label

    # Phase 3: overlay
    visual = combined.get(TrackKind.VIDEO)
    for position, image in enumerate(trims[TrackKind.IMAGE]):
        label = overlay_label(position)
        nodes.append(
            FilterNode(
                label=label,
                kind=NodeKind.OVERLAY,
                stream=StreamType.VIDEO,
                inputs=(visual, image),
            )
        )
        visual = label

    # Phase 4: merge
    audio = combined.get(TrackKind.AUDIO)
    if visual is not None and audio is not None:
        nodes.append(
            FilterNode(
                label=MERGE_LABEL,
                kind=NodeKind.MERGE,
                stream=StreamType.VIDEO,
                inputs=(visual, audio),
            )
        )
        final_label = MERGE_LABEL
    else:
        final_label = visual if visual is not None else audio

    graph = FilterGraph(nodes=tuple(nodes), final_label=final_label)
    graph.validate()
    logger.info(
        f"[GRAPH] Compiled {len(nodes)} nodes "
        f"(video={len(trims[TrackKind.VIDEO])}, audio={len(trims[TrackKind.AUDIO])}, "
        f"image={len(trims[TrackKind.IMAGE])}), final=[{final_label}]"
    )
    return graph
