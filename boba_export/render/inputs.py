"""Engine input slots.

The engine receives one ordered input list: every video clip in track order,
then every audio clip, then every image clip. A clip's slot is a pure function
of its track kind and position, so the same timeline always numbers its inputs
the same way.
"""

from dataclasses import dataclass, field

from boba_export.constants.formats import ENGINE_INPUT_EXTENSIONS
from boba_export.schemas.timeline import TRACK_ORDER, Clip, Timeline, TrackKind

_FILENAME_PREFIX: dict[TrackKind, str] = {
    TrackKind.VIDEO: "video",
    TrackKind.AUDIO: "audio",
    TrackKind.IMAGE: "image",
}


@dataclass(frozen=True)
class InputSlot:
    """Position of one clip in the engine input list."""

    kind: TrackKind
    position: int
    clip: Clip
    input_index: int

    @property
    def stream_index(self) -> int:
        # Each engine input carries exactly the one stream the clip uses
        return self.input_index

    @property
    def filename(self) -> str:
        return f"{_FILENAME_PREFIX[self.kind]}_{self.position}.{ENGINE_INPUT_EXTENSIONS[self.kind]}"


@dataclass(frozen=True)
class ResolvedInput:
    """A preprocessed clip ready to be handed to the engine."""

    kind: TrackKind
    position: int
    clip_id: str
    input_index: int
    filename: str
    data: bytes = field(repr=False)

    @property
    def stream_index(self) -> int:
        return self.input_index

    @property
    def is_still(self) -> bool:
        return self.kind == TrackKind.IMAGE


def plan_inputs(timeline: Timeline) -> list[InputSlot]:
    """Assign every clip its engine input index."""
    slots: list[InputSlot] = []
    for kind in TRACK_ORDER:
        for position, clip in enumerate(timeline.track(kind).clips):
            slots.append(InputSlot(kind=kind, position=position, clip=clip, input_index=len(slots)))
    return slots
