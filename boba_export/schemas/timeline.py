from collections.abc import Iterator
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from boba_export.utils.timefmt import parse_duration


class TrackKind(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    IMAGE = "image"


# Fixed order used for input numbering and graph construction
TRACK_ORDER: tuple[TrackKind, ...] = (TrackKind.VIDEO, TrackKind.AUDIO, TrackKind.IMAGE)


class Clip(BaseModel):
    """One placed media fragment with a trim window (seconds)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    source_ref: str = Field(min_length=1)
    start_time: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    duration: float = Field(gt=0, allow_inf_nan=False)

    @field_validator("start_time", "duration", mode="before")
    @classmethod
    def _parse_time_string(cls, v: object) -> object:
        # The editor sends either seconds or "HH:MM:SS" strings
        if isinstance(v, str):
            try:
                return float(v)
            except ValueError:
                return parse_duration(v)
        return v

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration


class Track(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: TrackKind
    clips: tuple[Clip, ...] = ()

    @model_validator(mode="after")
    def _unique_clip_ids(self) -> "Track":
        seen: set[str] = set()
        for clip in self.clips:
            if clip.id in seen:
                raise ValueError(f"Duplicate clip id in {self.kind.value} track: {clip.id}")
            seen.add(clip.id)
        return self

    @property
    def is_empty(self) -> bool:
        return not self.clips

    @property
    def duration(self) -> float:
        """Playback length of the track when its clips are played back to back."""
        return sum(clip.duration for clip in self.clips)


class Timeline(BaseModel):
    """The three tracks of a project; the unit of compilation."""

    model_config = ConfigDict(frozen=True)

    video: Track = Field(default_factory=lambda: Track(kind=TrackKind.VIDEO))
    audio: Track = Field(default_factory=lambda: Track(kind=TrackKind.AUDIO))
    image: Track = Field(default_factory=lambda: Track(kind=TrackKind.IMAGE))

    @model_validator(mode="after")
    def _track_kinds_match_slots(self) -> "Timeline":
        for kind in TRACK_ORDER:
            track = getattr(self, kind.value)
            if track.kind != kind:
                raise ValueError(f"{track.kind.value} track placed in the {kind.value} slot")
        return self

    def track(self, kind: TrackKind) -> Track:
        return getattr(self, kind.value)

    def tracks(self) -> Iterator[Track]:
        for kind in TRACK_ORDER:
            yield self.track(kind)

    @property
    def is_empty(self) -> bool:
        return all(track.is_empty for track in self.tracks())

    @property
    def clip_count(self) -> int:
        return sum(len(track.clips) for track in self.tracks())

    @property
    def total_duration(self) -> float:
        return max(self.video.duration, self.audio.duration)
