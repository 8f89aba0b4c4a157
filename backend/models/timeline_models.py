"""
Pydantic models for the in-memory multitrack timeline.

This module defines the structural data the timeline engine manipulates:
- Tracks (video / audio / subtitle lanes) holding placed items
- Items: time-bounded references to external media plus a 2D transform
- Edit operations recorded by the operation log for undo/redo
- Keyframes and exported timeline snapshots

Time is measured in integer frames. An item occupies the half-open
interval [start_frame, start_frame + duration_frames).
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def generate_id(prefix: str = "") -> str:
    """Return a fresh opaque identifier."""
    return f"{prefix}{uuid4().hex[:16]}"


class CamelModel(BaseModel):
    """snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# ENUMS
# =============================================================================


class TrackKind(str, Enum):
    """Type of track content."""
    VIDEO = "video"
    AUDIO = "audio"
    SUBTITLE = "subtitle"


class MediaKind(str, Enum):
    """Type of media an item references."""
    VIDEO = "video"
    AUDIO = "audio"
    IMAGE = "image"
    TEXT = "text"


class OperationKind(str, Enum):
    """Item-level mutations recorded in the operation log."""
    ADD = "add"
    MOVE = "move"
    TRIM = "trim"
    SPLIT = "split"
    DELETE = "delete"


class Easing(str, Enum):
    """Interpolation curves for keyframes."""
    LINEAR = "linear"
    EASE_IN = "ease-in"
    EASE_OUT = "ease-out"
    EASE_IN_OUT = "ease-in-out"


# =============================================================================
# TIMELINE ITEMS
# =============================================================================


class TimelineItem(CamelModel):
    """
    A placed, time-bounded reference to external media.

    The item never carries media bytes; `src` is an opaque URL or handle
    resolved by the front-end.
    """
    item_id: str = Field(default_factory=lambda: generate_id("item_"))
    kind: MediaKind = Field(description="Media type of the referenced source")
    src: str = Field(description="Opaque source reference (URL or handle)")
    name: str = Field(default="", description="Display name")
    start_frame: int = Field(default=0, ge=0, description="First occupied frame")
    duration_frames: int = Field(ge=1, description="Number of occupied frames")

    x: float = 0
    y: float = 0
    width: float = 1280
    height: float = 720
    opacity: float | None = Field(default=None, ge=0, le=1)
    scale: float | None = None
    rotation: float | None = Field(default=None, description="Rotation in degrees")

    text: str | None = Field(default=None, description="Text content for text items")
    style: dict[str, Any] = Field(default_factory=dict)
    effects: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def end_frame(self) -> int:
        """Exclusive end of the occupied interval."""
        return self.start_frame + self.duration_frames

    def occupies(self, frame: int) -> bool:
        """Check if a frame falls within this item."""
        return self.start_frame <= frame < self.end_frame

    def overlaps(self, other: TimelineItem) -> bool:
        """Check if the occupied intervals properly intersect."""
        return not (
            self.end_frame <= other.start_frame
            or self.start_frame >= other.end_frame
        )


class Track(CamelModel):
    """
    A named, typed lane of items.

    Items are kept in insertion order; their position on the timeline is
    given by each item's start frame, not by list order.
    """
    track_id: str = Field(default_factory=lambda: generate_id("track_"))
    name: str = Field(default="", description="Track name")
    kind: TrackKind = Field(default=TrackKind.VIDEO)
    items: list[TimelineItem] = Field(default_factory=list)
    locked: bool = Field(default=False, description="Blocks item mutations when set")
    visible: bool = Field(default=True)
    volume: float | None = Field(default=None, description="Audio tracks only")

    def index_of(self, item_id: str) -> int:
        """Position of an item in the track, or -1."""
        for index, item in enumerate(self.items):
            if item.item_id == item_id:
                return index
        return -1

    def get_item(self, item_id: str) -> TimelineItem | None:
        index = self.index_of(item_id)
        return self.items[index] if index >= 0 else None

    def end_frame(self) -> int:
        """Latest exclusive end over the track's items (0 when empty)."""
        return max((item.end_frame for item in self.items), default=0)


# =============================================================================
# EDIT HISTORY
# =============================================================================


class OverlapAdjustment(CamelModel):
    """A change overlap resolution applied to a neighbouring item."""
    item_id: str
    old_start: int
    old_duration: int
    new_start: int
    new_duration: int


class EditOperation(CamelModel):
    """
    A single logged mutation.

    `parameters` carries the kind-specific payload needed to invert and
    replay the mutation, e.g. old/new start frame, old/new duration, split
    point, or the full state of a removed item.
    """
    operation_id: str = Field(default_factory=lambda: generate_id("op_"))
    kind: OperationKind
    track_id: str
    item_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    parameters: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# KEYFRAMES
# =============================================================================


class Keyframe(CamelModel):
    """An animated property value at a frame."""
    frame: int = Field(ge=0)
    property: str
    value: float | str
    easing: Easing = Easing.LINEAR


# =============================================================================
# SNAPSHOTS
# =============================================================================


class TimelineSnapshot(CamelModel):
    """Serializable export of a whole timeline."""
    tracks: list[Track] = Field(default_factory=list)
    current_frame: int = 0
    total_duration: int = 0
    fps: float = 30.0
    keyframes: dict[str, list[Keyframe]] = Field(
        default_factory=dict, description="Keyframes keyed by item id"
    )
