"""
Timeline Operator - the public mutation and query surface of a timeline.

The engine composes three parts:
- TrackStore: the tracks and their items
- resolve_overlaps: keeps items of a track from overlapping on insert/move
- OperationLog: records every item mutation for undo/redo

Every public mutation returns True/False instead of raising on expected
failure modes (missing track or item, locked track, invalid range). The
reason for the most recent failure is kept in `last_error` and
`last_error_code`. The `*_or_raise` variants raise the underlying
TimelineError and are used where the caller wants the exception.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, TypeVar

from models.timeline_models import (
    EditOperation,
    OperationKind,
    TimelineItem,
    TimelineSnapshot,
    Track,
    TrackKind,
    generate_id,
)
from operators.operation_log import OperationLog, apply_forward, apply_inverse
from operators.overlap_resolver import find_overlaps, resolve_overlaps
from operators.timeline_errors import (
    InvalidRangeError,
    ItemNotFoundError,
    TimelineError,
    TrackLockedError,
    TrackNotFoundError,
)
from operators.track_store import TrackStore

logger = logging.getLogger(__name__)

__all__ = [
    "TimelineEngine",
    "TimelineError",
    "TrackNotFoundError",
    "ItemNotFoundError",
    "TrackLockedError",
    "InvalidRangeError",
]

DEFAULT_FPS = 30.0

# Fields edit.set_properties may change; timing goes through trim/move.
PROPERTY_FIELDS = frozenset(
    {"x", "y", "width", "height", "opacity", "scale", "rotation", "effects", "style", "name"}
)

F = TypeVar("F", bound=Callable[..., Any])


def _reports_failure(func: F) -> F:
    """Turn TimelineError into a False return and remember the reason."""

    @functools.wraps(func)
    def wrapper(self: TimelineEngine, *args, **kwargs):
        self.last_error = None
        self.last_error_code = None
        try:
            result = func(self, *args, **kwargs)
        except TimelineError as e:
            self.last_error = str(e)
            self.last_error_code = e.code
            logger.debug("%s rejected: %s", func.__name__, e)
            return False
        return True if result is None else result

    return wrapper  # type: ignore[return-value]


class TimelineEngine:
    """In-memory multitrack timeline with overlap resolution and undo/redo."""

    def __init__(self, fps: float = DEFAULT_FPS, history: OperationLog | None = None):
        self.fps = fps
        self.store = TrackStore()
        self.history = history or OperationLog()
        self.current_frame = 0
        self.last_error: str | None = None
        self.last_error_code: str | None = None

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def get_tracks(self) -> list[Track]:
        return self.store.tracks()

    def get_track(self, track_id: str) -> Track | None:
        return self.store.get(track_id)

    def find_track_by_name(self, fragment: str) -> Track | None:
        """First track whose name contains `fragment`."""
        for track in self.store.tracks():
            if fragment in track.name:
                return track
        return None

    def find_item(self, item_id: str) -> tuple[Track, TimelineItem] | None:
        """Locate an item in any track."""
        for track, item in self.store.iter_items():
            if item.item_id == item_id:
                return track, item
        return None

    def _require_track(self, track_id: str) -> Track:
        track = self.store.get(track_id)
        if track is None:
            raise TrackNotFoundError(track_id)
        return track

    def _editable_track(self, track_id: str) -> Track:
        track = self._require_track(track_id)
        if track.locked:
            raise TrackLockedError(track_id)
        return track

    @staticmethod
    def _require_item(track: Track, item_id: str) -> TimelineItem:
        item = track.get_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id, track.track_id)
        return item

    def _record(
        self,
        kind: OperationKind,
        track_id: str,
        item_id: str,
        parameters: dict[str, Any],
    ) -> EditOperation:
        operation = EditOperation(
            kind=kind,
            track_id=track_id,
            item_id=item_id,
            parameters=parameters,
        )
        self.history.record(operation)
        return operation

    # =========================================================================
    # TRACK OPERATIONS
    # =========================================================================

    def create_track(self, name: str, kind: TrackKind = TrackKind.VIDEO) -> Track:
        track = self.store.add_track(name, TrackKind(kind))
        logger.debug("Created %s track '%s' (%s)", track.kind.value, name, track.track_id)
        return track

    @_reports_failure
    def delete_track(self, track_id: str) -> bool:
        self._require_track(track_id)
        self.store.remove_track(track_id)
        self._clamp_current_frame()
        return True

    @_reports_failure
    def set_track_state(
        self,
        track_id: str,
        locked: bool | None = None,
        visible: bool | None = None,
        volume: float | None = None,
    ) -> bool:
        track = self._require_track(track_id)
        if volume is not None and track.kind != TrackKind.AUDIO:
            raise InvalidRangeError("Volume applies to audio tracks only")
        if locked is not None:
            track.locked = locked
        if visible is not None:
            track.visible = visible
        if volume is not None:
            track.volume = max(0.0, volume)
        return True

    # =========================================================================
    # ITEM OPERATIONS
    # =========================================================================

    def add_item_or_raise(
        self,
        track_id: str,
        item: TimelineItem,
        insert_frame: int | None = None,
    ) -> None:
        track = self._editable_track(track_id)
        if insert_frame is not None:
            if insert_frame < 0:
                raise InvalidRangeError(f"Insert frame {insert_frame} is negative")
            item.start_frame = insert_frame

        adjustments = resolve_overlaps(track.items, item)
        self.store.apply_adjustments(track, adjustments)
        index = self.store.insert_item(track, item)

        self._record(
            OperationKind.ADD,
            track_id,
            item.item_id,
            {
                "item": item.model_dump(mode="json"),
                "index": index,
                "adjustments": [a.model_dump() for a in adjustments],
            },
        )
        logger.debug(
            "Added item %s to track %s at frame %d (%d displaced)",
            item.item_id, track_id, item.start_frame, len(adjustments),
        )

    @_reports_failure
    def add_item(
        self,
        track_id: str,
        item: TimelineItem,
        insert_frame: int | None = None,
    ) -> bool:
        self.add_item_or_raise(track_id, item, insert_frame)
        return True

    def move_item_or_raise(
        self,
        track_id: str,
        item_id: str,
        new_start: int,
        new_track_id: str | None = None,
    ) -> None:
        source = self._editable_track(track_id)
        item = self._require_item(source, item_id)
        cross_track = new_track_id is not None and new_track_id != track_id
        destination = self._editable_track(new_track_id) if cross_track else source
        if new_start < 0:
            raise InvalidRangeError(f"Start frame {new_start} is negative")

        old_start = item.start_frame
        old_index = source.index_of(item_id)

        if cross_track:
            self.store.pop_item(source, item_id)
        item.start_frame = new_start
        adjustments = resolve_overlaps(destination.items, item)
        self.store.apply_adjustments(destination, adjustments)
        new_index = self.store.insert_item(destination, item) if cross_track else old_index

        self._record(
            OperationKind.MOVE,
            track_id,
            item_id,
            {
                "old_start": old_start,
                "new_start": new_start,
                "old_track_id": track_id,
                "new_track_id": destination.track_id,
                "old_index": old_index,
                "new_index": new_index,
                "adjustments": [a.model_dump() for a in adjustments],
            },
        )

    @_reports_failure
    def move_item(
        self,
        track_id: str,
        item_id: str,
        new_start: int,
        new_track_id: str | None = None,
    ) -> bool:
        self.move_item_or_raise(track_id, item_id, new_start, new_track_id)
        return True

    @_reports_failure
    def trim_item(
        self,
        track_id: str,
        item_id: str,
        new_start: int | None = None,
        new_end: int | None = None,
    ) -> bool:
        """
        Adjust an item's in and/or out point.

        Moving the in point shifts the start and shrinks (or grows) the
        duration by the same amount. Durations are clamped to one frame
        rather than rejected.
        """
        track = self._editable_track(track_id)
        item = self._require_item(track, item_id)
        if new_start is not None and new_start < 0:
            raise InvalidRangeError(f"Start frame {new_start} is negative")

        old_start = item.start_frame
        old_duration = item.duration_frames
        start = old_start
        duration = old_duration

        if new_start is not None:
            duration = max(1, duration - (new_start - start))
            start = new_start
        if new_end is not None:
            duration = max(1, new_end - start)

        item.start_frame = start
        item.duration_frames = duration

        self._record(
            OperationKind.TRIM,
            track_id,
            item_id,
            {
                "old_start": old_start,
                "old_duration": old_duration,
                "new_start": start,
                "new_duration": duration,
            },
        )
        return True

    def split_item_or_raise(self, track_id: str, item_id: str, split_frame: int) -> TimelineItem:
        track = self._editable_track(track_id)
        item = self._require_item(track, item_id)
        if split_frame <= item.start_frame or split_frame >= item.end_frame:
            raise InvalidRangeError(
                f"Split frame {split_frame} is outside item {item_id} "
                f"[{item.start_frame}, {item.end_frame})"
            )

        old_duration = item.duration_frames
        old_end = item.end_frame
        second = item.model_copy(
            deep=True,
            update={
                "item_id": generate_id("item_"),
                "start_frame": split_frame,
                "duration_frames": old_end - split_frame,
            },
        )
        item.duration_frames = split_frame - item.start_frame
        second_index = self.store.insert_item(track, second)

        self._record(
            OperationKind.SPLIT,
            track_id,
            item_id,
            {
                "split_frame": split_frame,
                "old_duration": old_duration,
                "second_item_id": second.item_id,
                "second_item": second.model_dump(mode="json"),
                "second_index": second_index,
            },
        )
        return second

    @_reports_failure
    def split_item(self, track_id: str, item_id: str, split_frame: int) -> bool:
        self.split_item_or_raise(track_id, item_id, split_frame)
        return True

    def remove_item_or_raise(self, track_id: str, item_id: str) -> TimelineItem:
        track = self._editable_track(track_id)
        self._require_item(track, item_id)
        index, removed = self.store.pop_item(track, item_id)
        self._clamp_current_frame()

        self._record(
            OperationKind.DELETE,
            track_id,
            item_id,
            {"item": removed.model_dump(mode="json"), "index": index},
        )
        return removed

    @_reports_failure
    def remove_item(self, track_id: str, item_id: str) -> bool:
        self.remove_item_or_raise(track_id, item_id)
        return True

    @_reports_failure
    def set_item_properties(self, track_id: str, item_id: str, **properties: Any) -> bool:
        """Update placement/transform fields of an item. Not logged."""
        track = self._editable_track(track_id)
        item = self._require_item(track, item_id)
        unknown = set(properties) - PROPERTY_FIELDS
        if unknown:
            raise InvalidRangeError(f"Unsupported properties: {sorted(unknown)}")
        opacity = properties.get("opacity")
        if opacity is not None and not 0 <= opacity <= 1:
            raise InvalidRangeError(f"Opacity {opacity} is outside [0, 1]")
        for name, value in properties.items():
            if value is not None:
                setattr(item, name, value)
        return True

    # =========================================================================
    # UNDO / REDO
    # =========================================================================

    def undo(self) -> bool:
        operation = self.history.pop_undo()
        if operation is None:
            return False
        try:
            apply_inverse(self.store, operation)
        except TrackLockedError as e:
            self.history.push_undo(operation)
            logger.info("Undo blocked: %s", e)
            return False
        except TimelineError as e:
            logger.warning("Discarding stale %s operation %s: %s",
                           operation.kind.value, operation.operation_id, e)
            return False
        self.history.push_redo(operation)
        self._clamp_current_frame()
        logger.debug("Undid %s on item %s", operation.kind.value, operation.item_id)
        return True

    def redo(self) -> bool:
        operation = self.history.pop_redo()
        if operation is None:
            return False
        try:
            apply_forward(self.store, operation)
        except TrackLockedError as e:
            self.history.push_redo(operation)
            logger.info("Redo blocked: %s", e)
            return False
        except TimelineError as e:
            logger.warning("Discarding stale %s operation %s: %s",
                           operation.kind.value, operation.operation_id, e)
            return False
        self.history.push_undo(operation)
        self._clamp_current_frame()
        return True

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_total_duration(self) -> int:
        """Latest exclusive end frame over all items (0 for an empty timeline)."""
        return max((track.end_frame() for track in self.store.tracks()), default=0)

    def get_active_items(self, at_frame: int | None = None) -> list[TimelineItem]:
        """Items in visible tracks that occupy the given (or current) frame."""
        frame = self.current_frame if at_frame is None else at_frame
        return [
            item
            for track, item in self.store.iter_items()
            if track.visible and item.occupies(frame)
        ]

    def set_current_frame(self, frame: int) -> int:
        self.current_frame = max(0, min(frame, self.get_total_duration()))
        return self.current_frame

    def _clamp_current_frame(self) -> None:
        self.current_frame = min(self.current_frame, self.get_total_duration())

    def find_overlaps(self) -> list[tuple[str, str, str]]:
        """Residual overlaps as (track_id, item_id, item_id)."""
        return [
            (track.track_id, first, second)
            for track in self.store.tracks()
            for first, second in find_overlaps(track.items)
        ]

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    def export_snapshot(self) -> TimelineSnapshot:
        return TimelineSnapshot(
            tracks=[track.model_copy(deep=True) for track in self.store.tracks()],
            current_frame=self.current_frame,
            total_duration=self.get_total_duration(),
            fps=self.fps,
        )

    def import_snapshot(self, snapshot: TimelineSnapshot) -> None:
        """Replace the whole timeline. History is cleared."""
        self.store.clear()
        for track in snapshot.tracks:
            self.store.put_track(track.model_copy(deep=True))
        self.fps = snapshot.fps
        self.history.clear()
        self.current_frame = 0
        self.set_current_frame(snapshot.current_frame)
        logger.info("Imported timeline with %d tracks", len(self.store))
