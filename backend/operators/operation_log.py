"""
Operation Log - linear undo/redo history of item-level mutations.

Each EditOperation records enough state to be inverted and replayed:

    kind     undo                                   redo
    -------  -------------------------------------  -----------------------------------
    add      remove item, revert displaced items    re-insert item, re-displace items
    move     return item to old track/start/index   apply new track/start/index
    trim     restore old start and duration         apply new start and duration
    split    drop second part, restore duration     truncate first part, re-add second
    delete   re-insert captured item at its index   remove item again

Replays restore recorded state rather than re-running overlap resolution,
so `op(); undo()` and `undo(); redo()` are exact.
"""

from __future__ import annotations

import logging
import os
from collections import deque

from models.timeline_models import (
    EditOperation,
    OperationKind,
    OverlapAdjustment,
    TimelineItem,
    Track,
)
from operators.timeline_errors import (
    ItemNotFoundError,
    TrackLockedError,
    TrackNotFoundError,
)
from operators.track_store import TrackStore

logger = logging.getLogger(__name__)

OPERATION_LOG_LIMIT = int(os.getenv("OPERATION_LOG_LIMIT", "100"))


class OperationLog:
    """Bounded undo stack plus redo stack."""

    def __init__(self, limit: int = OPERATION_LOG_LIMIT):
        self.limit = limit
        self._undo: deque[EditOperation] = deque(maxlen=limit)
        self._redo: list[EditOperation] = []

    def record(self, operation: EditOperation) -> None:
        """Append a new mutation; the oldest entry is evicted past the limit."""
        self._undo.append(operation)
        self._redo.clear()

    def pop_undo(self) -> EditOperation | None:
        return self._undo.pop() if self._undo else None

    def pop_redo(self) -> EditOperation | None:
        return self._redo.pop() if self._redo else None

    def push_undo(self, operation: EditOperation) -> None:
        self._undo.append(operation)

    def push_redo(self, operation: EditOperation) -> None:
        self._redo.append(operation)

    def entries(self) -> list[EditOperation]:
        """Undo history, oldest first."""
        return list(self._undo)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()


# =============================================================================
# REPLAY
# =============================================================================


def _editable_track(store: TrackStore, track_id: str) -> Track:
    track = store.get(track_id)
    if track is None:
        raise TrackNotFoundError(track_id)
    if track.locked:
        raise TrackLockedError(track_id)
    return track


def _require_item(track: Track, item_id: str) -> TimelineItem:
    item = track.get_item(item_id)
    if item is None:
        raise ItemNotFoundError(item_id, track.track_id)
    return item


def _adjustments(operation: EditOperation) -> list[OverlapAdjustment]:
    return [
        OverlapAdjustment.model_validate(data)
        for data in operation.parameters.get("adjustments", [])
    ]


def apply_inverse(store: TrackStore, operation: EditOperation) -> None:
    """
    Undo a logged operation against the store.

    All lookups and lock checks happen before anything is mutated.

    Raises:
        TrackNotFoundError / ItemNotFoundError: the entry refers to state
            that no longer exists
        TrackLockedError: a track the entry touches is locked
    """
    params = operation.parameters
    track = _editable_track(store, operation.track_id)

    if operation.kind == OperationKind.ADD:
        _require_item(track, operation.item_id)
        store.pop_item(track, operation.item_id)
        store.apply_adjustments(track, _adjustments(operation), revert=True)

    elif operation.kind == OperationKind.MOVE:
        source = _editable_track(store, params["old_track_id"])
        destination = _editable_track(store, params["new_track_id"])
        _require_item(destination, operation.item_id)
        _, item = store.pop_item(destination, operation.item_id)
        store.apply_adjustments(destination, _adjustments(operation), revert=True)
        item.start_frame = params["old_start"]
        store.insert_item(source, item, params["old_index"])

    elif operation.kind == OperationKind.TRIM:
        _require_item(track, operation.item_id)
        store.set_span(track, operation.item_id, params["old_start"], params["old_duration"])

    elif operation.kind == OperationKind.SPLIT:
        _require_item(track, operation.item_id)
        _require_item(track, params["second_item_id"])
        store.pop_item(track, params["second_item_id"])
        item = track.get_item(operation.item_id)
        item.duration_frames = params["old_duration"]

    elif operation.kind == OperationKind.DELETE:
        item = TimelineItem.model_validate(params["item"])
        store.insert_item(track, item, params["index"])


def apply_forward(store: TrackStore, operation: EditOperation) -> None:
    """Replay a previously undone operation. Raises like apply_inverse."""
    params = operation.parameters
    track = _editable_track(store, operation.track_id)

    if operation.kind == OperationKind.ADD:
        item = TimelineItem.model_validate(params["item"])
        store.insert_item(track, item, params["index"])
        store.apply_adjustments(track, _adjustments(operation))

    elif operation.kind == OperationKind.MOVE:
        source = _editable_track(store, params["old_track_id"])
        destination = _editable_track(store, params["new_track_id"])
        _require_item(source, operation.item_id)
        _, item = store.pop_item(source, operation.item_id)
        item.start_frame = params["new_start"]
        store.insert_item(destination, item, params["new_index"])
        store.apply_adjustments(destination, _adjustments(operation))

    elif operation.kind == OperationKind.TRIM:
        _require_item(track, operation.item_id)
        store.set_span(track, operation.item_id, params["new_start"], params["new_duration"])

    elif operation.kind == OperationKind.SPLIT:
        item = _require_item(track, operation.item_id)
        second = TimelineItem.model_validate(params["second_item"])
        item.duration_frames = params["split_frame"] - item.start_frame
        store.insert_item(track, second, params["second_index"])

    elif operation.kind == OperationKind.DELETE:
        _require_item(track, operation.item_id)
        store.pop_item(track, operation.item_id)

    logger.debug("Replayed %s on item %s", operation.kind.value, operation.item_id)
