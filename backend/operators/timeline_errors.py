"""Exceptions raised by timeline operations.

Public engine methods convert these into boolean results; they only escape
to callers that use the raising variants (e.g. directive handlers).
"""


class TimelineError(Exception):
    """Base exception for timeline operations."""

    code = "TimelineError"


class TrackNotFoundError(TimelineError):
    """Raised when a track is not found."""

    code = "TrackNotFound"

    def __init__(self, track_id: str):
        self.track_id = track_id
        super().__init__(f"Track not found: {track_id}")


class ItemNotFoundError(TimelineError):
    """Raised when an item is not found in its track."""

    code = "ItemNotFound"

    def __init__(self, item_id: str, track_id: str | None = None):
        self.item_id = item_id
        self.track_id = track_id
        if track_id:
            super().__init__(f"Item {item_id} not found in track {track_id}")
        else:
            super().__init__(f"Item not found: {item_id}")


class TrackLockedError(TimelineError):
    """Raised when a mutation targets a locked track."""

    code = "TrackLocked"

    def __init__(self, track_id: str):
        self.track_id = track_id
        super().__init__(f"Track is locked: {track_id}")


class InvalidRangeError(TimelineError):
    """Raised when a frame or range falls outside what an operation allows."""

    code = "InvalidRange"
