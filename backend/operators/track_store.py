"""
Track/Item Store - the mutable timeline.

Holds the ordered set of tracks and exposes the low-level mutation
primitives the engine and the operation log build on. The store applies
no business rules (locks, overlap resolution, logging); callers do.
"""

from models.timeline_models import OverlapAdjustment, TimelineItem, Track, TrackKind


class TrackStore:
    """Insertion-ordered mapping of track id to Track."""

    def __init__(self) -> None:
        self._tracks: dict[str, Track] = {}

    def __len__(self) -> int:
        return len(self._tracks)

    def __contains__(self, track_id: str) -> bool:
        return track_id in self._tracks

    def tracks(self) -> list[Track]:
        return list(self._tracks.values())

    def get(self, track_id: str) -> Track | None:
        return self._tracks.get(track_id)

    def add_track(self, name: str, kind: TrackKind) -> Track:
        track = Track(
            name=name,
            kind=kind,
            volume=1.0 if kind == TrackKind.AUDIO else None,
        )
        self._tracks[track.track_id] = track
        return track

    def put_track(self, track: Track) -> None:
        self._tracks[track.track_id] = track

    def remove_track(self, track_id: str) -> Track | None:
        return self._tracks.pop(track_id, None)

    def clear(self) -> None:
        self._tracks.clear()

    def iter_items(self):
        """Yield (track, item) for every item in every track."""
        for track in self._tracks.values():
            for item in track.items:
                yield track, item

    # -------------------------------------------------------------------------
    # Item primitives
    # -------------------------------------------------------------------------

    def insert_item(self, track: Track, item: TimelineItem, index: int | None = None) -> int:
        """Insert an item, appending when index is None. Returns its index."""
        if index is None or index >= len(track.items):
            track.items.append(item)
            return len(track.items) - 1
        index = max(0, index)
        track.items.insert(index, item)
        return index

    def pop_item(self, track: Track, item_id: str) -> tuple[int, TimelineItem] | None:
        index = track.index_of(item_id)
        if index < 0:
            return None
        return index, track.items.pop(index)

    def set_span(self, track: Track, item_id: str, start: int, duration: int) -> bool:
        item = track.get_item(item_id)
        if item is None:
            return False
        item.start_frame = start
        item.duration_frames = duration
        return True

    def apply_adjustments(
        self,
        track: Track,
        adjustments: list[OverlapAdjustment],
        revert: bool = False,
    ) -> None:
        """Apply (or revert) overlap adjustments to items of a track."""
        for adjustment in adjustments:
            if revert:
                self.set_span(
                    track, adjustment.item_id, adjustment.old_start, adjustment.old_duration
                )
            else:
                self.set_span(
                    track, adjustment.item_id, adjustment.new_start, adjustment.new_duration
                )
