"""
Overlap Resolver - keeps items within a track from overlapping.

Resolution is reactive: placing an item never fails, it displaces the
existing items it collides with instead.

- A colliding item that starts after the placed item is pushed to start
  at the placed item's end (its duration is kept).
- Otherwise the colliding item is shrunk to end where the placed item
  starts (never below one frame).

This is a single pass over the existing items, not a fixed point: an item
that gets pushed is not re-checked against the items that follow it, so a
chain reaction can leave residual overlaps. `find_overlaps` reports them.
"""

from typing import Iterable

from models.timeline_models import OverlapAdjustment, TimelineItem


def resolve_overlaps(
    items: Iterable[TimelineItem],
    placed: TimelineItem,
) -> list[OverlapAdjustment]:
    """
    Compute the adjustments needed to make room for `placed`.

    Pure: nothing is mutated. Items with the same id as `placed` are
    ignored, so the placed item may already be part of `items`.

    Args:
        items: Existing items of the track
        placed: The item being inserted or moved

    Returns:
        One OverlapAdjustment per displaced item, in track order
    """
    new_start = placed.start_frame
    new_end = placed.end_frame
    adjustments: list[OverlapAdjustment] = []

    for other in items:
        if other.item_id == placed.item_id:
            continue

        other_start = other.start_frame
        other_end = other.end_frame
        if new_end <= other_start or new_start >= other_end:
            continue

        if new_start < other_start:
            new_other_start = new_end
            new_other_duration = other.duration_frames
        else:
            new_other_start = other_start
            new_other_duration = max(1, new_start - other_start)

        adjustments.append(
            OverlapAdjustment(
                item_id=other.item_id,
                old_start=other_start,
                old_duration=other.duration_frames,
                new_start=new_other_start,
                new_duration=new_other_duration,
            )
        )

    return adjustments


def find_overlaps(items: list[TimelineItem]) -> list[tuple[str, str]]:
    """Return id pairs of items whose intervals intersect."""
    ordered = sorted(items, key=lambda item: (item.start_frame, item.end_frame))
    pairs: list[tuple[str, str]] = []
    for i, first in enumerate(ordered):
        for second in ordered[i + 1:]:
            if second.start_frame >= first.end_frame:
                break
            pairs.append((first.item_id, second.item_id))
    return pairs
