"""cut_sequence: remove a time range from one track or from every editable lane.

Built from primitive engine calls: items straddling a range boundary are
split there, every item inside the range is removed, and with `ripple`
the material after the range is pulled back to close the gap.
"""

from models.directive_models import Directive, DirectiveKind
from models.timeline_models import Track, TrackKind

from .base import DirectiveContext, DirectiveError, register_directive

CUTTABLE_KINDS = (TrackKind.VIDEO, TrackKind.AUDIO)


def _target_tracks(directive: Directive, context: DirectiveContext) -> list[Track]:
    track_id = directive.parameters.track_id or directive.target
    if track_id:
        track = context.engine.get_track(track_id)
        if track is None:
            raise DirectiveError(f"Track not found: {track_id}")
        return [track]
    return [
        track
        for track in context.engine.get_tracks()
        if track.kind in CUTTABLE_KINDS and not track.locked
    ]


def cut_range(context: DirectiveContext, track: Track, start: int, end: int, ripple: bool) -> int:
    """Cut [start, end) out of a track. Returns the number of items removed."""
    engine = context.engine
    removed = 0

    for item in list(track.items):
        if item.end_frame <= start or item.start_frame >= end:
            continue
        target = item
        if target.start_frame < start:
            target = engine.split_item_or_raise(track.track_id, target.item_id, start)
        if target.end_frame > end:
            engine.split_item_or_raise(track.track_id, target.item_id, end)
        engine.remove_item_or_raise(track.track_id, target.item_id)
        context.keyframes.clear_item(target.item_id)
        removed += 1

    if ripple and removed:
        shift = end - start
        later = sorted(
            (item for item in track.items if item.start_frame >= end),
            key=lambda item: item.start_frame,
        )
        for item in later:
            engine.move_item_or_raise(track.track_id, item.item_id, item.start_frame - shift)

    return removed


@register_directive(DirectiveKind.CUT_SEQUENCE)
def cut_sequence(directive: Directive, context: DirectiveContext) -> str:
    params = directive.parameters
    if params.end_time is None:
        raise DirectiveError("cut_sequence requires an endTime")

    start, duration = context.frame_range(params.start_time, params.end_time)
    end = start + duration

    removed = 0
    for track in _target_tracks(directive, context):
        removed += cut_range(context, track, start, end, params.ripple)

    if removed == 0:
        raise DirectiveError(f"Nothing to cut between frames {start} and {end}")
    return f"Cut frames {start}-{end} ({removed} items removed)"
