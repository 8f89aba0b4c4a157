"""add_transition: fade items in and/or out with opacity keyframes.

fade_in and fade_out act on the target alone. crossfade fades the target
out over its tail and the item that follows it on the same track in over
its head, so the two blend across the cut.
"""

from models.directive_models import Directive, DirectiveKind
from models.timeline_models import Easing, Keyframe, TimelineItem, Track

from .base import DirectiveContext, DirectiveError, register_directive

DEFAULT_TRANSITION_SECONDS = 0.5
TRANSITIONS = ("fade_in", "fade_out", "crossfade")


def locate_target(directive: Directive, context: DirectiveContext):
    """Resolve directive.target to (track, item)."""
    if not directive.target:
        raise DirectiveError(f"{directive.kind.value} directive has no target item")
    found = context.engine.find_item(directive.target)
    if found is None:
        raise DirectiveError(f"Target item not found: {directive.target}")
    return found


def following_item(track: Track, item: TimelineItem) -> TimelineItem | None:
    """The item that starts inside or right at the end of `item` on its track."""
    candidates = [
        other for other in track.items
        if other.item_id != item.item_id and item.start_frame < other.start_frame <= item.end_frame
    ]
    return min(candidates, key=lambda other: other.start_frame, default=None)


def _transition_frames(directive: Directive, context: DirectiveContext) -> int:
    params = directive.parameters
    if params.start_time is not None and params.end_time is not None:
        seconds = params.end_time - params.start_time
    else:
        seconds = DEFAULT_TRANSITION_SECONDS
    frames = context.to_frame(seconds)
    if frames < 1:
        raise DirectiveError(f"Transition length {seconds}s is shorter than a frame")
    return frames


def _fade_span(item: TimelineItem, length: int) -> int:
    # Keyframes sit on frames the item covers: start_frame .. end_frame - 1.
    span = item.duration_frames - 1
    if span < 1:
        raise DirectiveError(f"Item {item.item_id} is too short for a transition")
    return min(length, span)


def _tag(context: DirectiveContext, track: Track, item: TimelineItem, name: str) -> None:
    effects = [*item.effects, f"transition:{name}"]
    if not context.engine.set_item_properties(track.track_id, item.item_id, effects=effects):
        raise DirectiveError(context.engine.last_error or "Could not update item")


def fade_in(context: DirectiveContext, item: TimelineItem, length: int) -> None:
    context.keyframes.add_keyframe(
        item.item_id, Keyframe(frame=item.start_frame, property="opacity", value=0.0)
    )
    context.keyframes.add_keyframe(
        item.item_id,
        Keyframe(frame=item.start_frame + length, property="opacity", value=1.0,
                 easing=Easing.EASE_OUT),
    )


def fade_out(context: DirectiveContext, item: TimelineItem, length: int) -> None:
    last = item.end_frame - 1
    context.keyframes.add_keyframe(
        item.item_id,
        Keyframe(frame=last - length, property="opacity", value=1.0, easing=Easing.EASE_IN),
    )
    context.keyframes.add_keyframe(
        item.item_id, Keyframe(frame=last, property="opacity", value=0.0)
    )


@register_directive(DirectiveKind.ADD_TRANSITION)
def add_transition(directive: Directive, context: DirectiveContext) -> str:
    name = directive.parameters.effect or "fade_in"
    if name not in TRANSITIONS:
        raise DirectiveError(f"Unknown transition: {name}")

    track, item = locate_target(directive, context)
    length = _fade_span(item, _transition_frames(directive, context))

    if name == "crossfade":
        incoming = following_item(track, item)
        if incoming is None:
            raise DirectiveError(f"Nothing follows item {item.item_id} on its track to crossfade into")
        length = _fade_span(incoming, length)
        _tag(context, track, item, name)
        _tag(context, track, incoming, name)
        fade_out(context, item, length)
        fade_in(context, incoming, length)
        return f"Applied crossfade ({length} frames) from item {item.item_id} to {incoming.item_id}"

    _tag(context, track, item, name)
    if name == "fade_in":
        fade_in(context, item, length)
    else:
        fade_out(context, item, length)
    return f"Applied {name} ({length} frames) to item {item.item_id}"
