"""add_bgm / add_sfx: place a generated audio asset on its audio track.

The asset must either be embedded in the directive or already submitted
to the session; a missing asset fails the directive immediately rather
than waiting for a generator agent.
"""

from models.directive_models import Directive, DirectiveKind
from models.timeline_models import MediaKind, TimelineItem, TrackKind

from .base import DirectiveContext, register_directive

BGM_TRACK_MARKER = "BGM"
BGM_TRACK_NAME = "BGM"
SFX_TRACK_MARKER = "SFX"
SFX_TRACK_NAME = "SFX"


def _place_audio(
    directive: Directive,
    context: DirectiveContext,
    track_marker: str,
    track_name: str,
    fill_timeline: bool,
) -> str:
    params = directive.parameters
    asset = context.resolve_asset(directive)

    default_duration = asset.metadata.duration
    if not default_duration and fill_timeline:
        total = context.engine.get_total_duration()
        default_duration = total / context.fps if total else None

    start_frame, duration = context.frame_range(
        params.start_time, params.end_time, default_duration=default_duration
    )
    track = context.track_named(track_marker, track_name, TrackKind.AUDIO)
    item = TimelineItem(
        kind=MediaKind.AUDIO,
        src=asset.source_reference(),
        name=asset.metadata.filename or asset.asset_id,
        start_frame=start_frame,
        duration_frames=duration,
        width=0,
        height=0,
        metadata={"asset_id": asset.asset_id, "agent_id": asset.agent_id},
    )
    context.engine.add_item_or_raise(track.track_id, item)
    return f"Placed asset {asset.asset_id} on '{track.name}' at frame {start_frame} ({duration} frames)"


@register_directive(DirectiveKind.ADD_BGM)
def add_bgm(directive: Directive, context: DirectiveContext) -> str:
    return _place_audio(directive, context, BGM_TRACK_MARKER, BGM_TRACK_NAME, fill_timeline=True)


@register_directive(DirectiveKind.ADD_SFX)
def add_sfx(directive: Directive, context: DirectiveContext) -> str:
    return _place_audio(directive, context, SFX_TRACK_MARKER, SFX_TRACK_NAME, fill_timeline=False)
