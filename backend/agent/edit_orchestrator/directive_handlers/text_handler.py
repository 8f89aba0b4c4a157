"""add_text: place a text overlay on the text-overlay track."""

from models.directive_models import Directive, DirectiveKind
from models.timeline_models import MediaKind, TimelineItem, TrackKind

from .base import DirectiveContext, DirectiveError, register_directive

TEXT_TRACK_MARKER = "Text"
TEXT_TRACK_NAME = "Text Overlay"

DEFAULT_TEXT_X = 50
DEFAULT_TEXT_Y = 50
DEFAULT_TEXT_WIDTH = 400
DEFAULT_TEXT_HEIGHT = 100


def build_text_item(
    text: str,
    start_frame: int,
    duration_frames: int,
    x: float | None = None,
    y: float | None = None,
    width: float | None = None,
    height: float | None = None,
    style: dict | None = None,
) -> TimelineItem:
    """Synthesize a text item. Rendering the text is left to the front-end."""
    return TimelineItem(
        kind=MediaKind.TEXT,
        src=f"text:{text}",
        name=text[:40],
        text=text,
        style=style or {},
        start_frame=start_frame,
        duration_frames=duration_frames,
        x=DEFAULT_TEXT_X if x is None else x,
        y=DEFAULT_TEXT_Y if y is None else y,
        width=DEFAULT_TEXT_WIDTH if width is None else width,
        height=DEFAULT_TEXT_HEIGHT if height is None else height,
        opacity=1.0,
    )


@register_directive(DirectiveKind.ADD_TEXT)
def add_text(directive: Directive, context: DirectiveContext) -> str:
    params = directive.parameters
    if not params.text:
        raise DirectiveError("add_text directive has no text")

    start_frame, duration = context.frame_range(params.start_time, params.end_time)
    track = context.track_named(TEXT_TRACK_MARKER, TEXT_TRACK_NAME, TrackKind.VIDEO)
    position = params.position
    item = build_text_item(
        params.text,
        start_frame,
        duration,
        x=position.x if position else None,
        y=position.y if position else None,
        style=params.style,
    )
    context.engine.add_item_or_raise(track.track_id, item)
    return f"Added text '{params.text}' at frame {start_frame} on '{track.name}'"
