"""apply_effect: tag a target item with a named visual effect."""

from models.directive_models import Directive, DirectiveKind

from .base import DirectiveContext, DirectiveError, register_directive
from .transition_handler import locate_target


@register_directive(DirectiveKind.APPLY_EFFECT)
def apply_effect(directive: Directive, context: DirectiveContext) -> str:
    effect = (directive.parameters.effect or "").strip()
    if not effect:
        raise DirectiveError("apply_effect directive has no effect name")

    track, item = locate_target(directive, context)
    if effect in item.effects:
        return f"Effect '{effect}' already on item {item.item_id}"

    if not context.engine.set_item_properties(
        track.track_id, item.item_id, effects=[*item.effects, effect]
    ):
        raise DirectiveError(context.engine.last_error or "Could not update item")
    return f"Applied effect '{effect}' to item {item.item_id}"
