"""Directive handlers for the Edit Orchestrator.

Each handler maps one directive kind to a sequence of timeline engine
calls. Handlers are registered via the @register_directive decorator;
import this module to ensure all of them are registered.
"""

from .base import (
    DirectiveContext,
    DirectiveError,
    dispatch_directive,
    register_directive,
)

# Import all handler modules to trigger registration
from . import text_handler
from . import audio_handler
from . import cut_handler
from . import transition_handler
from . import effect_handler


__all__ = [
    "DirectiveContext",
    "DirectiveError",
    "dispatch_directive",
    "register_directive",
]
