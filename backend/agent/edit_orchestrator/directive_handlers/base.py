"""Directive handler dispatcher and registry.

Each directive handler is a function that receives a Directive and the
session's DirectiveContext, performs one or more timeline engine calls and
returns a short summary. Handlers signal failure by raising DirectiveError
(or letting a TimelineError escape).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from models.directive_models import Directive, DirectiveKind, DirectiveOutcome, GeneratedAsset
from models.timeline_models import Track, TrackKind
from operators.keyframe_operator import KeyframeManager
from operators.media_operator import AssetRegistry
from operators.timeline_operator import TimelineEngine, TimelineError

logger = logging.getLogger(__name__)

DEFAULT_START_SECONDS = 0.0
DEFAULT_DURATION_SECONDS = 3.0


class DirectiveError(Exception):
    """Raised when a directive cannot be carried out."""

    pass


@dataclass
class DirectiveContext:
    """Everything a handler may touch while executing a directive."""

    engine: TimelineEngine
    keyframes: KeyframeManager
    assets: AssetRegistry

    @property
    def fps(self) -> float:
        return self.engine.fps

    def to_frame(self, seconds: float) -> int:
        return int(round(seconds * self.fps))

    def frame_range(
        self,
        start_time: float | None,
        end_time: float | None,
        default_duration: float | None = None,
    ) -> tuple[int, int]:
        """
        Convert a seconds range into (start_frame, duration_frames).

        A missing start defaults to 0 s. A missing end defaults to
        start + default_duration, or start + 3 s when no default is given.
        """
        start = DEFAULT_START_SECONDS if start_time is None else start_time
        if end_time is None:
            end = start + (default_duration or DEFAULT_DURATION_SECONDS)
        else:
            end = end_time
        start_frame = self.to_frame(start)
        end_frame = self.to_frame(end)
        if end_frame <= start_frame:
            raise DirectiveError(f"Empty time range: {start}s to {end}s")
        return start_frame, end_frame - start_frame

    def resolve_asset(self, directive: Directive) -> GeneratedAsset:
        """Find the asset a directive refers to, registering embedded ones."""
        params = directive.parameters
        if params.asset is not None:
            self.assets.submit(params.asset)
            return params.asset
        if params.asset_id:
            asset = self.assets.get(params.asset_id)
            if asset is not None:
                return asset
            raise DirectiveError(f"Asset not found: {params.asset_id}")
        raise DirectiveError(f"Directive {directive.directive_id} references no asset")

    def track_named(self, fragment: str, create_as: str, kind: TrackKind) -> Track:
        """Locate a track by name fragment or create it."""
        track = self.engine.find_track_by_name(fragment)
        if track is None:
            track = self.engine.create_track(create_as, kind)
        return track


DirectiveHandler = Callable[[Directive, DirectiveContext], str]

_HANDLER_REGISTRY: dict[DirectiveKind, DirectiveHandler] = {}


def register_directive(kind: DirectiveKind) -> Callable[[DirectiveHandler], DirectiveHandler]:
    """Decorator to register a directive handler."""

    def decorator(func: DirectiveHandler) -> DirectiveHandler:
        _HANDLER_REGISTRY[kind] = func
        logger.debug(f"Registered directive handler: {kind.value}")
        return func

    return decorator


def dispatch_directive(
    directive: Directive,
    context: DirectiveContext,
) -> tuple[DirectiveOutcome, str]:
    """Run the handler registered for the directive's kind.

    Returns:
        (outcome, message). Kinds without a handler report UNIMPLEMENTED.
    """
    handler = _HANDLER_REGISTRY.get(directive.kind)
    if handler is None:
        logger.warning(f"No handler for directive kind: {directive.kind.value}")
        return (
            DirectiveOutcome.UNIMPLEMENTED,
            f"Directive kind '{directive.kind.value}' is not implemented",
        )

    logger.info(f"Executing {directive.kind.value} directive {directive.directive_id}")
    try:
        summary = handler(directive, context)
    except (DirectiveError, TimelineError) as e:
        logger.info(f"Directive {directive.directive_id} failed: {e}")
        return DirectiveOutcome.FAILED, str(e)
    except Exception as e:
        logger.exception(f"Directive {directive.directive_id} failed with exception")
        return DirectiveOutcome.FAILED, f"{type(e).__name__}: {e}"
    return DirectiveOutcome.COMPLETED, summary
