"""
RPC Handler - the command endpoint of the edit server.

All calls go through `POST /rpc` with a `{id, method, params}` body. The
method selects a command registered with `@command`; its params are
validated against the command's pydantic model before the session is
looked up.

Failures come back two ways:
- Mutations the engine rejects are ordinary results with
  `success: false`, a `message` and a `reason` (TrackLocked, ...).
- Unknown methods, invalid params and unknown session or media ids are
  envelope errors `{code, message}` (see ErrorCode).

The HTTP status is 200 for every envelope response.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, ValidationError

from agent.edit_orchestrator import EditingSession, SessionManager, SessionNotFoundError
from agent.edit_orchestrator.directive_handlers.text_handler import (
    TEXT_TRACK_MARKER,
    TEXT_TRACK_NAME,
    build_text_item,
)
from dependencies.sessions import get_session_manager
from models.api_models import (
    AddKeyframeParams,
    AddMediaParams,
    AddTextParams,
    CreateTrackParams,
    ErrorCode,
    FrameParams,
    GetKeyframesParams,
    ImportTimelineParams,
    ItemParams,
    KeyframeParams,
    MediaParams,
    MoveClipParams,
    NoParams,
    RegisterAgentParams,
    RegisterMediaParams,
    RpcError,
    RpcRequest,
    RpcResponse,
    SessionParams,
    SetFrameParams,
    SetPropertiesParams,
    SetTrackStateParams,
    SplitClipParams,
    SubmitAssetParams,
    SubmitDirectivesParams,
    TrackParams,
    TrimClipParams,
)
from models.timeline_models import Keyframe, TimelineItem, TrackKind
from operators.media_operator import MediaFile, MediaNotFoundError
from operators.timeline_operator import (
    InvalidRangeError,
    ItemNotFoundError,
    TimelineError,
    TrackLockedError,
    TrackNotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["rpc"])

DEFAULT_MEDIA_SECONDS = 5
DEFAULT_TEXT_SECONDS = 3
DEFAULT_ITEM_WIDTH = 1280
DEFAULT_ITEM_HEIGHT = 720

CommandFunc = Callable[[SessionManager, Any], dict[str, Any]]

_COMMANDS: dict[str, tuple[type[BaseModel], CommandFunc]] = {}


def command(method: str, params_model: type[BaseModel] = NoParams):
    """Register a function as the handler of an RPC method."""

    def decorator(func: CommandFunc) -> CommandFunc:
        _COMMANDS[method] = (params_model, func)
        return func

    return decorator


def get_methods() -> list[str]:
    return sorted(_COMMANDS.keys())


def _error_for_exception(e: Exception) -> RpcError:
    """Convert an exception escaping a command into an envelope error."""
    if isinstance(e, ValidationError):
        return RpcError(code=ErrorCode.INVALID_PARAMS, message=_describe_validation_error(e))
    elif isinstance(e, SessionNotFoundError):
        return RpcError(code=ErrorCode.SESSION_NOT_FOUND, message=str(e))
    elif isinstance(e, MediaNotFoundError):
        return RpcError(code=ErrorCode.MEDIA_NOT_FOUND, message=str(e))
    elif isinstance(e, TrackNotFoundError):
        return RpcError(code=ErrorCode.TRACK_NOT_FOUND, message=str(e))
    elif isinstance(e, ItemNotFoundError):
        return RpcError(code=ErrorCode.ITEM_NOT_FOUND, message=str(e))
    elif isinstance(e, TrackLockedError):
        return RpcError(code=ErrorCode.TRACK_LOCKED, message=str(e))
    elif isinstance(e, InvalidRangeError):
        return RpcError(code=ErrorCode.INVALID_RANGE, message=str(e))
    else:
        return RpcError(code=ErrorCode.INTERNAL_ERROR, message=f"Internal error: {str(e)}")


def _describe_validation_error(e: ValidationError) -> str:
    problems = [
        f"{'.'.join(str(part) for part in error['loc']) or 'params'}: {error['msg']}"
        for error in e.errors()
    ]
    return "Invalid params: " + "; ".join(problems)


def dispatch(manager: SessionManager, request: RpcRequest) -> RpcResponse:
    """Run one request against the session manager."""
    entry = _COMMANDS.get(request.method)
    if entry is None:
        logger.warning("Unknown method %s", request.method)
        return RpcResponse(
            id=request.id,
            error=RpcError(code=ErrorCode.UNKNOWN_METHOD, message=f"Unknown method: {request.method}"),
        )

    params_model, func = entry
    try:
        params = params_model.model_validate(request.params)
        result = func(manager, params)
    except (ValidationError, SessionNotFoundError, MediaNotFoundError, TimelineError) as e:
        logger.warning("%s failed: %s", request.method, e)
        return RpcResponse(id=request.id, error=_error_for_exception(e))
    except Exception as e:
        logger.exception("Unhandled error in %s", request.method)
        return RpcResponse(id=request.id, error=_error_for_exception(e))

    return RpcResponse(id=request.id, result=result)


@router.post("/rpc")
async def rpc_endpoint(
    body: Any = Body(...),
    manager: SessionManager = Depends(get_session_manager),
) -> dict[str, Any]:
    # Commands never await, so one request runs to completion before the next starts.
    request_id = body.get("id") if isinstance(body, dict) else None
    if not isinstance(request_id, (str, int)):
        request_id = None
    try:
        request = RpcRequest.model_validate(body)
    except ValidationError as e:
        return RpcResponse(
            id=request_id,
            error=RpcError(code=ErrorCode.INVALID_REQUEST, message=_describe_validation_error(e)),
        ).to_wire()
    return dispatch(manager, request).to_wire()


# =============================================================================
# HELPERS
# =============================================================================


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def _session(manager: SessionManager, params: SessionParams) -> EditingSession:
    return manager.get_session(params.session_id)


def _mutation_result(session: EditingSession, success: bool, **extra: Any) -> dict[str, Any]:
    """Shape an engine True/False into a result, with the reason on failure."""
    result: dict[str, Any] = {"success": success}
    if success:
        session.mark_dirty()
        result.update(extra)
    else:
        result["message"] = session.engine.last_error
        result["reason"] = session.engine.last_error_code
    return result


def _rejected(message: str, reason: str) -> dict[str, Any]:
    return {"success": False, "message": message, "reason": reason}


def _history_flags(session: EditingSession) -> dict[str, bool]:
    history = session.engine.history
    return {"canUndo": history.can_undo, "canRedo": history.can_redo}


# =============================================================================
# SESSIONS
# =============================================================================


@command("session.create")
def create_session(manager: SessionManager, params: NoParams) -> dict[str, Any]:
    return {"sessionId": manager.create_session()}


@command("session.delete", SessionParams)
def delete_session(manager: SessionManager, params: SessionParams) -> dict[str, Any]:
    return {"success": manager.delete_session(params.session_id)}


@command("session.list")
def list_sessions(manager: SessionManager, params: NoParams) -> dict[str, Any]:
    return {"sessions": manager.list_sessions()}


# =============================================================================
# MEDIA
# =============================================================================


@command("media.register", RegisterMediaParams)
def register_media(manager: SessionManager, params: RegisterMediaParams) -> dict[str, Any]:
    session = _session(manager, params)
    media_file = session.media.register(
        MediaFile(
            name=params.name,
            url=params.url,
            kind=params.kind,
            duration=params.duration,
            width=params.width,
            height=params.height,
            fps=params.fps,
            mime_type=params.mime_type,
        )
    )
    session.mark_dirty()
    return {"mediaFile": _dump(media_file)}


@command("media.list", SessionParams)
def list_media(manager: SessionManager, params: SessionParams) -> dict[str, Any]:
    session = _session(manager, params)
    return {"mediaFiles": [_dump(media_file) for media_file in session.media.list_files()]}


@command("media.get_info", MediaParams)
def get_media_info(manager: SessionManager, params: MediaParams) -> dict[str, Any]:
    session = _session(manager, params)
    return {"mediaFile": _dump(session.media.require(params.media_id))}


@command("media.delete", MediaParams)
def delete_media(manager: SessionManager, params: MediaParams) -> dict[str, Any]:
    session = _session(manager, params)
    success = session.media.delete(params.media_id)
    if success:
        session.mark_dirty()
    return {"success": success}


# =============================================================================
# TRACKS
# =============================================================================


@command("edit.create_track", CreateTrackParams)
def create_track(manager: SessionManager, params: CreateTrackParams) -> dict[str, Any]:
    session = _session(manager, params)
    track = session.engine.create_track(params.name, params.kind)
    session.mark_dirty()
    return {"track": _dump(track)}


@command("edit.delete_track", TrackParams)
def delete_track(manager: SessionManager, params: TrackParams) -> dict[str, Any]:
    session = _session(manager, params)
    success = session.engine.delete_track(params.track_id)
    if success:
        session.prune_keyframes()
    return _mutation_result(session, success)


@command("edit.set_track_state", SetTrackStateParams)
def set_track_state(manager: SessionManager, params: SetTrackStateParams) -> dict[str, Any]:
    session = _session(manager, params)
    success = session.engine.set_track_state(
        params.track_id,
        locked=params.locked,
        visible=params.visible,
        volume=params.volume,
    )
    track = session.engine.get_track(params.track_id)
    return _mutation_result(session, success, track=_dump(track) if track else None)


# =============================================================================
# ITEMS
# =============================================================================


@command("edit.add_media", AddMediaParams)
def add_media(manager: SessionManager, params: AddMediaParams) -> dict[str, Any]:
    session = _session(manager, params)
    media_file = session.media.require(params.media_id)
    fps = session.engine.fps

    item = TimelineItem(
        kind=media_file.kind,
        src=media_file.url,
        name=media_file.name,
        duration_frames=max(1, math.floor((media_file.duration or DEFAULT_MEDIA_SECONDS) * fps)),
        x=params.x if params.x is not None else 0,
        y=params.y if params.y is not None else 0,
        width=params.width or media_file.width or DEFAULT_ITEM_WIDTH,
        height=params.height or media_file.height or DEFAULT_ITEM_HEIGHT,
        opacity=params.opacity if params.opacity is not None else 1.0,
        scale=params.scale if params.scale is not None else 1.0,
        rotation=params.rotation if params.rotation is not None else 0.0,
        metadata={"media_id": media_file.media_id},
    )
    success = session.engine.add_item(params.track_id, item, params.start_frame)
    return _mutation_result(session, success, mediaItem=_dump(item))


@command("edit.move_clip", MoveClipParams)
def move_clip(manager: SessionManager, params: MoveClipParams) -> dict[str, Any]:
    session = _session(manager, params)
    success = session.engine.move_item(
        params.track_id, params.item_id, params.new_start_frame, params.new_track_id
    )
    return _mutation_result(session, success)


@command("edit.trim_clip", TrimClipParams)
def trim_clip(manager: SessionManager, params: TrimClipParams) -> dict[str, Any]:
    session = _session(manager, params)
    success = session.engine.trim_item(
        params.track_id, params.item_id, new_start=params.start_frame, new_end=params.end_frame
    )
    return _mutation_result(session, success)


@command("edit.split_clip", SplitClipParams)
def split_clip(manager: SessionManager, params: SplitClipParams) -> dict[str, Any]:
    session = _session(manager, params)
    success = session.engine.split_item(params.track_id, params.item_id, params.split_frame)
    return _mutation_result(session, success)


@command("edit.delete_clip", ItemParams)
def delete_clip(manager: SessionManager, params: ItemParams) -> dict[str, Any]:
    session = _session(manager, params)
    success = session.engine.remove_item(params.track_id, params.item_id)
    if success:
        session.keyframes.clear_item(params.item_id)
    return _mutation_result(session, success)


@command("edit.set_properties", SetPropertiesParams)
def set_properties(manager: SessionManager, params: SetPropertiesParams) -> dict[str, Any]:
    session = _session(manager, params)
    properties = params.model_dump(
        include={"x", "y", "width", "height", "opacity", "scale", "rotation"},
        exclude_none=True,
    )
    success = session.engine.set_item_properties(params.track_id, params.item_id, **properties)
    if not success:
        return _mutation_result(session, False)
    item = session.engine.get_track(params.track_id).get_item(params.item_id)
    return _mutation_result(session, True, mediaItem=_dump(item))


@command("edit.add_text", AddTextParams)
def add_text(manager: SessionManager, params: AddTextParams) -> dict[str, Any]:
    session = _session(manager, params)
    engine = session.engine

    start_frame = params.start_frame or 0
    if params.end_frame is not None:
        duration = params.end_frame - start_frame
    else:
        duration = round(DEFAULT_TEXT_SECONDS * engine.fps)
    if duration < 1:
        return _rejected(
            f"Text range [{start_frame}, {params.end_frame}) is empty", InvalidRangeError.code
        )

    style = {
        key: value
        for key, value in (
            ("fontSize", params.font_size),
            ("color", params.color),
            ("fontFamily", params.font_family),
        )
        if value is not None
    }
    track = engine.find_track_by_name(TEXT_TRACK_MARKER) or engine.create_track(
        TEXT_TRACK_NAME, TrackKind.VIDEO
    )
    item = build_text_item(
        params.text,
        0,
        duration,
        x=params.x,
        y=params.y,
        width=params.width,
        height=params.height,
        style=style,
    )
    success = engine.add_item(track.track_id, item, start_frame)
    return _mutation_result(session, success, mediaItem=_dump(item), track=_dump(track))


# =============================================================================
# TIMELINE QUERIES
# =============================================================================


@command("edit.get_timeline", SessionParams)
def get_timeline(manager: SessionManager, params: SessionParams) -> dict[str, Any]:
    session = _session(manager, params)
    engine = session.engine
    return {
        "tracks": [_dump(track) for track in engine.get_tracks()],
        "currentFrame": engine.current_frame,
        "totalDuration": engine.get_total_duration(),
        "fps": engine.fps,
        "overlaps": [
            {"trackId": track_id, "itemIds": [first, second]}
            for track_id, first, second in engine.find_overlaps()
        ],
        "keyframes": {
            item_id: [_dump(kf) for kf in frames]
            for item_id, frames in session.keyframes.export().items()
        },
        **_history_flags(session),
    }


@command("edit.get_active_items", FrameParams)
def get_active_items(manager: SessionManager, params: FrameParams) -> dict[str, Any]:
    engine = _session(manager, params).engine
    return {"items": [_dump(item) for item in engine.get_active_items(params.frame)]}


@command("edit.set_current_frame", SetFrameParams)
def set_current_frame(manager: SessionManager, params: SetFrameParams) -> dict[str, Any]:
    engine = _session(manager, params).engine
    return {"currentFrame": engine.set_current_frame(params.frame)}


# =============================================================================
# HISTORY
# =============================================================================


@command("edit.undo", SessionParams)
def undo(manager: SessionManager, params: SessionParams) -> dict[str, Any]:
    session = _session(manager, params)
    success = session.engine.undo()
    if success:
        session.mark_dirty()
    return {"success": success, **_history_flags(session)}


@command("edit.redo", SessionParams)
def redo(manager: SessionManager, params: SessionParams) -> dict[str, Any]:
    session = _session(manager, params)
    success = session.engine.redo()
    if success:
        session.mark_dirty()
    return {"success": success, **_history_flags(session)}


# =============================================================================
# KEYFRAMES
# =============================================================================


@command("edit.add_keyframe", AddKeyframeParams)
def add_keyframe(manager: SessionManager, params: AddKeyframeParams) -> dict[str, Any]:
    session = _session(manager, params)
    if session.engine.find_item(params.item_id) is None:
        return _rejected(str(ItemNotFoundError(params.item_id)), ItemNotFoundError.code)
    session.keyframes.add_keyframe(
        params.item_id,
        Keyframe(
            frame=params.frame,
            property=params.property,
            value=params.value,
            easing=params.easing,
        ),
    )
    session.mark_dirty()
    return {"success": True}


@command("edit.remove_keyframe", KeyframeParams)
def remove_keyframe(manager: SessionManager, params: KeyframeParams) -> dict[str, Any]:
    session = _session(manager, params)
    success = session.keyframes.remove_keyframe(params.item_id, params.frame, params.property)
    if success:
        session.mark_dirty()
    return {"success": success}


@command("edit.get_keyframes", GetKeyframesParams)
def get_keyframes(manager: SessionManager, params: GetKeyframesParams) -> dict[str, Any]:
    session = _session(manager, params)
    frames = session.keyframes.get_keyframes(params.item_id, params.property)
    return {"keyframes": [_dump(kf) for kf in frames]}


# =============================================================================
# IMPORT / EXPORT
# =============================================================================


@command("edit.export_timeline", SessionParams)
def export_timeline(manager: SessionManager, params: SessionParams) -> dict[str, Any]:
    session = _session(manager, params)
    return {"timeline": _dump(session.export_timeline())}


@command("edit.import_timeline", ImportTimelineParams)
def import_timeline(manager: SessionManager, params: ImportTimelineParams) -> dict[str, Any]:
    session = _session(manager, params)
    session.import_timeline(params.timeline)
    return {"success": True}


# =============================================================================
# AGENT COLLABORATION
# =============================================================================


@command("agent.register", RegisterAgentParams)
def register_agent(manager: SessionManager, params: RegisterAgentParams) -> dict[str, Any]:
    session = _session(manager, params)
    session.register_agent(params.agent_type, params.agent_id)
    return {
        "success": True,
        "message": f"Agent {params.agent_id} registered as {params.agent_type.value}",
    }


@command("agent.submit_asset", SubmitAssetParams)
def submit_asset(manager: SessionManager, params: SubmitAssetParams) -> dict[str, Any]:
    session = _session(manager, params)
    session.submit_asset(params.asset)
    return {"success": True, "message": f"Asset {params.asset.asset_id} received"}


@command("agent.submit_directives", SubmitDirectivesParams)
def submit_directives(manager: SessionManager, params: SubmitDirectivesParams) -> dict[str, Any]:
    session = _session(manager, params)
    status = session.submit_directives(params.directives)
    return {
        "success": True,
        "message": f"{len(params.directives)} directives received",
        "editingStatus": _dump(status),
    }


@command("agent.get_status", SessionParams)
def get_status(manager: SessionManager, params: SessionParams) -> dict[str, Any]:
    session = _session(manager, params)
    return {"editingStatus": _dump(session.get_editing_status())}


@command("agent.execute_next", SessionParams)
def execute_next(manager: SessionManager, params: SessionParams) -> dict[str, Any]:
    session = _session(manager, params)
    result = session.execute_next()
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)
