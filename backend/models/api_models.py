"""Request/response envelope and typed params for the command endpoint.

Every call is `{id, method, params}` and is answered with either
`{id, result}` or `{id, error: {code, message}}`. Params are camelCase on
the wire and validated per method before anything touches a session.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from models.directive_models import AgentRole, Directive, GeneratedAsset
from models.timeline_models import (
    CamelModel,
    Easing,
    MediaKind,
    TimelineSnapshot,
    TrackKind,
)


class ErrorCode(IntEnum):
    SESSION_NOT_FOUND = -32001
    TRACK_NOT_FOUND = -32002
    ITEM_NOT_FOUND = -32003
    MEDIA_NOT_FOUND = -32004
    TRACK_LOCKED = -32005
    INVALID_RANGE = -32006
    INVALID_REQUEST = -32600
    UNKNOWN_METHOD = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


# =============================================================================
# ENVELOPE
# =============================================================================


class RpcRequest(BaseModel):
    id: str | int | None = None
    method: str = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def _none_means_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class RpcError(BaseModel):
    code: int
    message: str


class RpcResponse(BaseModel):
    """Exactly one of `result` and `error` is set."""

    id: str | int | None = None
    result: dict[str, Any] | None = None
    error: RpcError | None = None

    @model_validator(mode="after")
    def _one_of_result_or_error(self) -> RpcResponse:
        if (self.result is None) == (self.error is None):
            raise ValueError("A response carries either a result or an error")
        return self

    def to_wire(self) -> dict[str, Any]:
        if self.error is not None:
            return {"id": self.id, "error": self.error.model_dump()}
        return {"id": self.id, "result": self.result}


# =============================================================================
# SESSION / MEDIA PARAMS
# =============================================================================


class NoParams(CamelModel):
    pass


class SessionParams(CamelModel):
    session_id: str = Field(min_length=1)


class RegisterMediaParams(SessionParams):
    name: str
    url: str
    kind: MediaKind = Field(alias="type")
    duration: float | None = Field(default=None, ge=0, description="Seconds")
    width: int | None = Field(default=None, ge=1)
    height: int | None = Field(default=None, ge=1)
    fps: float | None = None
    mime_type: str | None = None


class MediaParams(SessionParams):
    media_id: str


# =============================================================================
# EDIT PARAMS
# =============================================================================


class CreateTrackParams(SessionParams):
    name: str
    kind: TrackKind = Field(default=TrackKind.VIDEO, alias="type")

    @field_validator("kind", mode="before")
    @classmethod
    def _overlay_is_video(cls, value: Any) -> Any:
        return TrackKind.VIDEO if value == "overlay" else value


class TrackParams(SessionParams):
    track_id: str


class SetTrackStateParams(TrackParams):
    locked: bool | None = None
    visible: bool | None = None
    volume: float | None = None


class TransformParams(CamelModel):
    x: float | None = None
    y: float | None = None
    width: float | None = None
    height: float | None = None
    opacity: float | None = None
    scale: float | None = None
    rotation: float | None = None


class AddMediaParams(TrackParams, TransformParams):
    media_id: str
    start_frame: int | None = None


class ItemParams(TrackParams):
    item_id: str


class MoveClipParams(ItemParams):
    new_start_frame: int
    new_track_id: str | None = None


class TrimClipParams(ItemParams):
    start_frame: int | None = None
    end_frame: int | None = None


class SplitClipParams(ItemParams):
    split_frame: int


class SetPropertiesParams(ItemParams, TransformParams):
    pass


class AddTextParams(SessionParams):
    text: str = Field(min_length=1)
    start_frame: int | None = None
    end_frame: int | None = None
    x: float | None = None
    y: float | None = None
    width: float | None = None
    height: float | None = None
    font_size: float | None = None
    color: str | None = None
    font_family: str | None = None


class FrameParams(SessionParams):
    frame: int | None = None


class SetFrameParams(SessionParams):
    frame: int


class KeyframeParams(SessionParams):
    item_id: str
    frame: int = Field(ge=0)
    property: str


class AddKeyframeParams(KeyframeParams):
    value: float | str
    easing: Easing = Easing.LINEAR


class GetKeyframesParams(SessionParams):
    item_id: str
    property: str | None = None


class ImportTimelineParams(SessionParams):
    timeline: TimelineSnapshot


# =============================================================================
# AGENT PARAMS
# =============================================================================


class RegisterAgentParams(SessionParams):
    agent_id: str = Field(min_length=1)
    agent_type: AgentRole


class SubmitAssetParams(SessionParams):
    asset: GeneratedAsset


class SubmitDirectivesParams(SessionParams):
    directives: list[Directive]
