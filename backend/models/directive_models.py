"""Types for agent collaboration: directives, generated assets and status.

Directives are high-level editing intents submitted by collaborating agents
(usually the director). Each one is executed as one or more timeline engine
operations by the directive executor.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.timeline_models import CamelModel, generate_id


class AgentRole(str, Enum):
    """Roles an external collaborator can register under."""

    DIRECTOR = "director"
    BGM_GENERATOR = "bgm_generator"
    SFX_GENERATOR = "sfx_generator"
    TTS_GENERATOR = "tts_generator"
    EDITOR = "editor"


class DirectiveKind(str, Enum):
    """Kinds of high-level editing intents."""

    CUT_SEQUENCE = "cut_sequence"
    ADD_BGM = "add_bgm"
    ADD_SFX = "add_sfx"
    ADD_TEXT = "add_text"
    ADD_TRANSITION = "add_transition"
    APPLY_EFFECT = "apply_effect"


class AssetKind(str, Enum):
    BGM = "bgm"
    SFX = "sfx"
    TTS = "tts"
    IMAGE = "image"
    VIDEO = "video"


class StatusState(str, Enum):
    """Coarse state of a session's directive processing."""

    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class DirectiveOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    UNIMPLEMENTED = "unimplemented"


class AssetMetadata(CamelModel):
    duration: float | None = Field(default=None, description="Duration in seconds")
    filename: str = ""
    mime_type: str = ""
    description: str | None = None
    tags: list[str] = Field(default_factory=list)


class GeneratedAsset(CamelModel):
    """An asset produced by an external generator agent."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, ser_json_bytes="base64"
    )

    asset_id: str = Field(alias="id")
    kind: AssetKind = Field(alias="type")
    agent_id: str = ""
    data: str | bytes = Field(default="", description="URL reference or raw payload")
    metadata: AssetMetadata = Field(default_factory=AssetMetadata)
    generation_params: dict[str, Any] | None = None

    def source_reference(self) -> str:
        """Reference usable as an item's `src` (never the raw bytes)."""
        if isinstance(self.data, str) and self.data:
            return self.data
        return f"asset://{self.asset_id}"


class Position(BaseModel):
    x: float = 0
    y: float = 0


class DirectiveParameters(CamelModel):
    """Parameter bag of a directive. Unknown keys are kept."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    start_time: float | None = Field(default=None, ge=0, description="Seconds")
    end_time: float | None = Field(default=None, ge=0, description="Seconds")
    position: Position | None = None
    style: dict[str, Any] | None = None
    asset: GeneratedAsset | None = None
    asset_id: str | None = None
    text: str | None = None
    effect: str | None = None
    track_id: str | None = None
    ripple: bool = False


class Directive(CamelModel):
    """A high-level editing intent."""

    directive_id: str = Field(default_factory=lambda: generate_id("dir_"), alias="id")
    kind: DirectiveKind = Field(alias="type")
    target: str | None = Field(
        default=None, description="Target item id (or time) the directive acts on"
    )
    parameters: DirectiveParameters = Field(default_factory=DirectiveParameters)
    priority: int = Field(default=0, description="Lower values execute sooner")
    description: str = ""


class EditingStatus(CamelModel):
    """Snapshot of a session's directive progress, derived on demand."""

    session_id: str
    current_step: int = 0
    total_steps: int = 0
    status: StatusState = StatusState.IDLE
    message: str = ""
    completed_directives: list[str] = Field(default_factory=list)
    pending_directives: list[str] = Field(default_factory=list)
    failed_directives: list[str] = Field(default_factory=list)
    generated_assets: list[GeneratedAsset] = Field(default_factory=list)


class ExecutionResult(CamelModel):
    """Result of executing (or trying to execute) one directive."""

    success: bool
    message: str
    directive_id: str | None = None
    outcome: DirectiveOutcome | None = None
    editing_status: EditingStatus | None = None
