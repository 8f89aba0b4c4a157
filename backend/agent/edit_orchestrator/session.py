"""Session management for the edit server.

An EditingSession is the unit of isolation: one timeline, one directive
queue, one operation log, plus the agents and assets attached to it.
The SessionManager owns the table of live sessions. Sessions are created
and deleted only on request; nothing expires on its own.
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timezone

from models.directive_models import (
    AgentRole,
    Directive,
    EditingStatus,
    ExecutionResult,
    GeneratedAsset,
)
from models.timeline_models import TimelineSnapshot, generate_id
from operators.keyframe_operator import KeyframeManager
from operators.media_operator import AssetRegistry, InMemoryMediaResolver
from operators.timeline_operator import TimelineEngine

from .directive_handlers import DirectiveContext
from .directive_queue import DirectiveQueue
from .executor import DirectiveExecutor

logger = logging.getLogger(__name__)

TIMELINE_FPS = float(os.getenv("TIMELINE_FPS", "30"))


class SessionNotFoundError(Exception):
    """Raised when an edit session is not found."""

    def __init__(self, session_id: str | None):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class EditingSession:
    """Everything one editing session owns."""

    def __init__(self, session_id: str, fps: float = TIMELINE_FPS):
        self.session_id = session_id
        self.created_at = datetime.now(timezone.utc)
        self.last_saved = self.created_at
        self.dirty = False

        self.engine = TimelineEngine(fps=fps)
        self.keyframes = KeyframeManager()
        self.assets = AssetRegistry()
        self.media = InMemoryMediaResolver()
        self.agents: dict[AgentRole, str] = {}
        self.executor = DirectiveExecutor(
            DirectiveQueue(),
            DirectiveContext(engine=self.engine, keyframes=self.keyframes, assets=self.assets),
        )

    @property
    def director_agent(self) -> str | None:
        return self.agents.get(AgentRole.DIRECTOR)

    @property
    def completed_directives(self) -> list[str]:
        return self.executor.completed

    def mark_dirty(self) -> None:
        self.dirty = True

    def mark_saved(self) -> None:
        self.dirty = False
        self.last_saved = datetime.now(timezone.utc)

    def register_agent(self, role: AgentRole, agent_id: str) -> None:
        """Bind an agent to a role; a role holds one agent, the latest wins."""
        previous = self.agents.get(role)
        self.agents[role] = agent_id
        if previous and previous != agent_id:
            logger.info(
                "Session %s: %s role moved from %s to %s",
                self.session_id, role.value, previous, agent_id,
            )

    def submit_asset(self, asset: GeneratedAsset) -> None:
        self.assets.submit(asset)
        logger.info("Session %s received %s asset %s", self.session_id, asset.kind.value, asset.asset_id)

    def submit_directives(self, directives: list[Directive]) -> EditingStatus:
        self.executor.submit(directives)
        return self.get_editing_status()

    def execute_next(self) -> ExecutionResult:
        result = self.executor.execute_next()
        if result.success:
            self.mark_dirty()
        if result.directive_id is not None:
            result.editing_status = self.get_editing_status()
        return result

    def get_editing_status(self) -> EditingStatus:
        return self.executor.status(self.session_id, self.assets.list_assets())

    def prune_keyframes(self) -> None:
        """Drop keyframes of items that are no longer on the timeline."""
        for item_id in self.keyframes.item_ids():
            if self.engine.find_item(item_id) is None:
                self.keyframes.clear_item(item_id)

    def export_timeline(self) -> TimelineSnapshot:
        snapshot = self.engine.export_snapshot()
        snapshot.keyframes = self.keyframes.export()
        self.mark_saved()
        return snapshot

    def import_timeline(self, snapshot: TimelineSnapshot) -> None:
        """Replace the timeline and its keyframes with `snapshot`."""
        self.engine.import_snapshot(snapshot)
        self.keyframes.load(snapshot.keyframes)
        self.prune_keyframes()
        self.mark_dirty()


class SessionManager:
    """Keyed store of live sessions, safe for concurrent create/lookup/delete."""

    def __init__(self, fps: float = TIMELINE_FPS):
        self.fps = fps
        self._sessions: dict[str, EditingSession] = {}
        self._lock = threading.Lock()

    def create_session(self) -> str:
        session_id = generate_id("session_")
        session = EditingSession(session_id, fps=self.fps)
        with self._lock:
            self._sessions[session_id] = session
        logger.info(f"Created edit session {session_id}")
        return session_id

    def get_session(self, session_id: str | None) -> EditingSession:
        with self._lock:
            session = self._sessions.get(session_id) if session_id else None
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.info(f"Deleted edit session {session_id}")
        return removed is not None

    def list_sessions(self) -> list[str]:
        with self._lock:
            return list(self._sessions.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
