"""Edit Orchestrator.

Coordinates collaborative editing for a session:
1. Agents register against a session under a role
2. Generator agents submit assets
3. The director submits prioritized directives
4. Directives are executed one at a time against the timeline engine
5. Progress is reported as an EditingStatus

Usage:
    from agent.edit_orchestrator import SessionManager

    manager = SessionManager()
    session = manager.get_session(manager.create_session())
    session.submit_directives([...])
    result = session.execute_next()
"""

from .directive_handlers import (
    DirectiveContext,
    DirectiveError,
    dispatch_directive,
    register_directive,
)
from .directive_queue import DirectiveQueue
from .executor import NO_PENDING_MESSAGE, DirectiveExecutor
from .session import (
    EditingSession,
    SessionManager,
    SessionNotFoundError,
)


__all__ = [
    # Sessions
    "EditingSession",
    "SessionManager",
    "SessionNotFoundError",
    # Directive execution
    "DirectiveQueue",
    "DirectiveExecutor",
    "NO_PENDING_MESSAGE",
    # Handlers
    "DirectiveContext",
    "DirectiveError",
    "dispatch_directive",
    "register_directive",
]
