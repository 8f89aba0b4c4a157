from fastapi import Request

from agent.edit_orchestrator import SessionManager


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager
