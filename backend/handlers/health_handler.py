from fastapi import APIRouter, Depends

from agent.edit_orchestrator import SessionManager
from dependencies.sessions import get_session_manager

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(manager: SessionManager = Depends(get_session_manager)) -> dict:
    return {"ok": True, "sessions": len(manager)}
