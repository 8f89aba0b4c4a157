import logging
import os
from pathlib import Path

from dotenv import load_dotenv

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agent.edit_orchestrator import SessionManager
from handlers.health_handler import router as health_router
from handlers.rpc_handler import router as rpc_router

ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(ROOT_DIR / ".env")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


def _attach_file_handler(
    logger_name: str,
    log_file_path: Path,
    level_name: str | None = None,
) -> None:
    logger_level = (level_name or LOG_LEVEL).upper()
    logger_level_value = getattr(logging, logger_level, logging.INFO)

    log_file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
    file_handler.setLevel(logger_level_value)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )

    target_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler)
        and getattr(handler, "baseFilename", None) == str(log_file_path)
        for handler in target_logger.handlers
    ):
        target_logger.addHandler(file_handler)
    target_logger.setLevel(logger_level_value)

EDIT_SERVER_LOG_FILE = os.getenv("EDIT_SERVER_LOG_FILE", "").strip()
EDIT_SERVER_LOG_LEVEL = os.getenv("EDIT_SERVER_LOG_LEVEL", "").strip() or None
if EDIT_SERVER_LOG_FILE:
    log_path = Path(EDIT_SERVER_LOG_FILE)
    if not log_path.is_absolute():
        log_path = ROOT_DIR / log_path
    _attach_file_handler("handlers.rpc_handler", log_path, level_name=EDIT_SERVER_LOG_LEVEL)
    _attach_file_handler("agent.edit_orchestrator", log_path, level_name=EDIT_SERVER_LOG_LEVEL)

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:4173,http://localhost:5173,http://localhost:5174",
    ).split(",")
    if origin.strip()
]

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))

app = FastAPI(title="Timeline Edit Server")
app.state.session_manager = SessionManager()


app.include_router(health_router)
app.include_router(rpc_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_origin_regex=r"^null$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)

if __name__ == "__main__":
    uvicorn.run(app, host=HOST, port=PORT)
