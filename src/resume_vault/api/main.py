# API Server - FastAPI application
#
# REST API for the resume optimizer's encrypted API key storage.

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..core import EventSeverity, EventType, log_security_event
from .api_key_routes import router as api_key_router
from .security import initialize_session_token

logger = logging.getLogger(__name__)

_allowed_origins = [
    "http://localhost:3000", "http://127.0.0.1:3000",
    "http://localhost:5173", "http://127.0.0.1:5173",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    initialize_session_token()
    log_security_event(EventType.SYSTEM_START, EventSeverity.INFO, "API server started")
    logger.info("Resume Vault API started")
    yield
    log_security_event(EventType.SYSTEM_STOP, EventSeverity.INFO, "API server stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Resume Vault API",
        description="Encrypted per-user LLM API key storage",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_key_router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "version": __version__}

    return app


app = create_app()
