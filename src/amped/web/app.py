"""
Amped Web - FastAPI application.

Hosts the onboarding router under /api. Each user's answers live in their own
JSON settings file next to the configured settings path.
"""

import logging
import re
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from amped import __version__
from amped.config import AmpedSettings, get_settings
from amped.logging_setup import configure_logging
from onboarding.api import SessionRegistry, configure_registry
from onboarding.api import router as onboarding_router
from onboarding.store import JsonFileSettingsStore

logger = logging.getLogger(__name__)

_SAFE_USER_ID = re.compile(r"[^A-Za-z0-9_-]")

LOCAL_USER = "local"


def user_store_path(settings: AmpedSettings, user_id: str) -> Path:
    """Settings file for a user. The local user uses settings_path itself."""
    if user_id == LOCAL_USER:
        return settings.settings_path
    safe = _SAFE_USER_ID.sub("_", user_id) or "_"
    return settings.settings_path.parent / "users" / f"{safe}.json"


def build_registry(settings: AmpedSettings) -> SessionRegistry:
    """Session registry backed by per-user JSON settings files."""
    return SessionRegistry(
        store_factory=lambda user_id: JsonFileSettingsStore(user_store_path(settings, user_id)),
        questions=settings.question_table(),
        hard_close_threshold=settings.hard_close_threshold_seconds,
        interaction_delay=settings.interaction_delay_seconds,
    )


def create_app(settings: AmpedSettings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    configure_registry(build_registry(settings))

    app = FastAPI(title="Amped", version=__version__)

    # CORS middleware for the frontend dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",  # Vite dev server
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(onboarding_router, prefix="/api")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "env": settings.amped_env}

    logger.info(f"Amped web starting ({settings.amped_env}), settings at {settings.settings_path}")
    return app
