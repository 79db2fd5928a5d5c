"""Application factory that wires settings to a data service and the web UI."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from .backend import DataService
from .config import BACKEND_SUPABASE, Settings, load_settings
from .database import Database, resolve_database_path
from .supabase import SupabaseBackend
from .web import create_app

logger = logging.getLogger("rentify.application")


def create_backend(settings: Settings) -> DataService:
    """Return the data service selected by ``settings.backend``."""

    if settings.backend == BACKEND_SUPABASE:
        if not settings.supabase_url or not settings.supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY must be set when RENTIFY_BACKEND=supabase")
        logger.info("Using Supabase backend at %s", settings.supabase_url)
        return SupabaseBackend(
            settings.supabase_url,
            settings.supabase_key,
            timeout=settings.http_timeout,
        )

    db_path = resolve_database_path(settings.database_path)
    database = Database(db_path)
    database.initialize()
    logger.info("Using local database at %s", db_path)
    return database


def create_application(*, settings: Optional[Settings] = None) -> FastAPI:
    """Create the ASGI application from environment settings."""

    resolved = settings or load_settings()
    return create_app(
        backend=create_backend(resolved),
        session_secret=resolved.session_secret,
        secure_cookies=resolved.secure_cookies,
    )


__all__ = ["create_application", "create_backend"]
