"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the scheduling-service client, session state and dashboard workflow,
registers routers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from fairshift.controllers.dashboard_controller import router as dashboard_router
from fairshift.repository.schedule_client import ScheduleServiceClient
from fairshift.repository.session_repository import SessionStateRepository
from fairshift.services.dashboard_service import DashboardWorkflowService
from fairshift.utils.config import Settings, get_settings
from fairshift.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Instantiates all services with explicit dependency injection via app.state.
    Every dependency is constructed here; nothing lives in module globals.
    """
    settings = settings or get_settings()

    # --- Repositories (remote service + local session state) ---
    schedule_client = ScheduleServiceClient(settings)
    session_repository = SessionStateRepository(settings)

    # --- Services ---
    dashboard_service = DashboardWorkflowService(
        client=schedule_client,
        session_repository=session_repository,
        settings=settings,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield
        app.state.dashboard_service.release()
        await app.state.schedule_client.aclose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(dashboard_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.schedule_client = schedule_client
    app.state.session_repository = session_repository
    app.state.dashboard_service = dashboard_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Order matters:
      1. Session schema must exist before the saved range is read.
      2. The saved range (or the current week) selects the initial week key.
    """
    session_repository: SessionStateRepository = app.state.session_repository
    dashboard_service: DashboardWorkflowService = app.state.dashboard_service

    logger.info("Startup: initializing session state schema")
    session_repository.initialize_database()

    selected = dashboard_service.restore_session()
    logger.info("Startup: restored selected week %s", selected.week_start.isoformat())

    logger.info("Startup complete, system ready")


# Module-level app object for uvicorn
app = create_app()
