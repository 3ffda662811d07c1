"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from fairshift.services.dashboard_service import DashboardWorkflowService
from fairshift.utils.config import get_settings


def get_dashboard_service(request: Request) -> DashboardWorkflowService:
    service = getattr(request.app.state, "dashboard_service", None)
    if service is None:
        client = getattr(request.app.state, "schedule_client", None)
        session_repository = getattr(request.app.state, "session_repository", None)
        if client is not None and session_repository is not None:
            service = DashboardWorkflowService(
                client=client,
                session_repository=session_repository,
                settings=get_settings(),
            )
            request.app.state.dashboard_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Dashboard service is not initialized",
        )
    return service
