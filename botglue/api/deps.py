from fastapi import Request

from ..services.environment_service import EnvironmentService


def get_environment_service(request: Request) -> EnvironmentService:
    """Orchestrator built at startup and shared by all requests"""
    return request.app.state.environment_service
