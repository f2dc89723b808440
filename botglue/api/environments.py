from fastapi import APIRouter, Depends, Response, status
from typing import List

from ..schemas import Environment, EnvironmentCreate, ExecRequest, ExecResult
from ..services.environment_service import EnvironmentService
from .deps import get_environment_service

router = APIRouter()

@router.get("", response_model=List[Environment])
async def list_environments(
    project_id: str,
    service: EnvironmentService = Depends(get_environment_service)
):
    """List environments of a project, newest first"""
    return await service.list(project_id)

@router.post("", response_model=Environment, status_code=status.HTTP_201_CREATED)
async def create_environment(
    data: EnvironmentCreate,
    service: EnvironmentService = Depends(get_environment_service)
):
    """Create an environment and start its container"""
    return await service.create(data)

@router.get("/{env_id}", response_model=Environment)
async def get_environment(
    env_id: str,
    service: EnvironmentService = Depends(get_environment_service)
):
    return await service.get(env_id)

@router.post("/{env_id}/pause")
async def pause_environment(
    env_id: str,
    service: EnvironmentService = Depends(get_environment_service)
):
    """Stop the container of a running environment"""
    await service.pause(env_id)
    return Response(status_code=status.HTTP_200_OK)

@router.post("/{env_id}/resume")
async def resume_environment(
    env_id: str,
    service: EnvironmentService = Depends(get_environment_service)
):
    """Start the container of a paused environment"""
    await service.resume(env_id)
    return Response(status_code=status.HTTP_200_OK)

@router.delete("/{env_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_environment(
    env_id: str,
    service: EnvironmentService = Depends(get_environment_service)
):
    """Delete an environment, the record is removed even if the container is not"""
    await service.delete(env_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.post("/{env_id}/exec", response_model=ExecResult)
async def exec_in_environment(
    env_id: str,
    request: ExecRequest,
    service: EnvironmentService = Depends(get_environment_service)
):
    """Run a shell command in the environment, non-zero exit codes are returned as data"""
    return await service.exec(env_id, request.command)
