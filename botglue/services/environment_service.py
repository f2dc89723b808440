import asyncio
import logging
from typing import List

from ..config import PodmanConfig
from ..exceptions import BotglueError, DriverError, EnvironmentConflict, EnvironmentNotFound
from ..models.environment import EnvironmentStatus
from ..schemas.environment import Environment, EnvironmentCreate, ExecResult
from .environment_store import EnvironmentStore
from .podman_service import PodmanService, container_name
from .port_allocator import allocate_ports

logger = logging.getLogger(__name__)


class EnvironmentService:
    """Owns the environment state machine.

    Persisted state is re-read at the start of every operation instead of
    being carried between calls. Operations on the same or different
    environments may run concurrently and are not locked against each other.
    """
    
    def __init__(self, store: EnvironmentStore, driver: PodmanService, config: PodmanConfig):
        self.store = store
        self.driver = driver
        self.config = config
    
    async def get(self, env_id: str) -> Environment:
        env = await self.store.get_environment(env_id)
        if env is None:
            raise EnvironmentNotFound(env_id)
        return env
    
    async def list(self, project_id: str) -> List[Environment]:
        return await self.store.list_environments(project_id)
    
    async def create(self, data: EnvironmentCreate) -> Environment:
        """Persist a new environment, allocate its ports and start its container.

        If a step fails after the record exists, or the caller is cancelled
        (e.g. by a deadline), the record is marked destroyed, any container
        already started is removed, and the original error is raised.
        """
        env = await self.store.create_environment(data.project_id, data.branch)
        logger.info(f"Creating environment {env.id} for {data.project_id}@{data.branch}")

        name = container_name(env.id, self.config.container_name_prefix)
        # Name or id of a container that may exist and must go on failure
        container_ref = ""
        container_id = ""

        try:
            used_ports = await self.store.used_ports()
            ports = allocate_ports(self.config, used_ports, data.ports)

            # podman run can leave a named container behind if it is cut off
            container_ref = name
            container_id = await self.driver.create(name, data.image, ports)

            # Another create may have claimed the same ports since used_ports was read
            updated = await self.store.update_container(
                env.id, container_id, ports, EnvironmentStatus.RUNNING
            )
        except asyncio.CancelledError:
            await asyncio.shield(self._abort_create(env.id, container_id or container_ref, "cancelled"))
            raise
        except BotglueError as e:
            await self._abort_create(env.id, container_id, e)
            raise

        if not updated:
            await self._discard_container(container_id)
            raise EnvironmentNotFound(env.id)
        
        logger.info(f"Environment {env.id} is running in container {container_id[:12]}")
        return await self.get(env.id)
    
    async def pause(self, env_id: str):
        env = await self.get(env_id)
        self._require_transition(env, EnvironmentStatus.PAUSED, "pause")
        
        # A driver failure propagates before the status is touched
        if env.container_id:
            await self.driver.stop(env.container_id)
        
        await self._set_status(env_id, EnvironmentStatus.PAUSED)
    
    async def resume(self, env_id: str):
        env = await self.get(env_id)
        self._require_transition(env, EnvironmentStatus.RUNNING, "resume")
        
        if env.container_id:
            await self.driver.start(env.container_id)
        
        await self._set_status(env_id, EnvironmentStatus.RUNNING)
    
    async def exec(self, env_id: str, command: str) -> ExecResult:
        env = await self.get(env_id)
        self._require_status(env, EnvironmentStatus.RUNNING, "exec in")
        if not env.container_id:
            raise EnvironmentConflict("no container", env.status)
        
        return await self.driver.exec(env.container_id, command)
    
    async def delete(self, env_id: str):
        """Remove the container best-effort, then always remove the record"""
        env = await self.get(env_id)
        
        if env.container_id:
            try:
                await self.driver.remove(env.container_id)
            except DriverError as e:
                logger.warning(
                    f"Failed to remove container {env.container_id} of environment {env_id}, "
                    f"it may still be running: {e}"
                )
        
        if not await self.store.delete_environment(env_id):
            raise EnvironmentNotFound(env_id)
        logger.info(f"Deleted environment {env_id}")
    
    async def _set_status(self, env_id: str, status: EnvironmentStatus):
        if not await self.store.update_status(env_id, status):
            raise EnvironmentNotFound(env_id)
        logger.info(f"Environment {env_id} is now {status.value}")
    
    def _require_status(self, env: Environment, required: EnvironmentStatus, action: str):
        if env.status is not required:
            raise self._conflict(env, action)

    def _require_transition(self, env: Environment, target: EnvironmentStatus, action: str):
        # Only create moves an environment out of creating
        if env.status is EnvironmentStatus.CREATING or not env.status.can_transition_to(target):
            raise self._conflict(env, action)

    def _conflict(self, env: Environment, action: str) -> EnvironmentConflict:
        return EnvironmentConflict(
            f"cannot {action} environment {env.id}: status is {env.status.value}",
            env.status
        )
    
    async def _abort_create(self, env_id: str, container_ref: str, error: object):
        if container_ref:
            await self._discard_container(container_ref)
        await self._rollback_create(env_id, error)

    async def _rollback_create(self, env_id: str, error: object):
        """Mark a half-created environment destroyed. Never raises."""
        logger.warning(f"Create of environment {env_id} failed, marking it destroyed: {error}")
        try:
            await self.store.update_status(env_id, EnvironmentStatus.DESTROYED)
        except BotglueError as rollback_error:
            logger.error(
                f"Rollback of environment {env_id} failed: {rollback_error} "
                f"(original error: {error})"
            )
    
    async def _discard_container(self, container_id: str):
        try:
            await self.driver.remove(container_id)
        except DriverError as e:
            logger.warning(f"Failed to remove orphaned container {container_id}: {e}")
