import asyncio
import functools
import logging
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional, Sequence, Set, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..exceptions import PersistenceError, PortConflict, ProjectNotFound
from ..models import Environment as EnvironmentModel, EnvironmentStatus, Project
from ..schemas.environment import Environment, PortMapping

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EnvironmentStore:
    """Durable environment records behind one exclusive lock.

    Each public call takes the lock, runs in its own session on the default
    executor, commits, and releases the lock on every exit path. The lock
    does not span calls: two orchestrator operations can interleave between
    their individual store calls.

    Lookups return detached ``Environment`` snapshots, and updates return
    False instead of raising when the id does not exist.
    """
    
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory
        self._lock = asyncio.Lock()
    
    async def create_environment(
        self,
        project_id: str,
        branch: str,
        container_id: Optional[str] = None,
        ports: Optional[Sequence[PortMapping]] = None
    ) -> Environment:
        return await self._run(self._create, project_id, branch, container_id or "", list(ports or []))
    
    async def get_environment(self, env_id: str) -> Optional[Environment]:
        return await self._run(self._get, env_id)
    
    async def list_environments(self, project_id: str) -> List[Environment]:
        return await self._run(self._list, project_id)
    
    async def update_status(self, env_id: str, status: EnvironmentStatus) -> bool:
        return await self._run(self._update_status, env_id, status)
    
    async def update_container(
        self,
        env_id: str,
        container_id: str,
        ports: Sequence[PortMapping],
        status: EnvironmentStatus
    ) -> bool:
        """Persist the container id, resolved ports and status in one write.

        Raises PortConflict if another non-destroyed environment claimed one
        of the host ports since they were allocated.
        """
        return await self._run(self._update_container, env_id, container_id, list(ports), status)
    
    async def delete_environment(self, env_id: str) -> bool:
        return await self._run(self._delete, env_id)
    
    async def used_ports(self) -> Set[int]:
        """Host ports bound to any environment that is not destroyed"""
        return await self._run(self._used_ports)
    
    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        async with self._lock:
            loop = asyncio.get_running_loop()
            future = loop.run_in_executor(None, functools.partial(self._in_session, func, *args))
            try:
                return await asyncio.shield(future)
            except asyncio.CancelledError:
                # The worker thread cannot be stopped; hold the lock until its session is closed
                await asyncio.wait([future])
                raise
    
    def _in_session(self, func: Callable[..., T], *args: Any) -> T:
        db = self._session_factory()
        try:
            result = func(db, *args)
            db.commit()
            return result
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Environment store operation {func.__name__} failed: {e}")
            raise PersistenceError(f"Database operation failed: {e}") from e
        finally:
            db.close()
    
    def _create(self, db: Session, project_id: str, branch: str, container_id: str,
                ports: List[PortMapping]) -> Environment:
        if db.get(Project, project_id) is None:
            raise ProjectNotFound(project_id)
        
        now = datetime.utcnow()
        env = EnvironmentModel(
            project_id=project_id,
            branch=branch,
            status=EnvironmentStatus.CREATING,
            container_id=container_id,
            ports=_dump_ports(ports),
            created_at=now,
            last_active=now
        )
        db.add(env)
        db.flush()
        return Environment.model_validate(env)
    
    def _get(self, db: Session, env_id: str) -> Optional[Environment]:
        env = db.get(EnvironmentModel, env_id)
        return Environment.model_validate(env) if env else None
    
    def _list(self, db: Session, project_id: str) -> List[Environment]:
        envs = db.query(EnvironmentModel).filter(
            EnvironmentModel.project_id == project_id
        ).order_by(EnvironmentModel.created_at.desc()).all()
        return [Environment.model_validate(env) for env in envs]
    
    def _update_status(self, db: Session, env_id: str, status: EnvironmentStatus) -> bool:
        env = db.get(EnvironmentModel, env_id)
        if not env:
            return False
        env.status = status
        env.last_active = datetime.utcnow()
        return True
    
    def _update_container(self, db: Session, env_id: str, container_id: str,
                          ports: List[PortMapping], status: EnvironmentStatus) -> bool:
        env = db.get(EnvironmentModel, env_id)
        if not env:
            return False
        
        claimed = sorted({p.host_port for p in ports if p.host_port is not None})
        if claimed:
            taken = self._used_ports(db, exclude_id=env_id)
            for port in claimed:
                if port in taken:
                    raise PortConflict(port)
        
        env.container_id = container_id
        env.ports = _dump_ports(ports)
        env.status = status
        env.last_active = datetime.utcnow()
        return True
    
    def _delete(self, db: Session, env_id: str) -> bool:
        env = db.get(EnvironmentModel, env_id)
        if not env:
            return False
        db.delete(env)
        return True
    
    def _used_ports(self, db: Session, exclude_id: Optional[str] = None) -> Set[int]:
        query = db.query(EnvironmentModel.id, EnvironmentModel.ports).filter(
            EnvironmentModel.status != EnvironmentStatus.DESTROYED
        )
        used: Set[int] = set()
        for env_id, ports in query:
            if env_id == exclude_id:
                continue
            used.update(_host_ports(ports))
        return used


def _dump_ports(ports: Iterable[PortMapping]) -> List[dict]:
    return [p.model_dump() for p in ports]


def _host_ports(raw_ports: Any) -> Set[int]:
    # Stored lists are skipped entry by entry when malformed
    if not isinstance(raw_ports, list):
        return set()
    ports = set()
    for entry in raw_ports:
        if isinstance(entry, dict) and isinstance(entry.get("host_port"), int):
            ports.add(entry["host_port"])
    return ports
