from .podman_service import PodmanService, container_name
from .port_allocator import allocate_ports
from .environment_store import EnvironmentStore
from .environment_service import EnvironmentService

__all__ = [
    "PodmanService",
    "container_name",
    "allocate_ports",
    "EnvironmentStore",
    "EnvironmentService"
]
