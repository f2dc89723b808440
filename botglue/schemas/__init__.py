from .project import NotificationPrefs, Project, ProjectCreate
from .environment import (
    Environment,
    EnvironmentCreate,
    ExecRequest,
    ExecResult,
    PortMapping
)

__all__ = [
    "NotificationPrefs",
    "Project",
    "ProjectCreate",
    "Environment",
    "EnvironmentCreate",
    "ExecRequest",
    "ExecResult",
    "PortMapping"
]
