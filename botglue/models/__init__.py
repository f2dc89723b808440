from .project import Project
from .environment import Environment, EnvironmentStatus

__all__ = [
    "Project",
    "Environment",
    "EnvironmentStatus"
]
