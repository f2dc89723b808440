"""Error vocabulary shared by the driver, the allocator and the orchestrator.

The HTTP layer maps these onto status codes in ``botglue.api.errors``.
"""
from typing import Optional


class BotglueError(Exception):
    """Base class for every error raised by the daemon core"""


class DriverError(BotglueError):
    """Container runtime failure"""


class RuntimeUnavailable(DriverError):
    """The runtime executable could not be launched or did not answer in time"""
    
    def __init__(self, message: str = "podman is not installed or not in PATH"):
        super().__init__(message)


class CommandFailed(DriverError):
    """The runtime launched but the subcommand exited non-zero"""
    
    def __init__(self, command: str, stderr: str, exit_code: int):
        self.command = command
        self.stderr = stderr
        self.exit_code = exit_code
        super().__init__(f"podman command '{command}' failed (exit {exit_code}): {stderr}")


class InvalidRequest(DriverError):
    """Validation failure detected before the runtime is invoked"""


class PortError(InvalidRequest):
    pass


class PortConflict(PortError):
    def __init__(self, port: int):
        self.port = port
        super().__init__(f"port {port} is already in use")


class PortRangeExhausted(PortError):
    def __init__(self, start: int, end: int):
        self.start = start
        self.end = end
        super().__init__("port range exhausted, no available ports")


class EnvironmentNotFound(BotglueError):
    def __init__(self, environment_id: str):
        self.environment_id = environment_id
        super().__init__(f"environment {environment_id} not found")


class ProjectNotFound(BotglueError):
    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"project {project_id} not found")


class EnvironmentConflict(BotglueError):
    """Lifecycle call issued against an environment in an incompatible status"""
    
    def __init__(self, message: str, status: Optional[object] = None):
        self.status = status
        super().__init__(message)


class PersistenceError(BotglueError):
    """Wraps failures raised by the durable store"""
