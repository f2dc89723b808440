from dataclasses import dataclass
from pydantic_settings import BaseSettings
from typing import List, Optional


@dataclass(frozen=True)
class PodmanConfig:
    """Runtime settings shared by the container driver and the port allocator"""
    podman_path: str = "podman"
    port_range_start: int = 10000
    port_range_end: int = 11000
    default_image: str = "ubuntu:22.04"
    container_name_prefix: str = "botglue-"
    timeout_seconds: Optional[float] = None


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./botglue.db"
    
    # Container runtime
    PODMAN_PATH: str = "podman"
    DEFAULT_IMAGE: str = "ubuntu:22.04"
    CONTAINER_NAME_PREFIX: str = "botglue-"
    RUNTIME_TIMEOUT_SECONDS: Optional[float] = None  # No deadline by default
    
    # Automatic host port range, end is exclusive
    PORT_RANGE_START: int = 10000
    PORT_RANGE_END: int = 11000
    
    # Frontend
    FRONTEND_URL: str = "http://localhost:5173"
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]
    
    # Logging
    LOG_LEVEL: str = "INFO"
    
    class Config:
        env_file = ".env"
        case_sensitive = True
    
    def podman_config(self) -> PodmanConfig:
        return PodmanConfig(
            podman_path=self.PODMAN_PATH,
            port_range_start=self.PORT_RANGE_START,
            port_range_end=self.PORT_RANGE_END,
            default_image=self.DEFAULT_IMAGE,
            container_name_prefix=self.CONTAINER_NAME_PREFIX,
            timeout_seconds=self.RUNTIME_TIMEOUT_SECONDS,
        )

settings = Settings()
