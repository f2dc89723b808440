from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
from ..models.environment import EnvironmentStatus

class PortMapping(BaseModel):
    name: str
    container_port: int = Field(..., ge=1, le=65535)
    host_port: Optional[int] = Field(None, ge=1, le=65535, description="None means assign automatically")
    protocol: Optional[str] = Field(None, description="Transport hint such as tcp or udp")

class EnvironmentCreate(BaseModel):
    project_id: str
    branch: str = Field(..., min_length=1)
    image: Optional[str] = None
    ports: List[PortMapping] = []

class Environment(BaseModel):
    id: str
    project_id: str
    branch: str
    status: EnvironmentStatus
    container_id: str = ""
    ports: List[PortMapping] = []
    created_at: datetime
    last_active: datetime
    
    class Config:
        from_attributes = True

class ExecRequest(BaseModel):
    command: str = Field(..., min_length=1)

class ExecResult(BaseModel):
    output: str
    exit_code: int
