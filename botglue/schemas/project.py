from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

class NotificationPrefs(BaseModel):
    """Which agent events a project wants to be told about"""
    blocked: bool = True
    error: bool = True
    finished: bool = True
    progress: bool = False

class ProjectBase(BaseModel):
    name: str
    repo_url: str
    default_branch: str = "main"
    project_type: str = "standard"
    notification_prefs: NotificationPrefs = Field(default_factory=NotificationPrefs)

class ProjectCreate(BaseModel):
    name: str
    repo_url: str
    default_branch: Optional[str] = None
    project_type: Optional[str] = None
    notification_prefs: Optional[NotificationPrefs] = None

class Project(ProjectBase):
    id: str
    created_at: datetime
    
    class Config:
        from_attributes = True
