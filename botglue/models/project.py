from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from ..database import Base
import uuid

DEFAULT_NOTIFICATION_PREFS = {
    "blocked": True,
    "error": True,
    "finished": True,
    "progress": False
}

class Project(Base):
    __tablename__ = "projects"
    
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    repo_url = Column(String, nullable=False)
    default_branch = Column(String, nullable=False, default="main")
    project_type = Column(String, nullable=False, default="standard")
    notification_prefs = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_NOTIFICATION_PREFS))
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    environments = relationship("Environment", back_populates="project", cascade="all, delete-orphan")
