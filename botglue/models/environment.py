from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from ..database import Base
import uuid
import enum

class EnvironmentStatus(str, enum.Enum):
    CREATING = "creating"
    RUNNING = "running"
    PAUSED = "paused"
    DESTROYED = "destroyed"
    
    @property
    def is_terminal(self) -> bool:
        return self is EnvironmentStatus.DESTROYED
    
    def can_transition_to(self, target: "EnvironmentStatus") -> bool:
        """creating -> running <-> paused, any non-terminal state -> destroyed"""
        if self.is_terminal:
            return False
        if target is EnvironmentStatus.DESTROYED:
            return True
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    EnvironmentStatus.CREATING: {EnvironmentStatus.RUNNING},
    EnvironmentStatus.RUNNING: {EnvironmentStatus.PAUSED},
    EnvironmentStatus.PAUSED: {EnvironmentStatus.RUNNING},
    EnvironmentStatus.DESTROYED: set(),
}


class Environment(Base):
    __tablename__ = "environments"
    
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)
    branch = Column(String, nullable=False)
    
    # Lifecycle
    status = Column(
        SQLEnum(EnvironmentStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=EnvironmentStatus.CREATING
    )
    container_id = Column(String, nullable=False, default="")  # Empty until the runtime reports one
    ports = Column(JSON, nullable=False, default=list)  # List of port mapping dicts
    
    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    last_active = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    project = relationship("Project", back_populates="environments")
