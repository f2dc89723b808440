from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from ..database import get_db
from ..models import Environment, EnvironmentStatus, Project
from ..schemas import NotificationPrefs, Project as ProjectSchema, ProjectCreate

router = APIRouter()

@router.get("", response_model=List[ProjectSchema])
async def list_projects(db: Session = Depends(get_db)):
    """List all projects"""
    return db.query(Project).order_by(Project.created_at.desc()).all()

@router.post("", response_model=ProjectSchema, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    db: Session = Depends(get_db)
):
    """Create a new project"""
    prefs = project_data.notification_prefs or NotificationPrefs()
    project = Project(
        name=project_data.name,
        repo_url=project_data.repo_url,
        default_branch=project_data.default_branch or "main",
        project_type=project_data.project_type or "standard",
        notification_prefs=prefs.model_dump()
    )
    
    db.add(project)
    db.commit()
    db.refresh(project)
    
    return project

@router.get("/{project_id}", response_model=ProjectSchema)
async def get_project(
    project_id: str,
    db: Session = Depends(get_db)
):
    """Get a specific project"""
    project = db.query(Project).filter(Project.id == project_id).first()
    
    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found"
        )
    
    return project

@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: str,
    db: Session = Depends(get_db)
):
    """Delete a project and the records of its destroyed environments.

    Refused while any of its environments may still own a container.
    """
    project = db.query(Project).filter(Project.id == project_id).first()
    
    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found"
        )
    
    active = db.query(Environment).filter(
        Environment.project_id == project_id,
        Environment.status != EnvironmentStatus.DESTROYED
    ).count()
    if active:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Project has {active} environment(s) that are not destroyed"
        )
    
    db.delete(project)
    db.commit()
    
    return None
