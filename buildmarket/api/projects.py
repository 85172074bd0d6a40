"""
Projects API endpoints - construction projects, completion and AI timelines
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel

from buildmarket.config import get_settings
from buildmarket.database import get_db
from buildmarket.models.user import User
from buildmarket.models.project import Project
from buildmarket.api.auth import get_current_user
from buildmarket.api.milestones import MilestoneResponse, build_milestone_response
from buildmarket.agents.timeline_planner.agent import timeline_planner
from buildmarket.services import milestone_service, project_service
from buildmarket.services.progress import display_percentage, summarize

settings = get_settings()

router = APIRouter()


# --- Pydantic Schemas ---

class ProjectResponse(BaseModel):
    id: int
    user_id: int
    title: str
    description: str
    project_type: str
    budget_range: str
    timeline: str
    location: str
    status: str
    completion_percentage: int
    display_percentage: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class ProjectDetailResponse(ProjectResponse):
    milestones: List[MilestoneResponse] = []
    total_milestones: int = 0
    completed_milestones: int = 0
    overdue_milestones: int = 0


class ProjectCreate(BaseModel):
    title: str
    description: str = ""
    project_type: str = "General Construction"
    budget_range: str = "Not specified"
    timeline: str = "To be determined"
    location: str = ""
    status: Optional[str] = None

    class Config:
        extra = "forbid"


class ProjectUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    project_type: Optional[str] = None
    budget_range: Optional[str] = None
    timeline: Optional[str] = None
    location: Optional[str] = None
    status: Optional[str] = None

    class Config:
        extra = "forbid"


class CompletionResponse(BaseModel):
    project_id: int
    mode: str
    completion_percentage: int
    stored_completion_percentage: int
    display_percentage: int
    total_weight: int
    completed_weight: int
    total_milestones: int
    completed_milestones: int
    overdue_milestones: int


class TimelinePhaseResponse(BaseModel):
    name: str
    duration: Optional[Any] = None
    description: Optional[str] = None


class TimelineResponse(BaseModel):
    message: str = "Timeline generated successfully"
    milestones_created: int
    total_duration: Optional[str]
    phases: List[TimelinePhaseResponse] = []
    milestones: List[MilestoneResponse]


# --- Helper ---

def _project_fields(p: Project) -> Dict[str, Any]:
    return dict(
        id=p.id,
        user_id=p.user_id,
        title=p.title,
        description=p.description,
        project_type=p.project_type,
        budget_range=p.budget_range,
        timeline=p.timeline,
        location=p.location,
        status=p.status,
        completion_percentage=p.completion_percentage,
        display_percentage=display_percentage(p.completion_percentage),
        created_at=p.created_at,
        updated_at=p.updated_at,
    )


def _build_project_response(p: Project) -> ProjectResponse:
    return ProjectResponse(**_project_fields(p))


# --- Project Endpoints ---

@router.get("/", response_model=List[ProjectResponse])
async def list_projects(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List the caller's projects"""
    projects = await project_service.list_projects(db, current_user)
    return [_build_project_response(p) for p in projects]


@router.post("/", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    data: ProjectCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Post a new project"""
    project = await project_service.create_project(
        db, current_user, data.model_dump(exclude_none=True)
    )
    return _build_project_response(project)


@router.get("/{project_id}", response_model=ProjectDetailResponse)
async def get_project(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Project with its ordered milestones"""
    project = await milestone_service.get_project(db, project_id)
    milestones = await milestone_service.list_milestones(db, project_id)
    summary = summarize(milestones, settings.COMPLETION_MODE)
    return ProjectDetailResponse(
        **_project_fields(project),
        milestones=[build_milestone_response(m) for m in milestones],
        total_milestones=summary["total_milestones"],
        completed_milestones=summary["completed_milestones"],
        overdue_milestones=summary["overdue_milestones"],
    )


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: int,
    data: ProjectUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Update descriptive fields or lifecycle status"""
    project = await project_service.update_project(
        db, current_user, project_id, data.model_dump(exclude_unset=True)
    )
    return _build_project_response(project)


@router.get("/{project_id}/completion", response_model=CompletionResponse)
async def get_completion(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Live aggregation next to the stored value, which may be stale"""
    project = await milestone_service.get_project(db, project_id)
    milestones = await milestone_service.list_milestones(db, project_id)
    summary = summarize(milestones, settings.COMPLETION_MODE)
    return CompletionResponse(
        project_id=project_id,
        mode=settings.COMPLETION_MODE,
        stored_completion_percentage=project.completion_percentage,
        **summary,
    )


@router.post("/{project_id}/generate-timeline", response_model=TimelineResponse)
async def generate_timeline(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Ask the AI planner for a milestone set and create it in one batch"""
    project = await milestone_service.get_project(db, project_id)
    result = await timeline_planner.generate_timeline(db, current_user, project)
    return TimelineResponse(
        milestones_created=result["milestones_created"],
        total_duration=result["total_duration"],
        phases=result["phases"],
        milestones=[build_milestone_response(m) for m in result["milestones"]],
    )
