"""
Milestone API endpoints - weighted project checkpoints and status toggling
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import date, datetime
from pydantic import BaseModel

from buildmarket.database import get_db
from buildmarket.models.user import User
from buildmarket.models.project import ProjectMilestone
from buildmarket.api.auth import get_current_user
from buildmarket.services import milestone_service
from buildmarket.services.progress import display_status, is_overdue

router = APIRouter()


# Typical construction milestones; weights sum to 130 and are not normalized
CONSTRUCTION_PRESETS = [
    {"title": "Site Preparation", "description": "Clear land, excavation, utilities setup", "progress_weight": 5},
    {"title": "Foundation", "description": "Pour concrete foundation and basement", "progress_weight": 15},
    {"title": "Framing", "description": "Frame walls, roof structure, windows/doors", "progress_weight": 20},
    {"title": "Electrical Rough-in", "description": "Install wiring, panels, outlets", "progress_weight": 8},
    {"title": "Plumbing Rough-in", "description": "Install pipes, fixtures, water lines", "progress_weight": 8},
    {"title": "HVAC Installation", "description": "Install heating, cooling, ductwork", "progress_weight": 7},
    {"title": "Insulation", "description": "Install wall and attic insulation", "progress_weight": 5},
    {"title": "Drywall", "description": "Hang, tape, and finish drywall", "progress_weight": 10},
    {"title": "Flooring", "description": "Install hardwood, tile, carpet", "progress_weight": 8},
    {"title": "Interior Paint", "description": "Prime and paint all interior walls", "progress_weight": 6},
    {"title": "Kitchen Installation", "description": "Install cabinets, countertops, appliances", "progress_weight": 8},
    {"title": "Bathroom Finishing", "description": "Install fixtures, tile, vanities", "progress_weight": 6},
    {"title": "Exterior Siding", "description": "Install siding, trim, exterior paint", "progress_weight": 10},
    {"title": "Roofing", "description": "Install shingles, gutters, flashing", "progress_weight": 12},
    {"title": "Final Inspections", "description": "Final walkthrough and punch list", "progress_weight": 2},
]


# --- Pydantic Schemas ---

class MilestoneResponse(BaseModel):
    id: int
    project_id: int
    title: str
    description: Optional[str]
    due_date: Optional[date]
    completed_date: Optional[datetime]
    status: str
    display_status: str
    is_overdue: bool = False
    order: int
    progress_weight: int
    estimated_duration: Optional[int]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class MilestoneCreate(BaseModel):
    title: str
    description: Optional[str] = None
    due_date: Optional[date] = None
    order: int = 0
    progress_weight: Optional[int] = None
    estimated_duration: Optional[int] = None

    class Config:
        extra = "forbid"


class MilestoneUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[date] = None
    completed_date: Optional[datetime] = None
    status: Optional[str] = None
    order: Optional[int] = None
    progress_weight: Optional[int] = None
    estimated_duration: Optional[int] = None

    class Config:
        extra = "forbid"


class MilestonePreset(BaseModel):
    title: str
    description: str
    progress_weight: int


# --- Helper ---

def build_milestone_response(m: ProjectMilestone) -> MilestoneResponse:
    return MilestoneResponse(
        id=m.id,
        project_id=m.project_id,
        title=m.title,
        description=m.description,
        due_date=m.due_date,
        completed_date=m.completed_date,
        status=m.status,
        display_status=display_status(m),
        is_overdue=is_overdue(m),
        order=m.order,
        progress_weight=m.progress_weight,
        estimated_duration=m.estimated_duration,
        created_at=m.created_at,
        updated_at=m.updated_at,
    )


# --- Project-scoped endpoints ---

@router.post(
    "/projects/{project_id}/milestones",
    response_model=MilestoneResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_milestone(
    project_id: int,
    data: MilestoneCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Add a pending milestone to a project"""
    milestone = await milestone_service.create_milestone(
        db, current_user, project_id, **data.model_dump()
    )
    return build_milestone_response(milestone)


@router.get("/projects/{project_id}/milestones", response_model=List[MilestoneResponse])
async def list_milestones(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """All milestones of a project, by order"""
    milestones = await milestone_service.list_milestones(db, project_id)
    return [build_milestone_response(m) for m in milestones]


# --- Milestone endpoints ---

@router.get("/milestones/presets", response_model=List[MilestonePreset])
async def list_presets(current_user: User = Depends(get_current_user)):
    """Typical construction milestones with suggested weights"""
    return CONSTRUCTION_PRESETS


@router.get("/milestones/{milestone_id}", response_model=MilestoneResponse)
async def get_milestone(
    milestone_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    milestone = await milestone_service.get_milestone(db, milestone_id)
    return build_milestone_response(milestone)


@router.patch("/milestones/{milestone_id}", response_model=MilestoneResponse)
async def update_milestone(
    milestone_id: int,
    data: MilestoneUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Partial update; only fields present in the body are applied"""
    milestone = await milestone_service.update_milestone(
        db, current_user, milestone_id, data.model_dump(exclude_unset=True)
    )
    return build_milestone_response(milestone)


@router.post("/milestones/{milestone_id}/toggle", response_model=MilestoneResponse)
async def toggle_milestone(
    milestone_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Mark complete, or reopen a completed milestone"""
    milestone = await milestone_service.toggle_milestone(db, current_user, milestone_id)
    return build_milestone_response(milestone)


@router.delete("/milestones/{milestone_id}")
async def delete_milestone(
    milestone_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Remove a milestone; siblings keep their order and weight"""
    await milestone_service.delete_milestone(db, current_user, milestone_id)
    return {"message": "Milestone deleted"}
