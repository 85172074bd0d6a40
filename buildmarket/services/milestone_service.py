"""
Milestone store - CRUD for project milestones plus completion recompute

Every mutation recomputes the owning project's completion_percentage in the
same session before committing, so the pair lands in one transaction.
"""
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from buildmarket.config import get_settings
from buildmarket.models.project import MilestoneStatus, Project, ProjectMilestone
from buildmarket.models.user import User
from buildmarket.services.progress import compute_completion
from buildmarket.utils.errors import NotFoundError, StorageError, ValidationError
from buildmarket.utils.logger import get_logger
from buildmarket.utils.validators import (
    validate_milestone_status,
    validate_order,
    validate_progress_weight,
    validate_title,
)

settings = get_settings()
logger = get_logger(__name__)

COMPLETED = MilestoneStatus.COMPLETED.value
PENDING = MilestoneStatus.PENDING.value

UPDATABLE_FIELDS = {
    "title",
    "description",
    "due_date",
    "completed_date",
    "status",
    "order",
    "progress_weight",
    "estimated_duration",
}


async def commit_or_raise(db: AsyncSession, action: str) -> None:
    """Commit, turning driver failures into StorageError after a rollback"""
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Storage failure while trying to {action}: {e}")
        raise StorageError(str(e)) from e


async def get_project(db: AsyncSession, project_id: int) -> Project:
    try:
        result = await db.execute(select(Project).where(Project.id == project_id))
    except SQLAlchemyError as e:
        logger.error(f"Failed to load project {project_id}: {e}")
        raise StorageError(str(e)) from e
    project = result.scalar_one_or_none()
    if not project:
        raise NotFoundError("Project", project_id)
    return project


async def get_milestone(db: AsyncSession, milestone_id: int) -> ProjectMilestone:
    try:
        result = await db.execute(
            select(ProjectMilestone).where(ProjectMilestone.id == milestone_id)
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to load milestone {milestone_id}: {e}")
        raise StorageError(str(e)) from e
    milestone = result.scalar_one_or_none()
    if not milestone:
        raise NotFoundError("Milestone", milestone_id)
    return milestone


async def _fetch_milestones(db: AsyncSession, project_id: int) -> List[ProjectMilestone]:
    try:
        result = await db.execute(
            select(ProjectMilestone)
            .where(ProjectMilestone.project_id == project_id)
            .order_by(ProjectMilestone.order.asc(), ProjectMilestone.id.asc())
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to list milestones for project {project_id}: {e}")
        raise StorageError(str(e)) from e
    return list(result.scalars().all())


async def list_milestones(db: AsyncSession, project_id: int) -> List[ProjectMilestone]:
    """All milestones of a project, by order then creation"""
    await get_project(db, project_id)
    return await _fetch_milestones(db, project_id)


async def recompute_project_completion(db: AsyncSession, project_id: int) -> int:
    """
    Re-aggregate a project's milestones and store the result on the project.
    Does not commit; callers commit together with their milestone write.
    """
    project = await get_project(db, project_id)
    try:
        await db.flush()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to flush milestone changes for project {project_id}: {e}")
        raise StorageError(str(e)) from e

    milestones = await _fetch_milestones(db, project_id)
    completion = compute_completion(milestones, settings.COMPLETION_MODE)

    if project.completion_percentage != completion:
        logger.info(
            f"Project {project_id} completion {project.completion_percentage} -> {completion}"
        )
    project.completion_percentage = completion
    project.updated_at = datetime.utcnow()
    return completion


def _new_milestone(
    project_id: int,
    title: str,
    description: Optional[str] = None,
    due_date: Optional[date] = None,
    order: int = 0,
    progress_weight: Optional[int] = None,
    estimated_duration: Optional[int] = None,
) -> ProjectMilestone:
    if progress_weight is None:
        progress_weight = settings.DEFAULT_PROGRESS_WEIGHT
    return ProjectMilestone(
        project_id=project_id,
        title=validate_title(title),
        description=description,
        due_date=due_date,
        status=PENDING,
        completed_date=None,
        order=validate_order(order),
        progress_weight=validate_progress_weight(progress_weight),
        estimated_duration=estimated_duration,
    )


async def create_milestone(
    db: AsyncSession,
    principal: User,
    project_id: int,
    title: str,
    description: Optional[str] = None,
    due_date: Optional[date] = None,
    order: int = 0,
    progress_weight: Optional[int] = None,
    estimated_duration: Optional[int] = None,
) -> ProjectMilestone:
    """Create a pending milestone and refresh the project's completion"""
    milestone = _new_milestone(
        project_id, title, description, due_date, order, progress_weight, estimated_duration
    )
    await get_project(db, project_id)

    db.add(milestone)
    await recompute_project_completion(db, project_id)
    await commit_or_raise(db, "create milestone")
    await db.refresh(milestone)

    logger.info(
        f"User {principal.id} created milestone {milestone.id} "
        f"'{milestone.title}' on project {project_id}"
    )
    return milestone


async def create_milestones_bulk(
    db: AsyncSession,
    principal: User,
    project_id: int,
    items: Iterable[Dict[str, Any]],
) -> List[ProjectMilestone]:
    """
    Create many milestones in one transaction and recompute completion once.
    Nothing is persisted if any item is invalid or the commit fails.
    """
    await get_project(db, project_id)
    milestones = [_new_milestone(project_id, **item) for item in items]
    if not milestones:
        raise ValidationError("milestones", "must contain at least one milestone")

    db.add_all(milestones)
    await recompute_project_completion(db, project_id)
    await commit_or_raise(db, "create milestones in bulk")
    for milestone in milestones:
        await db.refresh(milestone)

    logger.info(
        f"User {principal.id} created {len(milestones)} milestones on project {project_id}"
    )
    return milestones


def apply_milestone_updates(milestone: ProjectMilestone, updates: Dict[str, Any]) -> None:
    """
    Merge a partial update into a milestone, applying status transition rules.

    completed_date is stamped when status moves into completed and cleared
    when it moves out, unless the caller passed completed_date explicitly.
    Re-completing a completed milestone keeps its original stamp.
    """
    unknown = set(updates) - UPDATABLE_FIELDS
    if "project_id" in unknown:
        raise ValidationError("project_id", "cannot be changed")
    if unknown:
        raise ValidationError(sorted(unknown)[0], "is not an updatable field")

    updates = dict(updates)
    if "title" in updates:
        updates["title"] = validate_title(updates["title"])
    if "progress_weight" in updates:
        updates["progress_weight"] = validate_progress_weight(updates["progress_weight"])
    if "order" in updates:
        updates["order"] = validate_order(updates["order"])
    if "status" in updates:
        if updates["status"] is None:
            raise ValidationError("status", "must not be null")
        updates["status"] = validate_milestone_status(updates["status"])

    previous_status = milestone.status
    new_status = updates.get("status", previous_status)
    explicit_date = "completed_date" in updates

    if explicit_date and updates["completed_date"] is not None and new_status != COMPLETED:
        raise ValidationError("completed_date", "can only be set on a completed milestone")
    if explicit_date and updates["completed_date"] is None and new_status == COMPLETED:
        raise ValidationError("completed_date", "is required on a completed milestone")

    for key, value in updates.items():
        setattr(milestone, key, value)

    if not explicit_date:
        if new_status == COMPLETED and previous_status != COMPLETED:
            milestone.completed_date = datetime.utcnow()
        elif new_status != COMPLETED and previous_status == COMPLETED:
            milestone.completed_date = None

    milestone.updated_at = datetime.utcnow()


async def update_milestone(
    db: AsyncSession,
    principal: User,
    milestone_id: int,
    updates: Dict[str, Any],
) -> ProjectMilestone:
    """Partial update of a milestone, then completion recompute"""
    milestone = await get_milestone(db, milestone_id)
    previous_status = milestone.status

    apply_milestone_updates(milestone, updates)
    await recompute_project_completion(db, milestone.project_id)
    await commit_or_raise(db, "update milestone")
    await db.refresh(milestone)

    if milestone.status != previous_status:
        logger.info(
            f"User {principal.id} moved milestone {milestone_id} "
            f"from {previous_status} to {milestone.status}"
        )
    else:
        logger.info(f"User {principal.id} updated milestone {milestone_id}: {sorted(updates)}")
    return milestone


async def toggle_milestone(
    db: AsyncSession,
    principal: User,
    milestone_id: int,
) -> ProjectMilestone:
    """Complete an open milestone, or reopen a completed one as pending"""
    milestone = await get_milestone(db, milestone_id)
    target = PENDING if milestone.status == COMPLETED else COMPLETED
    return await update_milestone(db, principal, milestone_id, {"status": target})


async def delete_milestone(
    db: AsyncSession,
    principal: User,
    milestone_id: int,
) -> None:
    """Remove a milestone. Siblings keep their order and weight."""
    milestone = await get_milestone(db, milestone_id)
    project_id = milestone.project_id

    await db.delete(milestone)
    await recompute_project_completion(db, project_id)
    await commit_or_raise(db, "delete milestone")

    logger.info(f"User {principal.id} deleted milestone {milestone_id} from project {project_id}")
