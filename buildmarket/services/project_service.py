"""
Project records - creation, listing and descriptive updates
"""
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from buildmarket.models.project import Project, ProjectStatus
from buildmarket.models.user import User
from buildmarket.services.milestone_service import commit_or_raise, get_project
from buildmarket.utils.errors import StorageError, ValidationError
from buildmarket.utils.logger import get_logger
from buildmarket.utils.validators import validate_project_status, validate_title

logger = get_logger(__name__)

UPDATABLE_FIELDS = {
    "title",
    "description",
    "project_type",
    "budget_range",
    "timeline",
    "location",
    "status",
}


async def create_project(db: AsyncSession, principal: User, data: Dict[str, Any]) -> Project:
    data = dict(data)
    data["title"] = validate_title(data.get("title"))
    data["status"] = validate_project_status(data.get("status") or ProjectStatus.ACTIVE.value)

    project = Project(user_id=principal.id, completion_percentage=0, **data)
    db.add(project)
    await commit_or_raise(db, "create project")
    await db.refresh(project)

    logger.info(f"User {principal.id} created project {project.id} '{project.title}'")
    return project


async def list_projects(db: AsyncSession, principal: User) -> List[Project]:
    """Projects owned by the principal, most recently touched first"""
    try:
        result = await db.execute(
            select(Project)
            .where(Project.user_id == principal.id)
            .order_by(Project.updated_at.desc(), Project.id.desc())
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to list projects for user {principal.id}: {e}")
        raise StorageError(str(e)) from e
    return list(result.scalars().all())


async def update_project(
    db: AsyncSession, principal: User, project_id: int, updates: Dict[str, Any]
) -> Project:
    """Update descriptive fields or lifecycle status. Completion is never client-written."""
    if "completion_percentage" in updates:
        raise ValidationError("completion_percentage", "is computed from milestones")
    unknown = set(updates) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(sorted(unknown)[0], "is not an updatable field")

    project = await get_project(db, project_id)
    updates = dict(updates)
    for key, value in updates.items():
        if value is None:
            raise ValidationError(key, "must not be null")
    if "title" in updates:
        updates["title"] = validate_title(updates["title"])
    if "status" in updates:
        updates["status"] = validate_project_status(updates["status"])

    for key, value in updates.items():
        setattr(project, key, value)
    project.updated_at = datetime.utcnow()

    await commit_or_raise(db, "update project")
    await db.refresh(project)
    logger.info(f"User {principal.id} updated project {project_id}: {sorted(updates)}")
    return project
