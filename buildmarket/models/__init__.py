from buildmarket.models.user import User
from buildmarket.models.project import (
    Project,
    ProjectMilestone,
    ProjectStatus,
    MilestoneStatus,
)

__all__ = [
    "User",
    "Project",
    "ProjectMilestone",
    "ProjectStatus",
    "MilestoneStatus",
]
