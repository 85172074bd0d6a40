"""
Input validation utilities
"""
from buildmarket.models.project import MilestoneStatus, ProjectStatus
from buildmarket.utils.errors import ValidationError

MIN_PROGRESS_WEIGHT = 1
MAX_PROGRESS_WEIGHT = 100

WRITABLE_MILESTONE_STATUSES = {
    MilestoneStatus.PENDING.value,
    MilestoneStatus.IN_PROGRESS.value,
    MilestoneStatus.COMPLETED.value,
}


def validate_title(title) -> str:
    """Title must be a non-blank string"""
    if title is None or not str(title).strip():
        raise ValidationError("title", "must not be empty")
    return str(title).strip()


def validate_progress_weight(weight) -> int:
    """Weight must be an integer in 1..100"""
    if isinstance(weight, bool) or not isinstance(weight, int):
        raise ValidationError("progress_weight", "must be an integer")
    if not MIN_PROGRESS_WEIGHT <= weight <= MAX_PROGRESS_WEIGHT:
        raise ValidationError(
            "progress_weight",
            f"must be between {MIN_PROGRESS_WEIGHT} and {MAX_PROGRESS_WEIGHT}",
        )
    return weight


def validate_order(order) -> int:
    if isinstance(order, bool) or not isinstance(order, int):
        raise ValidationError("order", "must be an integer")
    return order


def validate_milestone_status(status: str) -> str:
    """Only stored states may be written; overdue is derived"""
    if status == MilestoneStatus.OVERDUE.value:
        raise ValidationError("status", "overdue is derived from due_date and cannot be set")
    if status not in WRITABLE_MILESTONE_STATUSES:
        raise ValidationError(
            "status",
            f"must be one of: {', '.join(sorted(WRITABLE_MILESTONE_STATUSES))}",
        )
    return status


def validate_project_status(status: str) -> str:
    valid = {s.value for s in ProjectStatus}
    if status not in valid:
        raise ValidationError("status", f"must be one of: {', '.join(sorted(valid))}")
    return status
