"""
Progress aggregation and derived milestone state

Everything here is pure: it works on already-fetched milestone rows (or any
object exposing ``status``, ``progress_weight`` and ``due_date``).
"""
from datetime import date
from typing import Iterable, Optional

from buildmarket.models.project import MilestoneStatus

WEIGHTED_SUM = "weighted_sum"
NORMALIZED = "normalized"
COMPLETION_MODES = (WEIGHTED_SUM, NORMALIZED)


def _status_value(status) -> str:
    return status.value if isinstance(status, MilestoneStatus) else str(status)


def is_completed(milestone) -> bool:
    return _status_value(milestone.status) == MilestoneStatus.COMPLETED.value


def completed_weight(milestones: Iterable) -> int:
    """Sum of progress weights over completed milestones. Never clamped."""
    return sum(m.progress_weight for m in milestones if is_completed(m))


def compute_completion(milestones: Iterable, mode: str = WEIGHTED_SUM) -> int:
    """
    Completion value for a project's milestone set.

    weighted_sum: raw sum of completed weights, may exceed 100.
    normalized:   completed weight as a rounded share of the total weight.
    """
    if mode not in COMPLETION_MODES:
        raise ValueError(f"Unknown completion mode: {mode}")

    milestones = list(milestones)
    done = completed_weight(milestones)
    if mode == WEIGHTED_SUM:
        return done

    total = sum(m.progress_weight for m in milestones)
    if total <= 0:
        return 0
    return round(done / total * 100)


def display_percentage(value: int) -> int:
    """Clamp a completion value into 0..100 for progress bars"""
    return max(0, min(100, value))


def is_overdue(milestone, today: Optional[date] = None) -> bool:
    today = today or date.today()
    return (
        milestone.due_date is not None
        and not is_completed(milestone)
        and milestone.due_date < today
    )


def display_status(milestone, today: Optional[date] = None) -> str:
    """Stored status, or 'overdue' when a non-completed milestone is past due"""
    if is_overdue(milestone, today):
        return MilestoneStatus.OVERDUE.value
    return _status_value(milestone.status)


def summarize(milestones: Iterable, mode: str = WEIGHTED_SUM, today: Optional[date] = None) -> dict:
    """Counts and completion figures shown on the project detail view"""
    milestones = list(milestones)
    completion = compute_completion(milestones, mode)
    return {
        "total_milestones": len(milestones),
        "completed_milestones": sum(1 for m in milestones if is_completed(m)),
        "overdue_milestones": sum(1 for m in milestones if is_overdue(m, today)),
        "total_weight": sum(m.progress_weight for m in milestones),
        "completed_weight": completed_weight(milestones),
        "completion_percentage": completion,
        "display_percentage": display_percentage(completion),
    }
