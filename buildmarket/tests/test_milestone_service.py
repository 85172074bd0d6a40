"""
Milestone store tests - CRUD, status transitions and completion recompute
against an in-memory SQLite session.
"""
from datetime import date, datetime

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from buildmarket.models.project import Project, ProjectMilestone
from buildmarket.services import milestone_service
from buildmarket.utils.errors import NotFoundError, StorageError, ValidationError


async def _stored_completion(db_session, project_id):
    result = await db_session.execute(
        select(Project.completion_percentage).where(Project.id == project_id)
    )
    return result.scalar_one()


async def _milestone_count(db_session, project_id):
    result = await db_session.execute(
        select(func.count(ProjectMilestone.id)).where(ProjectMilestone.project_id == project_id)
    )
    return result.scalar_one()


# ===================== CREATE / LIST =====================


class TestCreate:

    async def test_create_defaults(self, db_session, seed_data):
        user, project = seed_data["user"], seed_data["project"]
        m = await milestone_service.create_milestone(db_session, user, project.id, title="Demolition")

        assert m.id is not None
        assert m.status == "pending"
        assert m.completed_date is None
        assert m.progress_weight == 10
        assert m.order == 0

    async def test_create_strips_title(self, db_session, seed_data):
        m = await milestone_service.create_milestone(
            db_session, seed_data["user"], seed_data["project"].id, title="  Cabinets  "
        )
        assert m.title == "Cabinets"

    async def test_empty_title_rejected(self, db_session, seed_data):
        with pytest.raises(ValidationError) as exc:
            await milestone_service.create_milestone(
                db_session, seed_data["user"], seed_data["project"].id, title="   "
            )
        assert exc.value.field == "title"
        assert await _milestone_count(db_session, seed_data["project"].id) == 0

    @pytest.mark.parametrize("weight", [0, 101, -5])
    async def test_weight_out_of_range_rejected(self, db_session, seed_data, weight):
        with pytest.raises(ValidationError) as exc:
            await milestone_service.create_milestone(
                db_session, seed_data["user"], seed_data["project"].id,
                title="Tile", progress_weight=weight,
            )
        assert exc.value.field == "progress_weight"

    async def test_unknown_project(self, db_session, seed_data):
        with pytest.raises(NotFoundError, match="Project 9999 not found"):
            await milestone_service.create_milestone(db_session, seed_data["user"], 9999, title="X")

    async def test_list_orders_by_order_then_creation(self, db_session, seed_data):
        user, pid = seed_data["user"], seed_data["project"].id
        await milestone_service.create_milestone(db_session, user, pid, title="C", order=2)
        await milestone_service.create_milestone(db_session, user, pid, title="A", order=1)
        await milestone_service.create_milestone(db_session, user, pid, title="B", order=1)

        titles = [m.title for m in await milestone_service.list_milestones(db_session, pid)]
        assert titles == ["A", "B", "C"]

    async def test_list_unknown_project(self, db_session, seed_data):
        with pytest.raises(NotFoundError):
            await milestone_service.list_milestones(db_session, 424242)

    async def test_create_recomputes_completion(self, db_session, seed_data):
        user, pid = seed_data["user"], seed_data["project"].id
        m = await milestone_service.create_milestone(db_session, user, pid, title="A", progress_weight=40)
        await milestone_service.toggle_milestone(db_session, user, m.id)
        assert await _stored_completion(db_session, pid) == 40

        await milestone_service.create_milestone(db_session, user, pid, title="B", progress_weight=60)
        assert await _stored_completion(db_session, pid) == 40


# ===================== STATUS TRANSITIONS =====================


class TestStatusTransitions:

    async def test_toggle_stamps_and_clears_completed_date(self, db_session, seed_data):
        user, pid = seed_data["user"], seed_data["project"].id
        m = await milestone_service.create_milestone(db_session, user, pid, title="Framing", progress_weight=30)

        m = await milestone_service.toggle_milestone(db_session, user, m.id)
        assert m.status == "completed"
        assert isinstance(m.completed_date, datetime)
        assert await _stored_completion(db_session, pid) == 30

        m = await milestone_service.toggle_milestone(db_session, user, m.id)
        assert m.status == "pending"
        assert m.completed_date is None
        assert await _stored_completion(db_session, pid) == 0

    async def test_double_completion_keeps_timestamp_and_counts_once(self, db_session, seed_data):
        user, pid = seed_data["user"], seed_data["project"].id
        m = await milestone_service.create_milestone(db_session, user, pid, title="Drywall", progress_weight=15)

        m = await milestone_service.update_milestone(db_session, user, m.id, {"status": "completed"})
        first_stamp = m.completed_date

        m = await milestone_service.update_milestone(db_session, user, m.id, {"status": "completed"})
        assert m.completed_date == first_stamp
        assert await _stored_completion(db_session, pid) == 15

    async def test_update_to_in_progress_has_no_date(self, db_session, seed_data):
        user, pid = seed_data["user"], seed_data["project"].id
        m = await milestone_service.create_milestone(db_session, user, pid, title="Roofing")
        m = await milestone_service.update_milestone(db_session, user, m.id, {"status": "in_progress"})
        assert m.status == "in_progress"
        assert m.completed_date is None

    async def test_explicit_completed_date_wins(self, db_session, seed_data):
        user, pid = seed_data["user"], seed_data["project"].id
        m = await milestone_service.create_milestone(db_session, user, pid, title="Paint")
        stamp = datetime(2026, 3, 14, 9, 30)
        m = await milestone_service.update_milestone(
            db_session, user, m.id, {"status": "completed", "completed_date": stamp}
        )
        assert m.completed_date == stamp

    async def test_completed_date_on_open_milestone_rejected(self, db_session, seed_data):
        user, pid = seed_data["user"], seed_data["project"].id
        m = await milestone_service.create_milestone(db_session, user, pid, title="Paint")
        with pytest.raises(ValidationError) as exc:
            await milestone_service.update_milestone(
                db_session, user, m.id, {"completed_date": datetime(2026, 1, 1)}
            )
        assert exc.value.field == "completed_date"

    async def test_completed_with_null_date_rejected(self, db_session, seed_data):
        user, pid = seed_data["user"], seed_data["project"].id
        m = await milestone_service.create_milestone(db_session, user, pid, title="Paint", progress_weight=10)
        with pytest.raises(ValidationError) as exc:
            await milestone_service.update_milestone(
                db_session, user, m.id, {"status": "completed", "completed_date": None}
            )
        assert exc.value.field == "completed_date"

    async def test_overdue_cannot_be_written(self, db_session, seed_data):
        user, pid = seed_data["user"], seed_data["project"].id
        m = await milestone_service.create_milestone(db_session, user, pid, title="Permits")
        with pytest.raises(ValidationError, match="overdue"):
            await milestone_service.update_milestone(db_session, user, m.id, {"status": "overdue"})

    async def test_project_id_is_immutable(self, db_session, seed_data):
        user, pid = seed_data["user"], seed_data["project"].id
        m = await milestone_service.create_milestone(db_session, user, pid, title="Permits")
        with pytest.raises(ValidationError) as exc:
            await milestone_service.update_milestone(db_session, user, m.id, {"project_id": 2})
        assert exc.value.field == "project_id"

    async def test_update_unknown_milestone(self, db_session, seed_data):
        with pytest.raises(NotFoundError, match="Milestone 777 not found"):
            await milestone_service.update_milestone(db_session, seed_data["user"], 777, {"title": "x"})

    async def test_update_fields(self, db_session, seed_data):
        user, pid = seed_data["user"], seed_data["project"].id
        m = await milestone_service.create_milestone(db_session, user, pid, title="Tile")
        m = await milestone_service.update_milestone(
            db_session, user, m.id,
            {"title": "Tile floor", "due_date": date(2026, 6, 1), "progress_weight": 25, "order": 4},
        )
        assert (m.title, m.due_date, m.progress_weight, m.order) == ("Tile floor", date(2026, 6, 1), 25, 4)


# ===================== DELETE =====================


class TestDelete:

    async def test_delete_does_not_touch_siblings(self, db_session, seed_data):
        user, pid = seed_data["user"], seed_data["project"].id
        a = await milestone_service.create_milestone(db_session, user, pid, title="A", order=1, progress_weight=20)
        b = await milestone_service.create_milestone(db_session, user, pid, title="B", order=2, progress_weight=30)
        c = await milestone_service.create_milestone(db_session, user, pid, title="C", order=3, progress_weight=50)

        await milestone_service.delete_milestone(db_session, user, b.id)

        remaining = await milestone_service.list_milestones(db_session, pid)
        assert [(m.id, m.order, m.progress_weight) for m in remaining] == [
            (a.id, 1, 20),
            (c.id, 3, 50),
        ]

    async def test_delete_recomputes(self, db_session, seed_data):
        user, pid = seed_data["user"], seed_data["project"].id
        a = await milestone_service.create_milestone(db_session, user, pid, title="A", progress_weight=20)
        await milestone_service.toggle_milestone(db_session, user, a.id)
        assert await _stored_completion(db_session, pid) == 20

        await milestone_service.delete_milestone(db_session, user, a.id)
        assert await _stored_completion(db_session, pid) == 0

    async def test_delete_unknown(self, db_session, seed_data):
        with pytest.raises(NotFoundError):
            await milestone_service.delete_milestone(db_session, seed_data["user"], 31337)


# ===================== STORAGE FAILURES =====================


class TestStorageFailures:

    async def test_commit_failure_becomes_storage_error(self, db_session, seed_data, monkeypatch):
        user, pid = seed_data["user"], seed_data["project"].id

        async def failing_commit():
            raise SQLAlchemyError("connection reset")

        monkeypatch.setattr(db_session, "commit", failing_commit)

        with pytest.raises(StorageError) as exc:
            await milestone_service.create_milestone(db_session, user, pid, title="Framing")
        assert "connection reset" not in exc.value.message
        assert exc.value.reason == "connection reset"

        monkeypatch.undo()
        assert await _milestone_count(db_session, pid) == 0

    async def test_bulk_create_is_all_or_nothing(self, db_session, seed_data):
        items = [
            {"title": "Foundation", "order": 1, "progress_weight": 20},
            {"title": "", "order": 2, "progress_weight": 30},
        ]
        with pytest.raises(ValidationError):
            await milestone_service.create_milestones_bulk(
                db_session, seed_data["user"], seed_data["project"].id, items
            )
        assert await _milestone_count(db_session, seed_data["project"].id) == 0


    async def test_bulk_commit_failure_rolls_back_batch(self, db_session, seed_data, monkeypatch):
        user, pid = seed_data["user"], seed_data["project"].id
        done = await milestone_service.create_milestone(db_session, user, pid, title="Permits", progress_weight=20)
        await milestone_service.toggle_milestone(db_session, user, done.id)
        assert await _stored_completion(db_session, pid) == 20

        async def failing_commit():
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(db_session, "commit", failing_commit)

        items = [
            {"title": "Foundation", "order": 1, "progress_weight": 20},
            {"title": "Framing", "order": 2, "progress_weight": 30},
        ]
        with pytest.raises(StorageError):
            await milestone_service.create_milestones_bulk(db_session, user, pid, items)

        monkeypatch.undo()
        assert await _milestone_count(db_session, pid) == 1
        assert await _stored_completion(db_session, pid) == 20


# ===================== END TO END =====================


async def test_foundation_framing_finishing_scenario(db_session, seed_data):
    user, pid = seed_data["user"], seed_data["project"].id
    foundation = await milestone_service.create_milestone(
        db_session, user, pid, title="Foundation", order=1, progress_weight=20
    )
    framing = await milestone_service.create_milestone(
        db_session, user, pid, title="Framing", order=2, progress_weight=30
    )
    finishing = await milestone_service.create_milestone(
        db_session, user, pid, title="Finishing", order=3, progress_weight=50
    )
    assert await _stored_completion(db_session, pid) == 0

    await milestone_service.toggle_milestone(db_session, user, foundation.id)
    assert await _stored_completion(db_session, pid) == 20

    await milestone_service.toggle_milestone(db_session, user, framing.id)
    assert await _stored_completion(db_session, pid) == 50

    await milestone_service.delete_milestone(db_session, user, finishing.id)
    await milestone_service.toggle_milestone(db_session, user, foundation.id)
    assert await _stored_completion(db_session, pid) == 30
