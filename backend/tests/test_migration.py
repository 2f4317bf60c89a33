"""Tests for manual migration of older unfinished work into the current week"""
import pytest

from weekboard.core.exceptions import ValidationError
from weekboard.models.records import TaskStatus
from weekboard.services.migration import MigrationEngine, is_migration_candidate
from weekboard.services.week import WeekRef

USER_ID = "11111111-1111-1111-1111-111111111111"
WEEK10 = WeekRef(2024, 10)
CURRENT = WeekRef(2024, 12)


def tasks_in(store, week):
    return {
        t.id: t for t in store.tasks.values()
        if not t.is_recurring and (t.week_year, t.week_number) == (week.year, week.week_number)
    }


class TestMigrationScenario:

    @pytest.mark.asyncio
    async def test_week_ten_to_current(self, store, week10_board):
        a, b, c, d = (week10_board[k] for k in "ABCD")
        original_b = store.tasks[b.id].model_dump()

        summary = await MigrationEngine(store).migrate_week(USER_ID, WEEK10, CURRENT)

        current = tasks_in(store, CURRENT)
        source = tasks_in(store, WEEK10)

        # A moved with its id
        assert a.id in current and a.id not in source
        # B stays untouched, a todo copy appears in the current week
        assert store.tasks[b.id].model_dump() == original_b
        copies = [t for t in current.values() if t.id not in (a.id,)]
        assert len(copies) == 1
        copy = copies[0]
        assert copy.id != b.id
        assert copy.title == "B"
        assert copy.status == TaskStatus.TODO
        assert copy.progress_current == 0
        assert copy.progress_total == 5
        assert copy.priority == b.priority
        # C and D are not candidates
        assert c.id in source
        assert store.completions == {}

        assert [ref.task_id for ref in summary.moved] == [a.id]
        assert [ref.task_id for ref in summary.copied] == [copy.id]
        assert summary.counts == {"moved": 1, "copied": 1, "failed": 0}

    @pytest.mark.asyncio
    async def test_copy_resets_subtasks(self, store, week10_board):
        await MigrationEngine(store).migrate_week(USER_ID, WEEK10, CURRENT)

        copy = next(t for t in tasks_in(store, CURRENT).values() if t.title == "B")
        assert [(s.title, s.weight, s.is_completed) for s in copy.subtasks] == [
            ("draft", 2, False), ("review", 1, False),
        ]
        # the original keeps its completed subtask
        assert store.tasks[week10_board["B"].id].subtasks[0].is_completed

    @pytest.mark.asyncio
    async def test_copy_activity_references_original(self, store, week10_board):
        summary = await MigrationEngine(store).migrate_week(USER_ID, WEEK10, CURRENT)
        copy_id = summary.copied[0].task_id

        activity = next(a for a in store.activities if a.task_id == copy_id)
        assert activity.activity_type == "created"
        assert activity.metadata["migration"] is True
        assert activity.metadata["original_task_id"] == week10_board["B"].id
        assert store.activity_types(week10_board["A"].id) == ["moved_week"]

    @pytest.mark.asyncio
    async def test_rerun_does_not_copy_again(self, store, week10_board):
        b = week10_board["B"]
        engine = MigrationEngine(store)
        first = await engine.migrate_week(USER_ID, WEEK10, CURRENT)

        second = await engine.migrate_week(USER_ID, WEEK10, CURRENT)

        copies = [t for t in tasks_in(store, CURRENT).values() if t.title == "B"]
        assert [t.id for t in copies] == [first.copied[0].task_id]
        assert second.copied == [] and second.moved == []
        assert [(s.task_id, s.reason) for s in second.skipped] == [(b.id, "already copied to 2024-W12")]
        assert store.activity_types(b.id) == ["copied_to"]

    @pytest.mark.asyncio
    async def test_copy_into_another_week_is_still_allowed(self, store, week10_board):
        engine = MigrationEngine(store)
        await engine.migrate_week(USER_ID, WEEK10, CURRENT)

        summary = await engine.migrate_week(USER_ID, WEEK10, CURRENT.next())

        assert [ref.week_number for ref in summary.copied] == [13]


class TestMigrationCandidates:

    @pytest.mark.asyncio
    async def test_recurring_never_selected(self, store):
        store.seed(category="weekly_recurring", status="todo")
        store.seed(category="weekly_recurring", status="in_progress")

        summary = await MigrationEngine(store).migrate_week(USER_ID, WEEK10, CURRENT)

        assert summary.counts == {"moved": 0, "copied": 0, "failed": 0}
        assert len(store.tasks) == 2

    @pytest.mark.parametrize("status,expected", [
        ("todo", True), ("in_progress", True), ("done", False), ("blocked", False),
    ])
    def test_candidate_by_status(self, store, status, expected):
        assert is_migration_candidate(store.seed(status=status, category="life_admin")) is expected

    @pytest.mark.asyncio
    async def test_source_must_be_older(self, store):
        with pytest.raises(ValidationError):
            await MigrationEngine(store).migrate_week(USER_ID, CURRENT, CURRENT)
        with pytest.raises(ValidationError):
            await MigrationEngine(store).migrate_week(USER_ID, CURRENT, WEEK10)


class TestMigrationFailures:

    @pytest.mark.asyncio
    async def test_failed_move_reported_and_others_continue(self, store, week10_board):
        a = week10_board["A"]
        store.fail_task_ids.add(a.id)

        summary = await MigrationEngine(store).migrate_week(USER_ID, WEEK10, CURRENT)

        assert summary.counts == {"moved": 0, "copied": 1, "failed": 1}
        assert summary.failures[0].task_id == a.id
        assert a.id in tasks_in(store, WEEK10)

    @pytest.mark.asyncio
    async def test_failed_copy_leaves_original(self, store, week10_board):
        store.fail_create = True

        summary = await MigrationEngine(store).migrate_week(USER_ID, WEEK10, CURRENT)

        assert summary.counts == {"moved": 1, "copied": 0, "failed": 1}
        assert summary.failures[0].task_id == week10_board["B"].id
        assert store.tasks[week10_board["B"].id].status == TaskStatus.IN_PROGRESS
