"""
Unit Tests for Task and Schedule Stores

Tests JSON persistence, copy semantics, rollback on failed saves and
tolerant loading.

Author: Scheduled Copy Project
License: MIT
"""

import json
import pytest
from datetime import datetime, time
from unittest.mock import patch

from scheduled_copy.core.exceptions import PersistenceError
from scheduled_copy.core.models import (
    CopyTask,
    DayOfWeek,
    DuplicateHandling,
    FileExtension,
    FileName,
    FileSizeGreaterThan,
    ModifiedSince,
    ScheduleConfiguration,
    ScheduleType
)
from scheduled_copy.core.task_store import ScheduleStore, TaskStore


@pytest.fixture
def task_store(tmp_path):
    return TaskStore(tmp_path / "tasks.json")


@pytest.fixture
def schedule_store(tmp_path):
    return ScheduleStore(tmp_path / "schedules.json")


def sample_task(name="docs") -> CopyTask:
    return (
        CopyTask(name=name, source_path="/data/in")
        .add_destinations("/data/out1", "/data/out2")
        .add_file_patterns("*.txt")
        .add_condition(FileName(value="report"))
        .add_condition(FileSizeGreaterThan(value=10))
        .add_condition(ModifiedSince(value=datetime(2024, 1, 2, 3, 4, 5)))
        .add_condition(FileExtension(value="txt"))
        .rename_if_exists()
    )


class TestTaskStore:
    """Test suite for TaskStore."""

    def test_add_and_get(self, task_store):
        task_id = task_store.add_task(sample_task())

        task = task_store.get_task(task_id)
        assert task is not None
        assert task.name == "docs"
        assert task.created_at is not None

    def test_returned_records_are_copies(self, task_store):
        task_id = task_store.add_task(sample_task())

        task = task_store.get_task(task_id)
        task.name = "changed"
        task.destination_paths.append("/elsewhere")

        stored = task_store.get_task(task_id)
        assert stored.name == "docs"
        assert stored.destination_paths == ["/data/out1", "/data/out2"]

    def test_round_trip_preserves_conditions_in_order(self, tmp_path, task_store):
        built = sample_task()
        task_id = task_store.add_task(built)

        reloaded = TaskStore(tmp_path / "tasks.json")
        assert reloaded.load() == 1

        task = reloaded.get_task(task_id)
        assert task.conditions == built.conditions
        assert [c.type for c in task.conditions] == [
            "FileName", "FileSizeGreaterThan", "ModifiedSince", "FileExtension"
        ]
        assert task.duplicate_handling == DuplicateHandling.RENAME_NEW
        assert task.destination_paths == built.destination_paths

    def test_document_is_indented_json_list(self, tmp_path, task_store):
        task_store.add_task(sample_task())

        text = (tmp_path / "tasks.json").read_text()
        data = json.loads(text)

        assert isinstance(data, list)
        assert "\n  " in text
        assert data[0]["duplicate_handling"] == "RenameNew"

    def test_update_unknown_returns_false(self, task_store):
        assert task_store.update_task(CopyTask(name="ghost")) is False

    def test_update_existing(self, task_store):
        task_id = task_store.add_task(sample_task())
        task = task_store.get_task(task_id)
        task.name = "renamed"

        assert task_store.update_task(task) is True
        assert task_store.get_task(task_id).name == "renamed"

    def test_remove(self, task_store):
        task_id = task_store.add_task(sample_task())

        assert task_store.remove_task(task_id) is True
        assert task_store.get_task(task_id) is None
        assert task_store.remove_task(task_id) is False

    def test_enabled_filter(self, task_store):
        task_store.add_task(sample_task("on"))
        task_store.add_task(sample_task("off").disable())

        assert [t.name for t in task_store.get_enabled_tasks()] == ["on"]

    def test_mark_executed(self, task_store):
        task_id = task_store.add_task(sample_task())
        when = datetime(2024, 5, 6, 7, 8, 9)

        assert task_store.mark_executed(task_id, when) is True
        assert task_store.get_task(task_id).last_executed == when
        assert task_store.mark_executed("unknown", when) is False

    def test_failed_save_rolls_back(self, task_store):
        existing_id = task_store.add_task(sample_task("existing"))

        with patch("scheduled_copy.core.task_store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(PersistenceError):
                task_store.add_task(sample_task("new"))
            with pytest.raises(PersistenceError):
                task_store.remove_task(existing_id)

        assert [t.name for t in task_store.get_all_tasks()] == ["existing"]

    def test_load_missing_file(self, task_store):
        assert task_store.load() == 0
        assert len(task_store) == 0

    def test_load_corrupt_file_raises(self, tmp_path, task_store):
        (tmp_path / "tasks.json").write_text("{not json")

        with pytest.raises(PersistenceError):
            task_store.load()

    def test_load_skips_invalid_and_ignores_unknown_fields(self, tmp_path, task_store):
        (tmp_path / "tasks.json").write_text(json.dumps([
            {"id": "good", "name": "ok", "someNewField": {"nested": True}},
            {"id": "bad", "conditions": [{"type": "NoSuchCondition"}]},
        ]))

        assert task_store.load() == 1
        assert task_store.get_task("good").name == "ok"
        assert task_store.get_task("bad") is None


class TestScheduleStore:
    """Test suite for ScheduleStore."""

    def test_one_schedule_per_task(self, schedule_store):
        schedule_store.add_or_update_schedule(
            ScheduleConfiguration(task_id="t1").daily().add_execution_time(9)
        )
        schedule_store.add_or_update_schedule(
            ScheduleConfiguration(task_id="t1").every_minutes(15)
        )

        schedules = schedule_store.get_all_schedules()
        assert len(schedules) == 1
        assert schedules[0].type == ScheduleType.INTERVAL

    def test_round_trip(self, tmp_path, schedule_store):
        schedule = (
            ScheduleConfiguration(task_id="t1")
            .weekly()
            .add_execution_times(time(8, 0), time(17, 30))
            .on_days(DayOfWeek.MONDAY, DayOfWeek.FRIDAY)
            .between(datetime(2024, 1, 1), datetime(2024, 12, 31))
        )
        schedule_store.add_or_update_schedule(schedule)

        reloaded = ScheduleStore(tmp_path / "schedules.json")
        reloaded.load()

        assert reloaded.get_schedule("t1") == schedule

    def test_enabled_filter_and_remove(self, schedule_store):
        schedule_store.add_or_update_schedule(ScheduleConfiguration(task_id="a").every_minutes(5))
        schedule_store.add_or_update_schedule(ScheduleConfiguration(task_id="b").every_minutes(5).disable())

        assert [s.task_id for s in schedule_store.get_enabled_schedules()] == ["a"]
        assert schedule_store.remove_schedule("a") is True
        assert schedule_store.get_schedule("a") is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
