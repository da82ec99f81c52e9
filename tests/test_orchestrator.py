"""
Unit Tests for the FileTaskService facade

Tests task lifecycle through the service, persistence across instances and
the wiring of events between executor and scheduler.

Author: Scheduled Copy Project
License: MIT
"""

import pytest
from datetime import datetime, timedelta

from scheduled_copy import FileTaskService
from scheduled_copy.config.schema import Config
from scheduled_copy.core.events import EventType
from scheduled_copy.core.exceptions import ScheduleConfigurationError, TaskNotFoundError
from scheduled_copy.core.models import CopyStatus, CopyTask, ScheduleConfiguration

T0 = datetime(2024, 1, 1, 9, 0)


@pytest.fixture
def config(tmp_path):
    return Config.model_validate({
        "storage": {"directory": str(tmp_path / "state")},
        "scheduling": {"tick_seconds": 3600, "shutdown_grace_seconds": 1},
        "copy": {"buffer_size": 1024},
    })


@pytest.fixture
def service(config):
    with FileTaskService(config, clock=lambda: T0) as svc:
        yield svc


@pytest.fixture
def source(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "a.txt").write_text("alpha")
    return src


class TestTaskLifecycle:
    """Test suite for create / update / delete."""

    def test_create_without_schedule(self, service, source, tmp_path):
        task_id = service.create_task(CopyTask(name="t", source_path=str(source)))

        assert service.get_task(task_id).name == "t"
        assert service.get_schedule(task_id) is None
        assert (tmp_path / "state" / "tasks.json").exists()

    def test_create_with_schedule(self, service, source):
        task_id = service.create_task(
            CopyTask(name="t", source_path=str(source)),
            ScheduleConfiguration().every_minutes(10)
        )

        assert service.get_schedule(task_id).task_id == task_id
        assert service.get_next_execution_times(task_id, 2) == [
            T0 + timedelta(minutes=10), T0 + timedelta(minutes=20)
        ]

    def test_invalid_schedule_rolls_back_task(self, service, source):
        with pytest.raises(ScheduleConfigurationError):
            service.create_task(
                CopyTask(name="t", source_path=str(source)),
                ScheduleConfiguration().daily()
            )

        assert service.get_all_tasks() == []

    def test_update_unknown_task(self, service):
        with pytest.raises(TaskNotFoundError):
            service.update_task(CopyTask(name="ghost"))

    def test_update_with_new_schedule(self, service, source):
        task_id = service.create_task(
            CopyTask(name="t", source_path=str(source)),
            ScheduleConfiguration().every_minutes(10)
        )
        task = service.get_task(task_id)
        task.name = "renamed"

        service.update_task(task, ScheduleConfiguration().every_minutes(30))

        assert service.get_task(task_id).name == "renamed"
        assert service.get_schedule(task_id).interval_minutes == 30

    def test_delete_removes_schedule(self, service, source):
        task_id = service.create_task(
            CopyTask(name="t", source_path=str(source)),
            ScheduleConfiguration().every_minutes(10)
        )

        assert service.delete_task(task_id) is True

        assert service.get_task(task_id) is None
        assert service.get_schedule(task_id) is None
        assert service.get_all_schedules() == []
        assert service.get_next_execution_times(task_id) == []
        assert service.delete_task(task_id) is False


class TestExecution:
    """Test suite for manual execution and events."""

    def test_execute_now(self, service, source, tmp_path):
        dst = tmp_path / "dst"
        task_id = service.create_task(
            CopyTask(name="t", source_path=str(source), destination_paths=[str(dst)])
        )
        completed = []
        service.subscribe(EventType.OPERATION_COMPLETED, completed.append)

        result = service.execute_task_now(task_id)

        assert result.status == CopyStatus.COMPLETED
        assert (dst / "a.txt").read_text() == "alpha"
        assert completed == [result]
        assert service.get_task(task_id).last_executed is not None

    def test_execute_unknown(self, service):
        result = service.execute_task_now("missing")

        assert result.status == CopyStatus.FAILED

    def test_unsubscribe(self, service, source):
        task_id = service.create_task(CopyTask(name="t", source_path=str(source)))
        seen = []
        service.subscribe(EventType.OPERATION_STARTED, seen.append)

        assert service.unsubscribe(EventType.OPERATION_STARTED, seen.append) is True
        service.execute_task_now(task_id)

        assert seen == []


class TestPersistenceAndScheduler:
    """Test suite for restarts and scheduler control."""

    def test_state_survives_restart(self, config, source):
        with FileTaskService(config, clock=lambda: T0) as first:
            task_id = first.create_task(
                CopyTask(name="t", source_path=str(source)),
                ScheduleConfiguration().every_minutes(15)
            )

        with FileTaskService(config, clock=lambda: T0) as second:
            assert second.get_task(task_id).name == "t"
            assert second.get_schedule(task_id).interval_minutes == 15

            second.start_scheduler()
            assert second.is_scheduler_running
            assert second.get_next_execution_times(task_id, 1) == [T0 + timedelta(minutes=15)]

        assert not second.is_scheduler_running

    def test_stop_scheduler(self, service):
        service.start_scheduler()
        service.stop_scheduler(grace=0)

        assert not service.is_scheduler_running


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
