"""Background scheduler wrapper tests (jobs are registered, never run)."""
import pytest

from business.scheduler import Scheduler


def _noop():
    pass


@pytest.fixture
def scheduler():
    instance = Scheduler()
    yield instance
    instance.stop()


def test_register_jobs(scheduler):
    scheduler.add_interval_task(_noop, minutes=5, task_id="refresh")
    scheduler.add_daily_task(_noop, hour=9, minute=0, task_id="reminder")
    assert sorted(scheduler.get_job_ids()) == ["refresh", "reminder"]


def test_remove_job(scheduler):
    scheduler.add_daily_task(_noop, task_id="reminder")
    scheduler.remove_job("reminder")
    assert scheduler.get_job_ids() == []


def test_remove_missing_job_is_logged(scheduler):
    scheduler.remove_job("missing")
    assert scheduler.get_job_ids() == []


def test_stop_before_start(scheduler):
    scheduler.stop()
    assert not scheduler.scheduler.running


def test_defaults_from_settings(scheduler):
    scheduler.add_interval_task(_noop, task_id="refresh")
    scheduler.add_daily_task(_noop, task_id="reminder")
    jobs = {job.id: job for job in scheduler.scheduler.get_jobs()}
    assert jobs["refresh"].trigger.interval.total_seconds() == 5 * 60
    assert "hour='9'" in str(jobs["reminder"].trigger)
