import logging
import uuid
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from job_engine.domain.context import CancellationToken, JobContext
from job_engine.domain.execution import JobExecution
from job_engine.domain.job import JobStatus, NewScheduledJob, ScheduledJob, UpdateScheduledJob


def build_job(**overrides) -> ScheduledJob:
    fields = {"id": 1, "job_name": "report", "job_type": "report", "cron_expression": "0 * * * *"}
    fields.update(overrides)
    return ScheduledJob(**fields)


def test_status_text_representation():
    assert str(JobStatus.SUCCESS) == "success"
    assert JobStatus("timeout") is JobStatus.TIMEOUT
    assert [s.value for s in JobStatus] == ["pending", "running", "success", "failed", "timeout", "cancelled"]


def test_terminal_statuses():
    assert not JobStatus.PENDING.is_terminal
    assert not JobStatus.RUNNING.is_terminal
    assert all(s.is_terminal for s in (JobStatus.SUCCESS, JobStatus.FAILED, JobStatus.TIMEOUT, JobStatus.CANCELLED))


def test_job_defaults():
    job = build_job()
    assert job.enabled is True
    assert job.allow_concurrent is False
    assert job.max_concurrent is None
    assert job.max_retries == 3
    assert job.retry_delay_seconds == 60
    assert job.retry_backoff_multiplier == 2.0
    assert job.timeout_seconds == 300
    assert job.total_attempts == 4


@pytest.mark.parametrize("raw, expected", [("1.5", 1.5), (3, 3.0), (2.25, 2.25)])
def test_backoff_multiplier_parsing(raw, expected):
    assert build_job(retry_backoff_multiplier=raw).retry_backoff_multiplier == expected


def test_unparsable_backoff_multiplier_falls_back(caplog):
    with caplog.at_level(logging.WARNING, logger="job_engine.domain.job"):
        job = build_job(retry_backoff_multiplier="fast")
    assert job.retry_backoff_multiplier == 2.0
    assert "Unparsable retry_backoff_multiplier" in caplog.text


@pytest.mark.parametrize("raw", [0.5, 0, -3, "nan", float("inf")])
def test_out_of_range_backoff_multiplier_falls_back(raw, caplog):
    with caplog.at_level(logging.WARNING, logger="job_engine.domain.job"):
        job = build_job(retry_backoff_multiplier=raw)
    assert job.retry_backoff_multiplier == 2.0
    assert "Invalid retry_backoff_multiplier" in caplog.text


def test_backoff_multiplier_of_one_is_kept():
    assert build_job(retry_backoff_multiplier=1.0).retry_backoff_multiplier == 1.0


def test_naive_timestamps_are_utc():
    job = build_job(last_run_at=datetime(2026, 1, 1, 12, 0, 0))
    assert job.last_run_at == datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_invalid_policy_values():
    with pytest.raises(ValidationError):
        build_job(timeout_seconds=0)
    with pytest.raises(ValidationError):
        build_job(max_concurrent=0)
    with pytest.raises(ValidationError):
        build_job(max_retries=-1)
    with pytest.raises(ValidationError):
        NewScheduledJob(job_name="x", job_type="x", cron_expression="* * * * *", retry_backoff_multiplier=0.5)
    with pytest.raises(ValidationError):
        NewScheduledJob(job_name="", job_type="x", cron_expression="* * * * *")


def test_update_changes_only_set_fields():
    assert UpdateScheduledJob().changes() == {}
    assert UpdateScheduledJob(enabled=False).changes() == {"enabled": False}
    assert UpdateScheduledJob(max_concurrent=None, description=None).changes() == {
        "max_concurrent": None,
        "description": None,
    }


def test_update_ignores_null_for_required_fields():
    assert UpdateScheduledJob(cron_expression=None, timeout_seconds=None).changes() == {}


def test_execution_finished_flag():
    execution = JobExecution(
        id=1,
        job_id=1,
        job_name="report",
        execution_id=uuid.uuid4(),
        status=JobStatus.RUNNING,
    )
    assert not execution.is_finished
    assert execution.started_at.tzinfo is not None
    assert execution.model_copy(update={"status": JobStatus.TIMEOUT}).is_finished


@pytest.mark.asyncio
async def test_cancellation_token():
    token = CancellationToken()
    assert not token.is_cancelled
    token.cancel()
    assert token.is_cancelled
    await token.wait()


def test_context_gets_fresh_token():
    first = JobContext(execution_id=uuid.uuid4(), job_id=1, job_name="report")
    second = JobContext(execution_id=uuid.uuid4(), job_id=1, job_name="report", retry_attempt=1)
    assert first.cancellation_token is not second.cancellation_token
    assert first.resources is None
