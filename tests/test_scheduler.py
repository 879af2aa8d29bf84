# tests/test_scheduler.py
import logging

from app.core import scheduler as scheduler_module
from app.core.scheduler import (
    DISPATCH_JOB_ID,
    dispatch_job,
    shutdown_scheduler,
    start_scheduler,
)


class StubDispatchService:
    def __init__(self, error=None):
        self.error = error
        self.runs = 0

    def run(self, now=None):
        self.runs += 1
        if self.error:
            raise self.error


def test_dispatch_job_logs_failures(caplog):
    service = StubDispatchService(error=RuntimeError("database is gone"))

    with caplog.at_level(logging.ERROR):
        dispatch_job(service)

    assert service.runs == 1
    assert "database is gone" in caplog.text


def test_start_scheduler_registers_dispatch_job(monkeypatch):
    monkeypatch.setattr(
        scheduler_module, "build_dispatch_service", lambda sender=None: StubDispatchService()
    )

    scheduler = start_scheduler()
    try:
        job = scheduler.get_job(DISPATCH_JOB_ID)
        assert job is not None
        assert job.max_instances == 1
        assert start_scheduler() is scheduler
    finally:
        shutdown_scheduler()

    assert not scheduler.running
