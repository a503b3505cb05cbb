from __future__ import annotations

import time

from apscheduler.schedulers.background import BackgroundScheduler

from src.staff_attendance.staff_attendance.core.enums import TokenStatus
from src.staff_attendance.staff_attendance.core.exceptions import StorageError
from src.staff_attendance.staff_attendance.tokens.scheduler import JOB_ID, TokenRotationScheduler


class FakeScheduler:
    """Just enough of BackgroundScheduler to drive jobs by hand."""

    def __init__(self):
        self.jobs = {}
        self.running = False
        self.shutdown_calls = 0

    def add_job(self, func, trigger, *, seconds, id, replace_existing):
        self.jobs[id] = {"func": func, "trigger": trigger, "seconds": seconds}

    def get_job(self, job_id):
        return self.jobs.get(job_id)

    def remove_job(self, job_id):
        del self.jobs[job_id]

    def start(self):
        self.running = True

    def shutdown(self, wait=True):
        self.running = False
        self.shutdown_calls += 1

    def tick(self):
        for job in list(self.jobs.values()):
            job["func"]()


def test_start_issues_token_immediately_and_schedules_interval(issuer, tokens_repo):
    fake = FakeScheduler()
    rotation = TokenRotationScheduler(issuer, scheduler=fake)

    rotation.start()

    assert rotation.is_running
    assert tokens_repo.count() == 1
    assert fake.running
    assert fake.jobs[JOB_ID]["trigger"] == "interval"
    assert fake.jobs[JOB_ID]["seconds"] == issuer.validity_seconds


def test_each_tick_rotates_the_token(issuer, tokens_repo):
    fake = FakeScheduler()
    rotation = TokenRotationScheduler(issuer, interval_seconds=15, scheduler=fake)
    rotation.start()

    fake.tick()
    fake.tick()

    assert tokens_repo.count() == 3
    assert tokens_repo.count(status=TokenStatus.ACTIVE) == 1
    assert rotation.status() == {"isRunning": True, "intervalSeconds": 15}


def test_start_twice_is_a_no_op(issuer, tokens_repo):
    fake = FakeScheduler()
    rotation = TokenRotationScheduler(issuer, scheduler=fake)
    rotation.start()
    rotation.start()

    assert tokens_repo.count() == 1


def test_stop_removes_job_but_keeps_scheduler_alive(issuer):
    fake = FakeScheduler()
    rotation = TokenRotationScheduler(issuer, scheduler=fake)
    rotation.start()

    rotation.stop()

    assert not rotation.is_running
    assert JOB_ID not in fake.jobs
    assert fake.running
    assert fake.shutdown_calls == 0
    assert rotation.status()["isRunning"] is False


def test_stop_when_not_running_does_nothing(issuer):
    fake = FakeScheduler()
    rotation = TokenRotationScheduler(issuer, scheduler=fake)

    rotation.stop()

    assert fake.shutdown_calls == 0


def test_failed_rotation_keeps_the_job_alive(issuer, monkeypatch):
    fake = FakeScheduler()
    rotation = TokenRotationScheduler(issuer, scheduler=fake)

    def broken(*args, **kwargs):
        raise StorageError("db down")

    monkeypatch.setattr(issuer, "generate", broken)

    rotation.start()
    fake.tick()

    assert rotation.is_running
    assert JOB_ID in fake.jobs


def test_shutdown_stops_rotation_and_the_thread(issuer):
    fake = FakeScheduler()
    rotation = TokenRotationScheduler(issuer, scheduler=fake)
    rotation.start()

    rotation.shutdown()

    assert not rotation.is_running
    assert JOB_ID not in fake.jobs
    assert fake.shutdown_calls == 1


def test_shutdown_before_start_is_harmless(issuer):
    fake = FakeScheduler()
    rotation = TokenRotationScheduler(issuer, scheduler=fake)

    rotation.shutdown()

    assert fake.shutdown_calls == 0


def _latest_sequence(tokens_repo):
    return max(t.sequence_number for t in tokens_repo.all())


def _wait_for_sequence(tokens_repo, target, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if _latest_sequence(tokens_repo) >= target:
            return True
        time.sleep(0.05)
    return False


def test_real_scheduler_keeps_rotating_after_stop_and_restart(issuer, tokens_repo):
    rotation = TokenRotationScheduler(
        issuer,
        interval_seconds=1,
        scheduler=BackgroundScheduler(job_defaults={"coalesce": True, "max_instances": 1}),
    )
    try:
        rotation.start()
        assert _wait_for_sequence(tokens_repo, 2)

        rotation.stop()
        time.sleep(0.2)
        stopped_at = _latest_sequence(tokens_repo)
        time.sleep(1.5)
        assert _latest_sequence(tokens_repo) == stopped_at

        rotation.start()
        assert _latest_sequence(tokens_repo) >= stopped_at + 1
        assert _wait_for_sequence(tokens_repo, stopped_at + 2)
        assert rotation.status()["isRunning"] is True
    finally:
        rotation.shutdown()
