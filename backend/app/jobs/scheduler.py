from __future__ import annotations
import time
import structlog
from redis import Redis
from rq import Queue

from app.config import settings
from app.logging_setup import configure_logging
from app.jobs.sweepers import run_expire_moments, run_ephemeral_sweep, run_stale_sweep

log = structlog.get_logger()

# (job, interval seconds)
SCHEDULE = (
    (run_expire_moments, settings.sweep_expire_seconds),
    (run_ephemeral_sweep, settings.sweep_ephemeral_seconds),
    (run_stale_sweep, settings.sweep_stale_seconds),
)


def due_jobs(last_run: dict[str, float], now: float) -> list:
    """Jobs whose interval has elapsed since they were last enqueued. Never-run jobs are due."""
    due = []
    for job, interval in SCHEDULE:
        last = last_run.get(job.__name__)
        if last is None or now - last >= interval:
            due.append(job)
    return due


def run_forever(poll_seconds: float = 5.0) -> None:
    q = Queue("default", connection=Redis.from_url(settings.redis_url))
    last_run: dict[str, float] = {}
    log.info("scheduler_started", jobs=[job.__name__ for job, _ in SCHEDULE])
    while True:
        now = time.monotonic()
        for job in due_jobs(last_run, now):
            rq_job = q.enqueue(job, job_timeout=600)
            last_run[job.__name__] = now
            log.info("sweep_enqueued", job=job.__name__, job_id=rq_job.id)
        time.sleep(poll_seconds)


if __name__ == "__main__":
    configure_logging()
    run_forever()
