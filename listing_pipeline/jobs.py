from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel

from listing_pipeline.schemas.responses import RunReport


class JobStatus(StrEnum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"


class Job(BaseModel):
    job_id: str
    status: JobStatus
    created_at: datetime
    finished_at: datetime | None = None
    dry_run: bool = False
    result: RunReport | None = None
    error: str | None = None


class JobStore:
    def __init__(self, max_jobs: int = 100) -> None:
        self._jobs: dict[str, Job] = {}
        self._max_jobs = max_jobs
        # Running job tasks, held until done
        self._tasks: set[asyncio.Task] = set()

    def _evict(self) -> None:
        if len(self._jobs) <= self._max_jobs:
            return
        # Remove oldest completed/failed jobs first
        candidates = sorted(
            (j for j in self._jobs.values() if j.status in (JobStatus.completed, JobStatus.failed)),
            key=lambda j: j.created_at,
        )
        while len(self._jobs) > self._max_jobs and candidates:
            self._jobs.pop(candidates.pop(0).job_id, None)

    def create_job(self, dry_run: bool = False) -> Job:
        job = Job(
            job_id=uuid.uuid4().hex[:12],
            status=JobStatus.pending,
            created_at=datetime.now(timezone.utc),
            dry_run=dry_run,
        )
        self._jobs[job.job_id] = job
        self._evict()
        return job

    def track_task(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def running_tasks(self) -> int:
        return len(self._tasks)

    def get_job(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def active_job(self) -> Job | None:
        """The pending/running job, if any. Runs are never overlapped."""
        for job in self._jobs.values():
            if job.status in (JobStatus.pending, JobStatus.running):
                return job
        return None

    def mark_running(self, job_id: str) -> None:
        if job := self._jobs.get(job_id):
            job.status = JobStatus.running

    def mark_completed(self, job_id: str, result: RunReport | None) -> None:
        if job := self._jobs.get(job_id):
            job.status = JobStatus.completed
            job.result = result
            job.finished_at = datetime.now(timezone.utc)

    def mark_failed(self, job_id: str, error: str) -> None:
        if job := self._jobs.get(job_id):
            job.status = JobStatus.failed
            job.error = error
            job.finished_at = datetime.now(timezone.utc)
