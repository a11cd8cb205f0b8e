"""
Durable queue for delayed ticket side effects.

Auto-assignment, the customer notification note and follow-up checks
are stored as ``ScheduledJob`` records instead of in-process timers, so
they survive restarts and can be retried or cancelled.

Three backends share one contract:
  - InMemoryJobQueue  for tests and single-process demos
  - FileJobQueue      JSON file rewritten atomically on every change
  - PostgresJobQueue  table claimed with FOR UPDATE SKIP LOCKED so
                      several workers can poll without double-running

Usage:
    queue = FileJobQueue("data/scheduled-jobs.json")
    await queue.enqueue(ScheduledJob(kind=JobKind.FOLLOW_UP, ticket_id=t.id, run_at=due))
    for job in await queue.claim_due(utcnow()):
        ...
        await queue.complete(job.id)
"""

import json
import logging
import os
import tempfile
import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

import asyncpg
from pydantic import BaseModel, Field

from servicedesk.utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_CLAIM_BATCH = 10


class JobKind(str, Enum):
    AUTO_ASSIGN = "auto_assign"
    NOTIFY = "notify"
    FOLLOW_UP = "follow_up"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ScheduledJob(BaseModel):
    """A side effect due at ``run_at`` for one ticket."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    kind: JobKind
    ticket_id: str
    run_at: datetime
    attempts: int = 0
    status: JobStatus = JobStatus.PENDING
    last_error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class JobQueue(Protocol):
    async def enqueue(self, job: ScheduledJob) -> ScheduledJob: ...

    async def claim_due(self, now: datetime, limit: int = DEFAULT_CLAIM_BATCH) -> list[ScheduledJob]: ...

    async def complete(self, job_id: str) -> None: ...

    async def fail(self, job_id: str, error: str, retry_at: Optional[datetime] = None) -> None: ...

    async def cancel_for_ticket(self, ticket_id: str) -> int: ...

    async def pending(self) -> list[ScheduledJob]: ...


class InMemoryJobQueue:
    """Jobs held in a dict; lost when the process exits."""

    def __init__(self) -> None:
        self._jobs: dict[str, ScheduledJob] = {}

    async def enqueue(self, job: ScheduledJob) -> ScheduledJob:
        self._jobs[job.id] = job
        self._changed()
        logger.debug("Queued %s job for ticket %s at %s", job.kind.value, job.ticket_id, job.run_at)
        return job

    async def claim_due(self, now: datetime, limit: int = DEFAULT_CLAIM_BATCH) -> list[ScheduledJob]:
        due = sorted(
            (j for j in self._jobs.values() if j.status == JobStatus.PENDING and j.run_at <= now),
            key=lambda j: j.run_at,
        )[:limit]
        claimed = []
        for job in due:
            job = job.model_copy(update={"status": JobStatus.RUNNING, "attempts": job.attempts + 1})
            self._jobs[job.id] = job
            claimed.append(job)
        if claimed:
            self._changed()
        return claimed

    async def complete(self, job_id: str) -> None:
        self._set(job_id, status=JobStatus.DONE)

    async def fail(self, job_id: str, error: str, retry_at: Optional[datetime] = None) -> None:
        """Record a failure; reschedule when ``retry_at`` is given, else give up."""
        if retry_at is None:
            self._set(job_id, status=JobStatus.FAILED, last_error=error)
        else:
            self._set(job_id, status=JobStatus.PENDING, last_error=error, run_at=retry_at)

    async def cancel_for_ticket(self, ticket_id: str) -> int:
        cancelled = 0
        for job in list(self._jobs.values()):
            if job.ticket_id == ticket_id and job.status == JobStatus.PENDING:
                self._jobs[job.id] = job.model_copy(update={"status": JobStatus.CANCELLED})
                cancelled += 1
        if cancelled:
            self._changed()
        return cancelled

    async def pending(self) -> list[ScheduledJob]:
        return sorted(
            (j for j in self._jobs.values() if j.status == JobStatus.PENDING),
            key=lambda j: j.run_at,
        )

    def get(self, job_id: str) -> Optional[ScheduledJob]:
        return self._jobs.get(job_id)

    def _set(self, job_id: str, **changes) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            logger.warning("Unknown job id %s", job_id)
            return
        self._jobs[job_id] = job.model_copy(update=changes)
        self._changed()

    def _changed(self) -> None:
        """Hook for persistent subclasses."""


class FileJobQueue(InMemoryJobQueue):
    """
    Job queue persisted to a JSON file.

    The file is rewritten through a temporary file and ``os.replace`` so a
    crash mid-write never leaves a truncated queue. Jobs found ``running``
    at load time were interrupted and go back to ``pending``.
    """

    def __init__(self, path: str) -> None:
        super().__init__()
        self._path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Could not read job queue %s: %s", self._path, e)
            raise
        for item in raw.get("jobs", []):
            job = ScheduledJob.model_validate(item)
            if job.status == JobStatus.RUNNING:
                job = job.model_copy(update={"status": JobStatus.PENDING})
            self._jobs[job.id] = job
        logger.info("Loaded %d job(s) from %s", len(self._jobs), self._path)

    def _changed(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"jobs": [j.model_dump(mode="json") for j in self._jobs.values()]}
        fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=".jobs-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self._path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS scheduled_jobs (
    id          TEXT PRIMARY KEY,
    kind        VARCHAR(32)  NOT NULL,
    ticket_id   TEXT         NOT NULL,
    run_at      TIMESTAMPTZ  NOT NULL,
    attempts    INTEGER      NOT NULL DEFAULT 0,
    status      VARCHAR(16)  NOT NULL DEFAULT 'pending',
    last_error  TEXT,
    created_at  TIMESTAMPTZ  NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS scheduled_jobs_due ON scheduled_jobs (status, run_at);
"""


class PostgresJobQueue:
    """Job queue stored in PostgreSQL and shared by any number of workers."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    @classmethod
    async def connect(cls, dsn: str) -> "PostgresJobQueue":
        pool = await asyncpg.create_pool(dsn)
        queue = cls(pool)
        await queue.init_schema()
        return queue

    async def init_schema(self) -> None:
        await self._pool.execute(SCHEMA_SQL)

    async def enqueue(self, job: ScheduledJob) -> ScheduledJob:
        await self._pool.execute(
            """
            INSERT INTO scheduled_jobs (id, kind, ticket_id, run_at, attempts, status, last_error, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """,
            job.id, job.kind.value, job.ticket_id, job.run_at,
            job.attempts, job.status.value, job.last_error, job.created_at,
        )
        logger.debug("Queued %s job for ticket %s at %s", job.kind.value, job.ticket_id, job.run_at)
        return job

    async def claim_due(self, now: datetime, limit: int = DEFAULT_CLAIM_BATCH) -> list[ScheduledJob]:
        """Atomically claim due jobs; rows locked by another worker are skipped."""
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                rows = await conn.fetch(
                    """
                    SELECT id FROM scheduled_jobs
                    WHERE status = 'pending' AND run_at <= $1
                    ORDER BY run_at ASC
                    LIMIT $2
                    FOR UPDATE SKIP LOCKED
                    """,
                    now, limit,
                )
                if not rows:
                    return []
                claimed = await conn.fetch(
                    """
                    UPDATE scheduled_jobs
                    SET status = 'running', attempts = attempts + 1
                    WHERE id = ANY($1::text[])
                    RETURNING *
                    """,
                    [r["id"] for r in rows],
                )
        jobs = [ScheduledJob.model_validate(dict(r)) for r in claimed]
        jobs.sort(key=lambda j: j.run_at)
        return jobs

    async def complete(self, job_id: str) -> None:
        await self._pool.execute(
            "UPDATE scheduled_jobs SET status = 'done' WHERE id = $1", job_id,
        )

    async def fail(self, job_id: str, error: str, retry_at: Optional[datetime] = None) -> None:
        if retry_at is None:
            await self._pool.execute(
                "UPDATE scheduled_jobs SET status = 'failed', last_error = $2 WHERE id = $1",
                job_id, error,
            )
        else:
            await self._pool.execute(
                """
                UPDATE scheduled_jobs
                SET status = 'pending', last_error = $2, run_at = $3
                WHERE id = $1
                """,
                job_id, error, retry_at,
            )

    async def cancel_for_ticket(self, ticket_id: str) -> int:
        result = await self._pool.execute(
            """
            UPDATE scheduled_jobs SET status = 'cancelled'
            WHERE ticket_id = $1 AND status = 'pending'
            """,
            ticket_id,
        )
        # asyncpg returns the command tag, e.g. "UPDATE 2"
        return int(result.split()[-1])

    async def pending(self) -> list[ScheduledJob]:
        rows = await self._pool.fetch(
            "SELECT * FROM scheduled_jobs WHERE status = 'pending' ORDER BY run_at ASC"
        )
        return [ScheduledJob.model_validate(dict(r)) for r in rows]

    async def close(self) -> None:
        await self._pool.close()
