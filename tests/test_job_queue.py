"""Tests for the scheduled job queues."""

import json
from contextlib import asynccontextmanager
from datetime import timedelta

import pytest

from servicedesk.tickets.job_queue import (
    FileJobQueue,
    InMemoryJobQueue,
    JobKind,
    JobStatus,
    PostgresJobQueue,
    ScheduledJob,
)
from servicedesk.tickets.ticket_service import TicketService
from servicedesk.tickets.store import InMemoryTicketStore
from servicedesk.utils import utcnow
from tests.conftest import make_request


def _job(ticket_id: str = "t-1", delay: float = 0, kind: JobKind = JobKind.NOTIFY) -> ScheduledJob:
    return ScheduledJob(kind=kind, ticket_id=ticket_id, run_at=utcnow() + timedelta(seconds=delay))


class TestInMemoryJobQueue:
    def setup_method(self):
        self.queue = InMemoryJobQueue()

    @pytest.mark.asyncio
    async def test_claim_only_due_jobs(self):
        due = await self.queue.enqueue(_job(delay=-5))
        await self.queue.enqueue(_job(delay=3600))
        claimed = await self.queue.claim_due(utcnow())
        assert [j.id for j in claimed] == [due.id]
        assert claimed[0].status is JobStatus.RUNNING
        assert claimed[0].attempts == 1

    @pytest.mark.asyncio
    async def test_claimed_jobs_not_claimed_again(self):
        await self.queue.enqueue(_job(delay=-5))
        await self.queue.claim_due(utcnow())
        assert await self.queue.claim_due(utcnow()) == []

    @pytest.mark.asyncio
    async def test_claim_in_run_order_with_limit(self):
        late = await self.queue.enqueue(_job(delay=-1))
        early = await self.queue.enqueue(_job(delay=-10))
        await self.queue.enqueue(_job(delay=-5))
        claimed = await self.queue.claim_due(utcnow(), limit=2)
        assert [j.id for j in claimed][0] == early.id
        assert late.id not in [j.id for j in claimed]

    @pytest.mark.asyncio
    async def test_complete(self):
        job = await self.queue.enqueue(_job(delay=-1))
        await self.queue.claim_due(utcnow())
        await self.queue.complete(job.id)
        assert self.queue.get(job.id).status is JobStatus.DONE

    @pytest.mark.asyncio
    async def test_fail_with_retry_reschedules(self):
        job = await self.queue.enqueue(_job(delay=-1))
        retry_at = utcnow() + timedelta(minutes=1)
        await self.queue.fail(job.id, "boom", retry_at=retry_at)
        retried = self.queue.get(job.id)
        assert retried.status is JobStatus.PENDING
        assert retried.run_at == retry_at
        assert retried.last_error == "boom"

    @pytest.mark.asyncio
    async def test_cancel_for_ticket(self):
        await self.queue.enqueue(_job("t-1", kind=JobKind.NOTIFY))
        await self.queue.enqueue(_job("t-1", kind=JobKind.FOLLOW_UP))
        await self.queue.enqueue(_job("t-2"))
        assert await self.queue.cancel_for_ticket("t-1") == 2
        assert [j.ticket_id for j in await self.queue.pending()] == ["t-2"]

    @pytest.mark.asyncio
    async def test_unknown_job_ignored(self):
        await self.queue.complete("does-not-exist")
        assert await self.queue.pending() == []


class TestFileJobQueue:
    @pytest.mark.asyncio
    async def test_jobs_written_to_disk(self, tmp_path):
        path = tmp_path / "jobs.json"
        queue = FileJobQueue(str(path))
        job = await queue.enqueue(_job())
        data = json.loads(path.read_text(encoding="utf-8"))
        assert [j["id"] for j in data["jobs"]] == [job.id]
        assert data["jobs"][0]["kind"] == "notify"

    @pytest.mark.asyncio
    async def test_jobs_survive_restart(self, tmp_path):
        path = str(tmp_path / "jobs.json")
        service = TicketService(InMemoryTicketStore(), FileJobQueue(path))
        ticket = await service.create_ticket(make_request())

        reloaded = FileJobQueue(path)
        jobs = await reloaded.pending()
        assert len(jobs) == 3
        assert {j.ticket_id for j in jobs} == {ticket.id}

    @pytest.mark.asyncio
    async def test_interrupted_jobs_resume(self, tmp_path):
        path = str(tmp_path / "jobs.json")
        queue = FileJobQueue(path)
        job = await queue.enqueue(_job(delay=-1))
        await queue.claim_due(utcnow())

        reloaded = FileJobQueue(path)
        resumed = reloaded.get(job.id)
        assert resumed.status is JobStatus.PENDING
        assert resumed.attempts == 1

    @pytest.mark.asyncio
    async def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "jobs.json"
        queue = FileJobQueue(str(path))
        await queue.enqueue(_job())
        assert path.exists()

    def test_missing_file_is_empty_queue(self, tmp_path):
        queue = FileJobQueue(str(tmp_path / "absent.json"))
        assert queue.get("anything") is None

    def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "jobs.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(json.JSONDecodeError):
            FileJobQueue(str(path))


class FakeConnection:
    def __init__(self, pool: "FakePool") -> None:
        self.pool = pool

    @asynccontextmanager
    async def transaction(self):
        self.pool.transactions += 1
        yield

    async def fetch(self, sql, *args):
        return await self.pool.fetch(sql, *args)


class FakePool:
    """Stands in for an asyncpg pool: records statements, answers from a script."""

    def __init__(self, fetch_results=None, execute_result: str = "UPDATE 0") -> None:
        self.fetch_results = list(fetch_results or [])
        self.execute_result = execute_result
        self.statements: list[tuple[str, tuple]] = []
        self.transactions = 0

    def _record(self, sql: str, args: tuple) -> None:
        self.statements.append((" ".join(sql.split()), args))

    async def execute(self, sql, *args):
        self._record(sql, args)
        return self.execute_result

    async def fetch(self, sql, *args):
        self._record(sql, args)
        return self.fetch_results.pop(0) if self.fetch_results else []

    @asynccontextmanager
    async def acquire(self):
        yield FakeConnection(self)


def _row(job: ScheduledJob, **changes) -> dict:
    return {**job.model_dump(), "kind": job.kind.value, "status": job.status.value, **changes}


class TestPostgresJobQueue:
    @pytest.mark.asyncio
    async def test_enqueue_inserts_all_columns(self):
        pool = FakePool()
        job = _job()
        await PostgresJobQueue(pool).enqueue(job)
        sql, args = pool.statements[0]
        assert sql.startswith("INSERT INTO scheduled_jobs")
        assert args == (
            job.id, "notify", job.ticket_id, job.run_at, 0, "pending", None, job.created_at,
        )

    @pytest.mark.asyncio
    async def test_claim_due_locks_then_marks_running(self):
        late = _job(delay=-1)
        early = _job(delay=-10, kind=JobKind.AUTO_ASSIGN)
        pool = FakePool(fetch_results=[
            [{"id": early.id}, {"id": late.id}],
            [_row(late, status="running", attempts=1), _row(early, status="running", attempts=1)],
        ])
        now = utcnow()

        claimed = await PostgresJobQueue(pool).claim_due(now, limit=5)

        assert [j.id for j in claimed] == [early.id, late.id]
        assert all(j.status is JobStatus.RUNNING and j.attempts == 1 for j in claimed)
        assert claimed[0].kind is JobKind.AUTO_ASSIGN
        assert pool.transactions == 1

        select_sql, select_args = pool.statements[0]
        assert "FOR UPDATE SKIP LOCKED" in select_sql
        assert select_args == (now, 5)
        update_sql, update_args = pool.statements[1]
        assert "SET status = 'running', attempts = attempts + 1" in update_sql
        assert update_args == ([early.id, late.id],)

    @pytest.mark.asyncio
    async def test_claim_due_with_nothing_due(self):
        pool = FakePool(fetch_results=[[]])
        assert await PostgresJobQueue(pool).claim_due(utcnow()) == []
        assert len(pool.statements) == 1

    @pytest.mark.asyncio
    async def test_complete(self):
        pool = FakePool()
        await PostgresJobQueue(pool).complete("job-1")
        assert pool.statements == [("UPDATE scheduled_jobs SET status = 'done' WHERE id = $1", ("job-1",))]

    @pytest.mark.asyncio
    async def test_fail_without_retry_is_final(self):
        pool = FakePool()
        await PostgresJobQueue(pool).fail("job-1", "boom")
        sql, args = pool.statements[0]
        assert "status = 'failed'" in sql
        assert args == ("job-1", "boom")

    @pytest.mark.asyncio
    async def test_fail_with_retry_reschedules(self):
        pool = FakePool()
        retry_at = utcnow() + timedelta(minutes=1)
        await PostgresJobQueue(pool).fail("job-1", "boom", retry_at=retry_at)
        sql, args = pool.statements[0]
        assert "status = 'pending'" in sql
        assert "run_at = $3" in sql
        assert args == ("job-1", "boom", retry_at)

    @pytest.mark.asyncio
    async def test_cancel_for_ticket_reads_command_tag(self):
        pool = FakePool(execute_result="UPDATE 2")
        assert await PostgresJobQueue(pool).cancel_for_ticket("t-1") == 2
        sql, args = pool.statements[0]
        assert "status = 'cancelled'" in sql
        assert "status = 'pending'" in sql
        assert args == ("t-1",)

    @pytest.mark.asyncio
    async def test_cancel_for_ticket_nothing_pending(self):
        pool = FakePool(execute_result="UPDATE 0")
        assert await PostgresJobQueue(pool).cancel_for_ticket("t-1") == 0

    @pytest.mark.asyncio
    async def test_pending_parses_rows(self):
        job = _job(delay=60)
        pool = FakePool(fetch_results=[[_row(job)]])
        jobs = await PostgresJobQueue(pool).pending()
        assert [j.id for j in jobs] == [job.id]
        assert jobs[0].status is JobStatus.PENDING
