"""Tests for the job runner, retry policy and workers."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest
from sqlalchemy import select, update

from coar_exchange.db.models.job import JobRow
from coar_exchange.db.models.notification import NotificationRow
from coar_exchange.handlers.dispatch import HANDLERS, HandlerDispatcher
from coar_exchange.handlers.responses import AcceptHandler
from coar_exchange.models.paper import PaperRecord
from coar_exchange.services.receiver import NotificationReceiver
from coar_exchange.workers.base import backoff_delay
from coar_exchange.workers.queue import WAKEUP_KEY, enqueue_job, enqueue_send
from coar_exchange.workers.runner import process_due_jobs, requeue_stale_jobs

from conftest import FakeCollaborator

EXAMPLES_DIR = Path(__file__).resolve().parent / "examples"


def load_example(name: str) -> dict:
    return json.loads((EXAMPLES_DIR / name).read_text(encoding="utf-8"))


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def get_job(session_factory, job_id: str) -> JobRow:
    async with session_factory() as session:
        return await session.get(JobRow, job_id)


async def make_all_jobs_due(session_factory) -> None:
    async with session_factory() as session:
        past = datetime.now(timezone.utc) - timedelta(seconds=1)
        await session.execute(update(JobRow).values(next_run_at=past))
        await session.commit()


async def queue_send(session_factory, ctx, issue_id=42, service="prereview", action="request_review") -> str:
    async with session_factory() as session:
        job = await enqueue_send(session, ctx, issue_id, service, action)
        await session.commit()
        return job.job_id


@pytest.fixture
def paper(collaborator):
    record = PaperRecord(doi="10.55458/neurolibre.00027", issue_id=42, url="https://neurolibre.org/papers/27")
    collaborator.papers[42] = record
    return record


def test_backoff_is_exponential():
    assert backoff_delay(2.0, 1) == timedelta(seconds=4)
    assert backoff_delay(2.0, 2) == timedelta(seconds=8)
    assert backoff_delay(2.0, 3) == timedelta(seconds=16)


@pytest.mark.asyncio
async def test_receive_job_dispatches_handler(session_factory, ctx, collaborator):
    collaborator.issues_by_doi["10.55458/neurolibre.00027"] = 12
    async with session_factory() as session:
        result = await NotificationReceiver(session, ctx).receive(json.dumps(load_example("announce_review.json")))
        await session.commit()

    assert await process_due_jobs(session_factory, ctx) == 1

    async with session_factory() as session:
        record = await session.get(NotificationRow, result.record_id)
        job = (await session.execute(select(JobRow))).scalar_one()
    assert record.status == "processed"
    assert record.issue_id == 12
    assert job.status == "succeeded"
    assert job.attempts == 1
    assert collaborator.comments[0][0] == 12

    # Nothing left to do
    assert await process_due_jobs(session_factory, ctx) == 0


@pytest.mark.asyncio
async def test_receive_job_skips_processed_record(session_factory, ctx, collaborator):
    async with session_factory() as session:
        result = await NotificationReceiver(session, ctx).receive(json.dumps(load_example("reject.json")))
        await session.execute(
            update(NotificationRow)
            .where(NotificationRow.record_id == result.record_id)
            .values(status="processed")
        )
        await session.commit()

    await process_due_jobs(session_factory, ctx)

    assert collaborator.comments == []
    async with session_factory() as session:
        job = (await session.execute(select(JobRow))).scalar_one()
    assert job.status == "succeeded"


@pytest.mark.asyncio
async def test_send_job_success_posts_confirmation(session_factory, ctx, collaborator, paper, remote_inbox):
    job_id = await queue_send(session_factory, ctx)

    await process_due_jobs(session_factory, ctx)

    job = await get_job(session_factory, job_id)
    assert job.status == "succeeded"
    assert len(remote_inbox.received) == 1
    issue_id, message = collaborator.comments[0]
    assert issue_id == 42
    assert "COAR Notification Sent" in message
    assert "**PREreview**" in message


@pytest.mark.asyncio
async def test_retry_with_backoff_then_drop(session_factory, ctx, collaborator, paper, remote_inbox):
    remote_inbox.fail_with(httpx.ConnectError)
    job_id = await queue_send(session_factory, ctx)

    before = datetime.now(timezone.utc)
    await process_due_jobs(session_factory, ctx)
    job = await get_job(session_factory, job_id)
    assert job.status == "queued"
    assert job.attempts == 1
    assert as_utc(job.next_run_at) >= before + timedelta(seconds=4)

    # Not due yet: the runner leaves it alone
    assert await process_due_jobs(session_factory, ctx) == 0

    for expected_attempt in (2, 3, 4):
        await make_all_jobs_due(session_factory)
        await process_due_jobs(session_factory, ctx)
        job = await get_job(session_factory, job_id)
        assert job.attempts == expected_attempt

    assert job.status == "failed"
    assert len(job.errors) == 4
    assert len(remote_inbox.received) == 4

    # Every attempt left a failed sent record
    async with session_factory() as session:
        rows = (await session.execute(select(NotificationRow))).scalars().all()
    assert len(rows) == 4
    assert {row.status for row in rows} == {"failed"}

    # Exhaustion is reported once on the issue
    assert len(collaborator.comments) == 1
    assert "could not be delivered" in collaborator.comments[0][1]

    # Dropped: never picked up again
    await make_all_jobs_due(session_factory)
    assert await process_due_jobs(session_factory, ctx) == 0


@pytest.mark.asyncio
async def test_peer_rejection_is_not_retried(session_factory, ctx, collaborator, paper, remote_inbox):
    remote_inbox.status = 400
    job_id = await queue_send(session_factory, ctx)

    await process_due_jobs(session_factory, ctx)

    job = await get_job(session_factory, job_id)
    assert job.status == "failed"
    assert job.attempts == 1
    assert job.errors[0]["code"] == "PEER_REJECTED"
    assert "rejected the COAR notification" in collaborator.comments[0][1]


@pytest.mark.asyncio
async def test_unknown_service_is_terminal(session_factory, ctx, collaborator, paper, remote_inbox):
    job_id = await queue_send(session_factory, ctx, service="nowhere")

    await process_due_jobs(session_factory, ctx)

    job = await get_job(session_factory, job_id)
    assert job.status == "failed"
    assert job.attempts == 1
    assert remote_inbox.received == []
    assert "validation failed" in collaborator.comments[0][1]
    assert "Unknown service: nowhere" in collaborator.comments[0][1]


@pytest.mark.asyncio
async def test_missing_paper_is_terminal(session_factory, ctx, collaborator, remote_inbox):
    job_id = await queue_send(session_factory, ctx, issue_id=404)

    await process_due_jobs(session_factory, ctx)

    job = await get_job(session_factory, job_id)
    assert job.status == "failed"
    assert "Could not fetch paper data for issue #404" in collaborator.comments[0][1]


@pytest.mark.asyncio
async def test_unknown_job_type_fails(session_factory, ctx):
    async with session_factory() as session:
        job = await enqueue_job(session, "reindex", trace_id="t1")
        await session.commit()

    await process_due_jobs(session_factory, ctx)

    stored = await get_job(session_factory, job.job_id)
    assert stored.status == "failed"
    assert stored.errors[0]["code"] == "UNKNOWN_JOB_TYPE"


@pytest.mark.asyncio
async def test_send_job_takes_retry_limit_and_redis_from_context(session_factory, ctx):
    class RecordingRedis:
        def __init__(self):
            self.pushed: list[tuple[str, dict]] = []

        async def rpush(self, key, value):
            self.pushed.append((key, json.loads(value)))

    ctx.settings = ctx.settings.model_copy(update={"job_max_retries": 5})
    ctx.redis = RecordingRedis()

    job_id = await queue_send(session_factory, ctx)

    job = await get_job(session_factory, job_id)
    assert job.max_retries == 5
    assert job.payload == {"issue_id": 42, "service": "prereview", "action": "request_review"}
    assert ctx.redis.pushed == [(WAKEUP_KEY, {"job_id": job_id, "job_type": "send_notification"})]


async def receive_example(session_factory, ctx, name: str) -> str:
    async with session_factory() as session:
        result = await NotificationReceiver(session, ctx).receive(json.dumps(load_example(name)))
        await session.commit()
    return result.record_id


async def get_record(session_factory, record_id: str) -> NotificationRow:
    async with session_factory() as session:
        return await session.get(NotificationRow, record_id)


async def only_job(session_factory) -> JobRow:
    async with session_factory() as session:
        return (await session.execute(select(JobRow))).scalar_one()


def flaky_accept_handler(failures: int) -> type[AcceptHandler]:
    """Accept handler whose first ``failures`` runs raise."""
    calls = []

    class FlakyAcceptHandler(AcceptHandler):
        async def handle(self) -> None:
            calls.append(self.record.record_id)
            if len(calls) <= failures:
                raise RuntimeError("editorial system unavailable")
            await super().handle()

    return FlakyAcceptHandler


@pytest.mark.asyncio
async def test_failed_handler_is_retried_until_processed(session_factory, ctx):
    ctx.dispatcher = HandlerDispatcher(handlers={**HANDLERS, "Accept": flaky_accept_handler(1)})
    record_id = await receive_example(session_factory, ctx, "accept.json")

    before = datetime.now(timezone.utc)
    assert await process_due_jobs(session_factory, ctx) == 1

    job = await only_job(session_factory)
    assert job.status == "queued"
    assert job.attempts == 1
    assert as_utc(job.next_run_at) >= before + timedelta(seconds=4)
    assert job.errors[0]["message"] == "RuntimeError: editorial system unavailable"
    record = await get_record(session_factory, record_id)
    assert record.status == "failed"
    assert record.error_message == "RuntimeError: editorial system unavailable"

    # Backoff not elapsed yet
    assert await process_due_jobs(session_factory, ctx) == 0

    await make_all_jobs_due(session_factory)
    assert await process_due_jobs(session_factory, ctx) == 1

    job = await only_job(session_factory)
    assert job.status == "succeeded"
    assert job.attempts == 2
    record = await get_record(session_factory, record_id)
    assert record.status == "processed"
    assert record.error_message is None
    assert record.processed_at is not None


@pytest.mark.asyncio
async def test_handler_failing_every_attempt_leaves_record_failed(session_factory, ctx):
    ctx.dispatcher = HandlerDispatcher(handlers={**HANDLERS, "Accept": flaky_accept_handler(100)})
    record_id = await receive_example(session_factory, ctx, "accept.json")

    for _ in range(4):
        await make_all_jobs_due(session_factory)
        assert await process_due_jobs(session_factory, ctx) == 1

    job = await only_job(session_factory)
    assert job.status == "failed"
    assert job.attempts == 4
    assert len(job.errors) == 4
    record = await get_record(session_factory, record_id)
    assert record.status == "failed"
    assert record.error_message == "RuntimeError: editorial system unavailable"

    # Dropped
    await make_all_jobs_due(session_factory)
    assert await process_due_jobs(session_factory, ctx) == 0


class BlockingCollaborator(FakeCollaborator):
    """Holds post_comment open until released."""

    def __init__(self):
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def post_comment(self, issue_id: int, message: str) -> bool:
        self.entered.set()
        await self.release.wait()
        return await super().post_comment(issue_id, message)


@pytest.mark.asyncio
async def test_job_cancelled_mid_run_is_requeued_and_finished_later(session_factory, ctx):
    collaborator = BlockingCollaborator()
    collaborator.issues_by_doi["10.55458/neurolibre.00027"] = 12
    ctx.collaborator = collaborator
    record_id = await receive_example(session_factory, ctx, "announce_review.json")

    runner = asyncio.create_task(process_due_jobs(session_factory, ctx))
    await asyncio.wait_for(collaborator.entered.wait(), timeout=5)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    job = await only_job(session_factory)
    assert job.status == "queued"
    assert job.attempts == 0
    record = await get_record(session_factory, record_id)
    # Committed before the handler started
    assert record.status == "processing"
    assert collaborator.comments == []

    collaborator.release.set()
    assert await process_due_jobs(session_factory, ctx) == 1

    job = await only_job(session_factory)
    assert job.status == "succeeded"
    assert job.attempts == 1
    record = await get_record(session_factory, record_id)
    assert record.status == "processed"
    assert collaborator.comments[0][0] == 12


@pytest.mark.asyncio
async def test_stale_running_job_is_requeued(session_factory, ctx, collaborator):
    collaborator.issues_by_doi["10.55458/neurolibre.00027"] = 12
    record_id = await receive_example(session_factory, ctx, "announce_review.json")

    # Claimed just now: still within its lease
    async with session_factory() as session:
        await session.execute(
            update(JobRow).values(status="running", attempts=1, updated_at=datetime.now(timezone.utc))
        )
        await session.commit()
    assert await requeue_stale_jobs(session_factory, ctx) == 0
    assert await process_due_jobs(session_factory, ctx) == 0

    # Claimed by a runner that died an hour ago
    async with session_factory() as session:
        an_hour_ago = datetime.now(timezone.utc) - timedelta(hours=1)
        await session.execute(update(JobRow).values(updated_at=an_hour_ago))
        await session.commit()
    assert await requeue_stale_jobs(session_factory, ctx) == 1

    job = await only_job(session_factory)
    assert job.status == "queued"

    assert await process_due_jobs(session_factory, ctx) == 1
    job = await only_job(session_factory)
    assert job.status == "succeeded"
    assert job.attempts == 2
    record = await get_record(session_factory, record_id)
    assert record.status == "processed"
    assert collaborator.comments[0][0] == 12
