"""
SchedulerService 테스트

테스트 항목:
1. derive_status 매핑
2. schedule 유효성 검사 (빈 메시지, 과거/현재 시각)
3. schedule 직후 status == scheduled
4. cancel 후 not-found, claim 이후 cancel 실패
5. 동시 schedule 5건
6. claim 은 잡당 최대 1회
7. 실행 성공/실패 기록 (insert-message, shouldFail, 핸들러 없음, 타임아웃)
8. poller 동작 및 lazy 초기화
9. start 직후 stop, 실행 중 잡 대기 후 종료

실행: python -m pytest test/scheduler_test.py -v
"""

import asyncio
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

sys.path.insert(0, str(Path(__file__).parent.parent))

from common.timeutil import utcnow
from database import get_db
from database.registry import DatabaseRegistry
from scheduler.base import BaseHandler, HandlerRegistry, handler
from scheduler.exception import ScheduleValidationError
from scheduler.executor import Executor
from scheduler.job.insert_message import INSERT_MESSAGE, InsertMessageHandler
from scheduler.main import SchedulerService
from scheduler.model.handler import HandlerParams, HandlerResult
from scheduler.model.job import SchedulerConfig, ScheduledJobStatus, derive_status
from scheduler.poller import SchedulerPoller
from scheduler.store import SqliteScheduledJobStore

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ============================================================
# Fixtures
# ============================================================

@pytest_asyncio.fixture
async def database(tmp_path):
    DatabaseRegistry.clear()
    config = {"databases": {"default": {"type": "sqlite3", "path": str(tmp_path / "scheduler.db")}}}
    await DatabaseRegistry.init_from_config(config)
    yield get_db("default")
    await DatabaseRegistry.close_all()


@pytest_asyncio.fixture
async def store(database):
    return SqliteScheduledJobStore()


@pytest_asyncio.fixture
async def service(store):
    config = SchedulerConfig(poll_interval_seconds=0.05, handler_timeout_seconds=2, shutdown_timeout_seconds=2)
    svc = SchedulerService(config, store=store)
    yield svc
    await svc.stop()


async def _enqueue_due(store, data: dict, name: str = INSERT_MESSAGE):
    """이미 실행 시각이 지난 잡 (schedule 검증을 우회해 직접 등록)"""
    return await store.enqueue(name, data, utcnow() - timedelta(seconds=1))


async def _wait_finished(store, job_id: str, timeout: float = 5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while asyncio.get_running_loop().time() < deadline:
        job = await store.get(job_id)
        if job and job.last_finished_at is not None:
            return job
        await asyncio.sleep(0.05)
    raise AssertionError(f"Job {job_id} did not finish in {timeout}s")


async def _wait_for_status(store, job_id: str, status: ScheduledJobStatus, timeout: float = 5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while asyncio.get_running_loop().time() < deadline:
        job = await store.get(job_id)
        if job and job.status == status:
            return job
        await asyncio.sleep(0.02)
    raise AssertionError(f"Job {job_id} did not reach {status} in {timeout}s")


# ============================================================
# Derived status
# ============================================================

class TestDeriveStatus:

    def test_mapping(self):
        now = datetime.now(timezone.utc)
        assert derive_status(None, None, None, None) == ScheduledJobStatus.QUEUED
        assert derive_status(now, None, None, None) == ScheduledJobStatus.SCHEDULED
        assert derive_status(now, now, None, None) == ScheduledJobStatus.RUNNING
        assert derive_status(now, now, now, None) == ScheduledJobStatus.COMPLETED
        assert derive_status(now, now, now, "error") == ScheduledJobStatus.FAILED

    def test_finished_wins_over_running(self):
        now = datetime.now(timezone.utc)
        assert derive_status(None, now, now, None) == ScheduledJobStatus.COMPLETED


# ============================================================
# Validation
# ============================================================

class TestScheduleValidation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", ["", "   ", None])
    async def test_empty_message(self, service, message):
        with pytest.raises(ScheduleValidationError) as exc_info:
            await service.schedule(message, utcnow() + timedelta(minutes=5))
        assert exc_info.value.message == "Message cannot be empty"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("offset", [timedelta(0), timedelta(seconds=-10)])
    async def test_due_time_not_in_future(self, service, store, offset):
        with pytest.raises(ScheduleValidationError) as exc_info:
            await service.schedule("hello", utcnow() + offset)
        assert exc_info.value.message == "Scheduled time must be in the future"
        assert await store.query(INSERT_MESSAGE) == []

    @pytest.mark.asyncio
    async def test_naive_datetime_treated_as_utc(self, service):
        due = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(minutes=5)
        job_id = await service.schedule("naive", due)
        job = await service.get_job(job_id)
        assert job.next_run_at == due.replace(tzinfo=timezone.utc)


# ============================================================
# Schedule / cancel / status / list
# ============================================================

class TestSchedulerService:

    @pytest.mark.asyncio
    async def test_schedule_then_status_scheduled(self, service):
        job_id = await service.schedule("hello", utcnow() + timedelta(minutes=5), {"channel": "email"})

        assert len(job_id) == 24
        int(job_id, 16)
        assert await service.status(job_id) == ScheduledJobStatus.SCHEDULED

        job = await service.get_job(job_id)
        assert job.message == "hello"
        assert job.metadata == {"channel": "email"}

    @pytest.mark.asyncio
    async def test_cancel_before_claim(self, service):
        job_id = await service.schedule("to cancel", utcnow() + timedelta(minutes=5))

        assert await service.cancel(job_id) is True
        assert await service.status(job_id) is None
        assert await service.cancel(job_id) is False

    @pytest.mark.asyncio
    async def test_cancel_after_claim_fails(self, store):
        job = await _enqueue_due(store, {"message": "claimed"})
        claimed = await store.claim_due(utcnow(), 10)
        assert [j.id for j in claimed] == [job.id]

        assert await store.cancel(job.id) is False
        assert (await store.get(job.id)).status == ScheduledJobStatus.RUNNING

    @pytest.mark.asyncio
    async def test_concurrent_schedules(self, service):
        base = utcnow() + timedelta(minutes=10)
        job_ids = await asyncio.gather(*[
            service.schedule(f"message {i}", base + timedelta(seconds=i))
            for i in range(5)
        ])

        assert len(set(job_ids)) == 5
        listed = {job.id for job in await service.list_jobs()}
        assert set(job_ids) <= listed

    @pytest.mark.asyncio
    async def test_list_scheduled_filter(self, service, store):
        pending_id = await service.schedule("later", utcnow() + timedelta(minutes=5))
        done = await _enqueue_due(store, {"message": "done"})
        await store.claim_due(utcnow(), 10)
        await store.mark_finished(done.id)

        scheduled = {job.id for job in await service.list_jobs("scheduled")}
        everything = {job.id for job in await service.list_jobs()}

        assert pending_id in scheduled
        assert done.id not in scheduled
        assert {pending_id, done.id} <= everything

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, service):
        first = await service.start()
        second = await service.start()
        assert first is second


# ============================================================
# Claim
# ============================================================

class TestClaim:

    @pytest.mark.asyncio
    async def test_claim_at_most_once(self, store):
        job = await _enqueue_due(store, {"message": "once"})

        results = await asyncio.gather(*[store.claim_due(utcnow(), 10) for _ in range(5)])
        claimed_ids = [j.id for batch in results for j in batch]

        assert claimed_ids == [job.id]

    @pytest.mark.asyncio
    async def test_future_job_not_claimed(self, store):
        await store.enqueue(INSERT_MESSAGE, {"message": "future"}, utcnow() + timedelta(minutes=1))
        assert await store.claim_due(utcnow(), 10) == []

    @pytest.mark.asyncio
    async def test_claim_respects_limit(self, store):
        for i in range(3):
            await _enqueue_due(store, {"message": f"m{i}"})

        first = await store.claim_due(utcnow(), 2)
        second = await store.claim_due(utcnow(), 2)
        assert len(first) == 2
        assert len(second) == 1


# ============================================================
# Execution
# ============================================================

class TestExecutor:

    @pytest.mark.asyncio
    async def test_insert_message_success(self, database, store):
        job = await _enqueue_due(store, {"message": "persist me", "metadata": {"k": "v"}})
        [claimed] = await store.claim_due(utcnow(), 1)

        assert await Executor(store).execute(claimed) is True

        finished = await store.get(job.id)
        assert finished.status == ScheduledJobStatus.COMPLETED
        assert finished.fail_reason is None

        async with database.transaction(readonly=True) as ctx:
            row = await ctx.fetch_one("SELECT body FROM messages WHERE job_id = ?", (job.id,))
        assert row["body"] == "persist me"

    @pytest.mark.asyncio
    async def test_should_fail_metadata(self, store):
        job = await _enqueue_due(store, {"message": "fail me", "metadata": {"shouldFail": True}})
        [claimed] = await store.claim_due(utcnow(), 1)

        assert await Executor(store).execute(claimed) is False

        finished = await store.get(job.id)
        assert finished.status == ScheduledJobStatus.FAILED
        assert finished.fail_reason == "Simulated failure"

    @pytest.mark.asyncio
    async def test_unknown_handler(self, store):
        job = await _enqueue_due(store, {"message": "x"}, name="no-such-handler")
        [claimed] = await store.claim_due(utcnow(), 1)

        assert await Executor(store).execute(claimed) is False
        assert "no-such-handler" in (await store.get(job.id)).fail_reason

    @pytest.mark.asyncio
    async def test_handler_timeout(self, store):
        registry = HandlerRegistry()

        @handler("slow", registry=registry)
        class SlowHandler(BaseHandler):
            async def execute(self, params: HandlerParams) -> HandlerResult:
                await asyncio.sleep(5)
                return HandlerResult(action="slow")

        job = await _enqueue_due(store, {"message": "slow"}, name="slow")
        [claimed] = await store.claim_due(utcnow(), 1)

        assert await Executor(store, registry=registry, timeout_seconds=0.1).execute(claimed) is False
        assert "timed out" in (await store.get(job.id)).fail_reason

    def test_insert_message_registered(self):
        from scheduler.base import get_handler, get_registered_handlers

        assert get_registered_handlers()[INSERT_MESSAGE] is InsertMessageHandler
        assert isinstance(get_handler(INSERT_MESSAGE), InsertMessageHandler)


# ============================================================
# Poller
# ============================================================

class TestPoller:

    @pytest.mark.asyncio
    async def test_poller_runs_due_jobs(self, service, store):
        ok = await _enqueue_due(store, {"message": "ok"})
        bad = await _enqueue_due(store, {"message": "bad", "metadata": {"shouldFail": True}})

        await service.start()

        assert (await _wait_finished(store, ok.id)).status == ScheduledJobStatus.COMPLETED
        assert (await _wait_finished(store, bad.id)).status == ScheduledJobStatus.FAILED
        assert service.poller.is_running

    @pytest.mark.asyncio
    async def test_stop_right_after_start(self, service):
        await service.start()
        await asyncio.wait_for(service.stop(), timeout=3)
        assert service.poller is None

    @pytest.mark.asyncio
    async def test_poller_stopped_before_start(self, store):
        poller = SchedulerPoller(store, Executor(store), SchedulerConfig(poll_interval_seconds=0.05))
        await poller.stop()

        await asyncio.wait_for(poller.start(), timeout=3)
        assert not poller.is_running

    @pytest.mark.asyncio
    async def test_stop_waits_for_running_jobs(self, store):
        registry = HandlerRegistry()
        finished = []

        @handler(INSERT_MESSAGE, registry=registry)
        class SlowHandler(BaseHandler):
            async def execute(self, params: HandlerParams) -> HandlerResult:
                await asyncio.sleep(0.3)
                finished.append(params.job_id)
                return HandlerResult(action="slow")

        config = SchedulerConfig(poll_interval_seconds=0.05, shutdown_timeout_seconds=5)
        service = SchedulerService(config, store=store, registry=registry)
        job = await _enqueue_due(store, {"message": "slow"})
        await service.start()
        await _wait_for_status(store, job.id, ScheduledJobStatus.RUNNING)

        await asyncio.wait_for(service.stop(), timeout=5)
        assert finished == [job.id]
        assert (await store.get(job.id)).status == ScheduledJobStatus.COMPLETED
