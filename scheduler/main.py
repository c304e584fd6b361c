"""
SchedulerService: 메시지 예약 서비스

예약(schedule)/취소(cancel)/상태(status)/목록(list_jobs)을 제공하고,
첫 사용 시 poller를 한 번만 생성하여 백그라운드로 실행합니다.

cancel 과 poller claim 의 경합:
    두 연산 모두 "last_run_at IS NULL" 조건의 단일 문장으로 처리되므로
    먼저 커밋된 쪽이 이깁니다. cancel 이 이기면 잡이 삭제되어 claim 대상에서
    빠지고, claim 이 이기면 cancel 은 False 를 반환하고 잡은 정확히 한 번 실행됩니다.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any

from common.timeutil import ensure_utc, utcnow
from scheduler.base import HandlerRegistry, default_registry
from scheduler.exception import ScheduleValidationError
from scheduler.executor import Executor
from scheduler.job.insert_message import INSERT_MESSAGE
from scheduler.model.job import ScheduledJob, ScheduledJobStatus, SchedulerConfig
from scheduler.poller import SchedulerPoller
from scheduler.store import ScheduledJobStore, SqliteScheduledJobStore

logger = logging.getLogger(__name__)


class SchedulerService:
    """메시지 예약 서비스"""

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        store: ScheduledJobStore | None = None,
        registry: HandlerRegistry | None = None,
        job_name: str = INSERT_MESSAGE,
    ):
        self._config = config or SchedulerConfig()
        self._store = store or SqliteScheduledJobStore(self._config.database)
        self._registry = registry or default_registry
        self._job_name = job_name
        self._poller: SchedulerPoller | None = None
        self._poller_task: asyncio.Task | None = None
        self._init_lock = asyncio.Lock()

    async def start(self) -> SchedulerPoller:
        """poller 초기화 (이미 있으면 기존 인스턴스 반환)"""
        if self._poller is not None:
            return self._poller

        async with self._init_lock:
            if self._poller is None:
                executor = Executor(
                    self._store,
                    registry=self._registry,
                    timeout_seconds=self._config.handler_timeout_seconds,
                )
                poller = SchedulerPoller(self._store, executor, self._config)
                self._poller_task = asyncio.create_task(poller.start())
                self._poller = poller
                logger.info("Scheduler poller initialized")
        return self._poller

    async def stop(self) -> None:
        """poller 종료 (실행 중 잡은 shutdown_timeout 까지 대기)"""
        if self._poller is None:
            return

        await self._poller.stop()
        if self._poller_task:
            await self._poller_task
        self._poller = None
        self._poller_task = None

    async def schedule(
        self,
        message: str | None,
        due_time: datetime,
        metadata: Any = None,
    ) -> str:
        """
        메시지 예약

        Raises:
            ScheduleValidationError: 빈 메시지이거나 due_time 이 현재보다 미래가 아닌 경우
        """
        if message is None or not str(message).strip():
            raise ScheduleValidationError("Message cannot be empty")

        due_time = ensure_utc(due_time)
        if due_time <= utcnow():
            raise ScheduleValidationError("Scheduled time must be in the future")

        await self.start()
        job = await self._store.enqueue(
            self._job_name,
            {"message": message, "metadata": metadata},
            due_time,
        )
        logger.info(f"Scheduled message: id={job.id}, next_run_at={job.next_run_at.isoformat()}")
        return job.id

    async def cancel(self, job_id: str) -> bool:
        """claim 전인 잡만 삭제, 삭제 여부 반환"""
        await self.start()
        cancelled = await self._store.cancel(job_id)
        if cancelled:
            logger.info(f"Cancelled scheduled job: id={job_id}")
        else:
            logger.info(f"Cancel skipped (not found or already claimed): id={job_id}")
        return cancelled

    async def get_job(self, job_id: str) -> ScheduledJob | None:
        await self.start()
        return await self._store.get(job_id)

    async def status(self, job_id: str) -> ScheduledJobStatus | None:
        """파생 상태 반환 (없으면 None)"""
        job = await self.get_job(job_id)
        return job.status if job else None

    async def list_jobs(self, status: str | None = None) -> list[ScheduledJob]:
        """예약 잡 목록 (status='scheduled' 면 아직 끝나지 않은 잡만)"""
        await self.start()
        scheduled_only = status == ScheduledJobStatus.SCHEDULED.value
        return await self._store.query(self._job_name, scheduled_only=scheduled_only)

    @property
    def poller(self) -> SchedulerPoller | None:
        return self._poller

    @property
    def config(self) -> SchedulerConfig:
        return self._config
