"""
SchedulerPoller: 예약 잡 폴링/실행 루프

poll_interval_seconds 마다 실행 시각이 도래한 잡을 claim 하여
max_concurrency 범위 안에서 동시에 실행합니다.
"""

import asyncio
import logging

from common.timeutil import utcnow
from scheduler.executor import Executor
from scheduler.model.job import ScheduledJob, SchedulerConfig
from scheduler.store import ScheduledJobStore

logger = logging.getLogger(__name__)


class SchedulerPoller:
    """예약 잡 poller"""

    def __init__(self, store: ScheduledJobStore, executor: Executor, config: SchedulerConfig):
        self._store = store
        self._executor = executor
        self._config = config
        self._running = False
        self._stop_event = asyncio.Event()
        self._running_tasks: set[asyncio.Task] = set()
        self._semaphore = asyncio.Semaphore(config.max_concurrency)

    async def start(self) -> None:
        """메인 루프 시작 (stop() 호출 전까지 반환하지 않음)"""
        if self._running:
            logger.warning("SchedulerPoller is already running")
            return
        if self._stop_event.is_set():
            logger.info("SchedulerPoller stopped before start")
            return

        self._running = True

        logger.info(
            f"SchedulerPoller started (max_concurrency={self._config.max_concurrency}, "
            f"poll_interval={self._config.poll_interval_seconds}s)"
        )

        try:
            await self._main_loop()
        except asyncio.CancelledError:
            logger.info("SchedulerPoller cancelled")
        finally:
            await self._wait_running_tasks()
            self._running = False
            logger.info("SchedulerPoller stopped")

    async def stop(self) -> None:
        """종료 요청 (start() 진입 전에 호출돼도 루프는 시작하지 않음)"""
        if self._stop_event.is_set():
            return

        logger.info("Stopping SchedulerPoller...")
        self._running = False
        self._stop_event.set()

    async def _main_loop(self) -> None:
        while self._running and not self._stop_event.is_set():
            try:
                await self.poll_once()
            except Exception as e:
                # 저장소 오류로 poller가 죽지 않도록 다음 주기에 재시도
                logger.error(f"Error in poll_once: {e}", exc_info=True)

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self._config.poll_interval_seconds
                )
                break
            except asyncio.TimeoutError:
                pass

    async def poll_once(self) -> int:
        """도래한 잡 claim 후 실행 태스크 생성, claim 한 개수 반환"""
        available = self._config.max_concurrency - len(self._running_tasks)
        if available <= 0:
            logger.debug("No available execution slots, skipping poll")
            return 0

        jobs = await self._store.claim_due(utcnow(), available)
        if not jobs:
            return 0

        logger.debug(f"Claimed {len(jobs)} scheduled jobs")
        for job in jobs:
            await self._semaphore.acquire()
            task = asyncio.create_task(self._execute_job(job))
            self._running_tasks.add(task)
            task.add_done_callback(self._on_task_done)
        return len(jobs)

    async def _execute_job(self, job: ScheduledJob) -> None:
        try:
            await self._executor.execute(job)
        except Exception as e:
            logger.error(f"Unexpected error executing job {job.id}: {e}", exc_info=True)
        finally:
            self._semaphore.release()

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._running_tasks.discard(task)

    async def _wait_running_tasks(self) -> None:
        """실행 중인 잡 완료 대기 (graceful shutdown)"""
        if not self._running_tasks:
            return

        logger.info(f"Waiting for {len(self._running_tasks)} running jobs...")
        try:
            await asyncio.wait_for(
                asyncio.gather(*self._running_tasks, return_exceptions=True),
                timeout=self._config.shutdown_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Shutdown timeout ({self._config.shutdown_timeout_seconds}s), "
                f"{len(self._running_tasks)} jobs still running"
            )
            for task in list(self._running_tasks):
                task.cancel()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def running_task_count(self) -> int:
        return len(self._running_tasks)
