"""
예약 잡 실행기

claim 된 개별 잡의 핸들러를 실행하고 결과를 저장소에 기록합니다.
핸들러 예외는 fail_reason으로 기록될 뿐 호출자에게 전파되지 않습니다.
"""

import asyncio
import logging

from pydantic import ValidationError as PydanticValidationError

from scheduler.base import HandlerRegistry, default_registry
from scheduler.exception import HandlerNotFoundError
from scheduler.model.handler import HandlerParams
from scheduler.model.job import ScheduledJob
from scheduler.store import ScheduledJobStore

logger = logging.getLogger(__name__)


class Executor:
    """잡 실행기"""

    def __init__(
        self,
        store: ScheduledJobStore,
        registry: HandlerRegistry | None = None,
        timeout_seconds: float = 300,
    ):
        self._store = store
        self._registry = registry or default_registry
        self._timeout_seconds = timeout_seconds

    async def execute(self, job: ScheduledJob) -> bool:
        """
        잡 실행 (이미 claim 된 상태여야 함)

        Returns:
            bool: 실행 성공 여부
        """
        logger.info(f"Starting scheduled job: id={job.id}, handler={job.name}")

        try:
            handler = self._registry.get(job.name)
        except HandlerNotFoundError as e:
            logger.error(f"Handler not found: {job.name}")
            await self._finish(job.id, str(e))
            return False

        try:
            params = HandlerParams(job_id=job.id, **job.data)
        except PydanticValidationError as e:
            logger.error(f"Invalid job data: id={job.id}, error={e}")
            await self._finish(job.id, f"Invalid job data: {e}")
            return False

        try:
            await asyncio.wait_for(handler.execute(params), timeout=self._timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(f"Scheduled job timed out: id={job.id}")
            await self._finish(job.id, f"Handler timed out after {self._timeout_seconds}s")
            return False
        except Exception as e:
            logger.error(f"Scheduled job failed: id={job.id}, error={e}")
            await self._finish(job.id, str(e) or type(e).__name__)
            return False

        await self._finish(job.id, None)
        logger.info(f"Scheduled job completed: id={job.id}")
        return True

    async def _finish(self, job_id: str, fail_reason: str | None) -> None:
        await self._store.mark_finished(job_id, fail_reason)
