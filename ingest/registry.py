"""
ParseJobRegistry: 파싱 잡 상태 저장소 (메모리)

잡 상태는 pending -> processing -> completed | failed 순으로만 전이합니다.
프로세스가 재시작되면 모든 잡이 사라지므로, 종료 상태의 잡은 ttl 이 지나면
다음 등록 시점에 정리합니다.
"""

import asyncio
import logging
import uuid
from datetime import timedelta
from typing import Any

from common.timeutil import utcnow
from ingest.exception import InvalidTransitionError, ParseJobNotFoundError
from ingest.model.job import FileFormat, ParseJob, ParseJobStatus

logger = logging.getLogger(__name__)


class ParseJobRegistry:
    """job_id -> ParseJob"""

    def __init__(self, ttl_seconds: float | None = None):
        self._jobs: dict[str, ParseJob] = {}
        self._lock = asyncio.Lock()
        self._ttl_seconds = ttl_seconds

    async def create(self, source_path: str, file_format: FileFormat) -> ParseJob:
        job = ParseJob(id=str(uuid.uuid4()), source_path=str(source_path), file_format=file_format)
        async with self._lock:
            self._evict_expired()
            self._jobs[job.id] = job
        logger.info(f"Parse job created: id={job.id}, format={file_format.value}")
        return job.model_copy(deep=True)

    async def get(self, job_id: str) -> ParseJob | None:
        """스냅샷 반환 (호출자가 수정해도 레지스트리에 영향 없음)"""
        async with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    async def transition(self, job_id: str, status: ParseJobStatus, **changes: Any) -> ParseJob:
        """
        상태 전이

        Raises:
            ParseJobNotFoundError: 등록되지 않은 잡
            InvalidTransitionError: 역행하거나 종료 상태 이후의 전이
        """
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise ParseJobNotFoundError(job_id)
            if job.status.is_terminal or status.rank <= job.status.rank:
                raise InvalidTransitionError(job_id, job.status.value, status.value)

            updates = dict(changes, status=status)
            if status.is_terminal:
                updates["completed_at"] = utcnow()
            updated = job.model_copy(update=updates, deep=True)
            self._jobs[job_id] = updated

        logger.info(f"Parse job {job_id}: {job.status.value} -> {status.value}")
        return updated.model_copy(deep=True)

    def _evict_expired(self) -> None:
        if not self._ttl_seconds:
            return
        cutoff = utcnow() - timedelta(seconds=self._ttl_seconds)
        expired = [
            job_id for job_id, job in self._jobs.items()
            if job.status.is_terminal and job.completed_at and job.completed_at < cutoff
        ]
        for job_id in expired:
            del self._jobs[job_id]
        if expired:
            logger.debug(f"Evicted {len(expired)} expired parse jobs")

    def __len__(self) -> int:
        return len(self._jobs)
