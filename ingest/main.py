"""
IngestService: 업로드 파일 수집 서비스

start_job 은 잡을 등록하고 즉시 id 를 반환하며, 백그라운드 태스크가
파싱(ParsingExecutor) -> 적재(ImportPipeline) 순으로 잡을 진행시킵니다.
잡은 메모리에만 존재하므로 프로세스가 재시작되면 조회되지 않습니다.
"""

import asyncio
import logging
from pathlib import Path

from ingest.exception import InvalidTransitionError
from ingest.executor import ParsingExecutor
from ingest.model.job import FileFormat, IngestConfig, ParseJob, ParseJobStatus
from ingest.registry import ParseJobRegistry
from policy.pipeline import ImportPipeline

logger = logging.getLogger(__name__)


class IngestService:
    """파일 수집 서비스"""

    def __init__(
        self,
        pipeline: ImportPipeline,
        config: IngestConfig | None = None,
        registry: ParseJobRegistry | None = None,
        executor: ParsingExecutor | None = None,
    ):
        self._config = config or IngestConfig()
        self._pipeline = pipeline
        self._registry = registry or ParseJobRegistry(ttl_seconds=self._config.job_ttl_seconds)
        self._executor = executor or ParsingExecutor(
            isolation=self._config.isolation,
            timeout_seconds=self._config.parse_timeout_seconds,
        )
        self._running_tasks: set[asyncio.Task] = set()

        logger.info(
            f"IngestService ready (isolation={self._executor.isolation}); "
            f"parse jobs are kept in memory only and are lost on restart"
        )

    async def start_job(self, source_path: str, file_format: FileFormat) -> str:
        """잡 등록 후 즉시 id 반환 (fire-and-forget)"""
        job = await self._registry.create(source_path, file_format)
        task = asyncio.create_task(self._process_job(job.id, job.source_path))
        self._running_tasks.add(task)
        task.add_done_callback(self._running_tasks.discard)
        return job.id

    async def get_status(self, job_id: str) -> ParseJob | None:
        return await self._registry.get(job_id)

    async def _process_job(self, job_id: str, source_path: str) -> None:
        """pending -> processing -> completed | failed (끝나면 원본 파일 삭제)"""
        try:
            job = await self._registry.transition(job_id, ParseJobStatus.PROCESSING)

            result = await self._executor.parse(job.source_path, job.file_format)
            if not result.success:
                await self._registry.transition(job_id, ParseJobStatus.FAILED, error=result.error)
                logger.warning(f"Job {job_id} failed to parse: {result.error}")
                return

            summary = await self._pipeline.import_rows(result.rows)
            await self._registry.transition(
                job_id,
                ParseJobStatus.COMPLETED,
                records_processed=summary.imported,
                records_failed=summary.failed,
                errors=[e.model_dump() for e in summary.errors],
            )
            logger.info(f"Job {job_id} completed: {summary.imported} successful, {summary.failed} failed")

        except asyncio.CancelledError:
            await self._fail(job_id, "Job cancelled during shutdown")
            raise
        except Exception as e:
            logger.error(f"Job {job_id} failed: {e}", exc_info=True)
            await self._fail(job_id, str(e) or type(e).__name__)
        finally:
            if self._config.remove_source:
                self._remove_source(source_path)

    @staticmethod
    def _remove_source(source_path: str) -> None:
        try:
            Path(source_path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove source file {source_path}: {e}")

    async def _fail(self, job_id: str, error: str) -> None:
        try:
            await self._registry.transition(job_id, ParseJobStatus.FAILED, error=error)
        except InvalidTransitionError as e:
            logger.warning(f"Could not mark job as failed: {e}")

    async def stop(self) -> None:
        """진행 중인 잡 대기 후 시간 초과 시 취소"""
        if not self._running_tasks:
            return

        logger.info(f"Waiting for {len(self._running_tasks)} parse jobs...")
        tasks = list(self._running_tasks)
        _, pending = await asyncio.wait(tasks, timeout=self._config.shutdown_timeout_seconds)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(f"Cancelled {len(pending)} parse jobs on shutdown")

    @property
    def registry(self) -> ParseJobRegistry:
        return self._registry

    @property
    def running_job_count(self) -> int:
        return len(self._running_tasks)
