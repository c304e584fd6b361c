"""
ParsingExecutor: 파싱을 격리 실행 컨텍스트로 위임

잡마다 max_workers=1 인 풀을 새로 만들고 파싱이 끝나면 정리합니다.
호출 흐름은 제출 시점까지만 진행하고 결과는 future 로 받습니다.
"""

import asyncio
import logging
import multiprocessing
from concurrent.futures import Executor as FuturesExecutor
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from concurrent.futures.process import BrokenProcessPool

from ingest.model.job import FileFormat, ParseResult
from ingest.parser import parse_file

logger = logging.getLogger(__name__)


class ParsingExecutor:
    """파일 파싱 실행기"""

    def __init__(self, isolation: str = "process", timeout_seconds: float = 300):
        if isolation not in ("process", "thread"):
            raise ValueError(f"Unknown isolation mode: {isolation}")
        self._isolation = isolation
        self._timeout_seconds = timeout_seconds

    def _create_pool(self) -> FuturesExecutor:
        if self._isolation == "process":
            # aiosqlite 스레드의 잠금 상태를 자식이 물려받지 않도록 spawn 사용
            return ProcessPoolExecutor(max_workers=1, mp_context=multiprocessing.get_context("spawn"))
        return ThreadPoolExecutor(max_workers=1, thread_name_prefix="parse")

    async def parse(self, source_path: str, file_format: FileFormat) -> ParseResult:
        """파싱 결과 메시지 반환 (실패도 ParseResult 로 반환)"""
        pool = self._create_pool()
        loop = asyncio.get_running_loop()
        timed_out = False
        try:
            future = loop.run_in_executor(pool, parse_file, str(source_path), file_format.value)
            message = await asyncio.wait_for(future, timeout=self._timeout_seconds)
        except asyncio.TimeoutError:
            timed_out = True
            logger.error(f"Parsing timed out after {self._timeout_seconds}s: {source_path}")
            return ParseResult(success=False, error=f"Parsing timed out after {self._timeout_seconds}s")
        except BrokenProcessPool as e:
            logger.error(f"Parser process terminated unexpectedly: {source_path}")
            return ParseResult(success=False, error=f"Parser process terminated unexpectedly: {e}")
        finally:
            if timed_out and hasattr(pool, "kill_workers"):
                pool.kill_workers()
            pool.shutdown(wait=False, cancel_futures=True)

        return ParseResult(**message)

    @property
    def isolation(self) -> str:
        return self._isolation
