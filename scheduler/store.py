"""
예약 잡 저장소

ScheduledJobStore는 영속 저장소가 제공해야 할 최소 인터페이스입니다.
claim_due는 후보마다 단일 조건부 UPDATE(compare-and-set)로 구현하여
여러 poller/레플리카가 동시에 돌아도 잡당 최대 1회 실행을 보장합니다.
"""

import json
import logging
import secrets
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosql

from common.timeutil import from_db_time, to_db_time, utcnow
from database import get_db
from scheduler.model.job import ScheduledJob

logger = logging.getLogger(__name__)

JOB_ID_BYTES = 12  # 24자리 hex


class ScheduledJobStore(ABC):
    """예약 잡 저장소 인터페이스"""

    @abstractmethod
    async def enqueue(self, name: str, data: dict[str, Any], next_run_at: datetime) -> ScheduledJob:
        ...

    @abstractmethod
    async def claim_due(self, now: datetime, limit: int) -> list[ScheduledJob]:
        ...

    @abstractmethod
    async def mark_finished(self, job_id: str, fail_reason: str | None = None) -> None:
        ...

    @abstractmethod
    async def cancel(self, job_id: str) -> bool:
        ...

    @abstractmethod
    async def query(self, name: str, scheduled_only: bool = False) -> list[ScheduledJob]:
        ...

    @abstractmethod
    async def get(self, job_id: str) -> ScheduledJob | None:
        ...


def new_job_id() -> str:
    return secrets.token_hex(JOB_ID_BYTES)


def _row_to_job(row) -> ScheduledJob:
    row_dict = dict(row)
    return ScheduledJob(
        id=row_dict["id"],
        name=row_dict["name"],
        data=json.loads(row_dict["data"] or "{}"),
        next_run_at=from_db_time(row_dict["next_run_at"]),
        last_run_at=from_db_time(row_dict["last_run_at"]),
        last_finished_at=from_db_time(row_dict["last_finished_at"]),
        fail_reason=row_dict["fail_reason"],
        created_at=from_db_time(row_dict["created_at"]),
    )


class SqliteScheduledJobStore(ScheduledJobStore):
    """scheduled_jobs 테이블 기반 저장소"""

    def __init__(self, database: str = "default"):
        self._database = database
        sql_path = Path(__file__).parent / "sql" / "scheduler.sql"
        self._queries = aiosql.from_path(str(sql_path), "aiosqlite")

    def _db(self):
        return get_db(self._database)

    async def enqueue(self, name: str, data: dict[str, Any], next_run_at: datetime) -> ScheduledJob:
        job_id = new_job_id()
        async with self._db().transaction() as ctx:
            await self._queries.insert_job(
                ctx.connection,
                id=job_id,
                name=name,
                data=json.dumps(data),
                next_run_at=to_db_time(next_run_at),
                created_at=to_db_time(utcnow()),
            )
            row = await self._queries.get_job(ctx.connection, id=job_id)
        return _row_to_job(row)

    async def claim_due(self, now: datetime, limit: int) -> list[ScheduledJob]:
        """실행 시각이 도래한 잡을 최대 limit개 claim"""
        if limit <= 0:
            return []

        now_str = to_db_time(now)
        claimed: list[ScheduledJob] = []
        async with self._db().transaction() as ctx:
            candidates = await self._queries.get_due_candidates(ctx.connection, now=now_str, limit=limit)
            for candidate in candidates:
                job_id = candidate["id"]
                affected_rows = await self._queries.claim_job(ctx.connection, id=job_id, now=now_str)
                if affected_rows > 0:
                    row = await self._queries.get_job(ctx.connection, id=job_id)
                    claimed.append(_row_to_job(row))
                else:
                    logger.debug(f"Job already claimed or cancelled: id={job_id}")
        return claimed

    async def mark_finished(self, job_id: str, fail_reason: str | None = None) -> None:
        async with self._db().transaction() as ctx:
            await self._queries.finish_job(
                ctx.connection,
                id=job_id,
                finished_at=to_db_time(utcnow()),
                fail_reason=fail_reason,
            )

    async def cancel(self, job_id: str) -> bool:
        async with self._db().transaction() as ctx:
            affected_rows = await self._queries.cancel_job(ctx.connection, id=job_id)
        return affected_rows > 0

    async def query(self, name: str, scheduled_only: bool = False) -> list[ScheduledJob]:
        async with self._db().transaction(readonly=True) as ctx:
            if scheduled_only:
                rows = await self._queries.get_scheduled_jobs_by_name(ctx.connection, name=name)
            else:
                rows = await self._queries.get_jobs_by_name(ctx.connection, name=name)
        return [_row_to_job(row) for row in rows]

    async def get(self, job_id: str) -> ScheduledJob | None:
        async with self._db().transaction(readonly=True) as ctx:
            row = await self._queries.get_job(ctx.connection, id=job_id)
        return _row_to_job(row) if row else None
