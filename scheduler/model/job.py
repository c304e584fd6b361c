"""
예약 잡 모델 정의

상태는 저장하지 않고 타임스탬프로부터 계산합니다 (derive_status).
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ScheduledJobStatus(str, Enum):
    """예약 잡 상태 (파생값)"""
    QUEUED = "queued"
    SCHEDULED = "scheduled"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def derive_status(
    next_run_at: datetime | None,
    last_run_at: datetime | None,
    last_finished_at: datetime | None,
    fail_reason: str | None,
) -> ScheduledJobStatus:
    """타임스탬프 -> 상태 매핑"""
    if last_finished_at is not None:
        return ScheduledJobStatus.FAILED if fail_reason else ScheduledJobStatus.COMPLETED
    if last_run_at is not None:
        return ScheduledJobStatus.RUNNING
    if next_run_at is not None:
        return ScheduledJobStatus.SCHEDULED
    return ScheduledJobStatus.QUEUED


class ScheduledJob(BaseModel):
    """예약 잡 엔티티 (scheduled_jobs 테이블)"""
    id: str
    name: str
    data: dict[str, Any] = Field(default_factory=dict)
    next_run_at: datetime | None = None
    last_run_at: datetime | None = None
    last_finished_at: datetime | None = None
    fail_reason: str | None = None
    created_at: datetime | None = None

    @property
    def status(self) -> ScheduledJobStatus:
        return derive_status(self.next_run_at, self.last_run_at, self.last_finished_at, self.fail_reason)

    @property
    def message(self) -> str | None:
        return self.data.get("message")

    @property
    def metadata(self) -> Any:
        return self.data.get("metadata")


class SchedulerConfig(BaseModel):
    """Scheduler 설정"""
    database: str = Field(default="default", description="database.yaml에 정의된 DB 이름")
    poll_interval_seconds: float = Field(default=1.0, gt=0, le=60)
    max_concurrency: int = Field(default=20, ge=1, le=200)
    handler_timeout_seconds: float = Field(default=300, gt=0, le=86400)
    shutdown_timeout_seconds: float = Field(default=30, ge=0, le=600)
