"""메시지 예약 관련 모델"""

from datetime import datetime
from typing import Any

from pydantic import Field

from api.model.common import CamelModel
from scheduler.model.job import ScheduledJob


class ScheduleRequest(CamelModel):
    """메시지 예약 요청"""
    message: str | None = None
    scheduled_for: datetime
    metadata: Any = None


class ScheduleResponse(CamelModel):
    success: bool = True
    job_id: str
    status: str
    scheduled_for: datetime
    message: str


class ScheduledMessage(CamelModel):
    """예약 메시지 목록 항목"""
    job_id: str
    message: str | None = None
    scheduled_for: datetime | None = None
    status: str
    metadata: Any = None

    @classmethod
    def from_job(cls, job: ScheduledJob) -> "ScheduledMessage":
        return cls(
            job_id=job.id,
            message=job.message,
            scheduled_for=job.next_run_at,
            status=job.status.value,
            metadata=job.metadata,
        )


class ScheduledMessageList(CamelModel):
    success: bool = True
    data: list[ScheduledMessage] = Field(default_factory=list)


class ScheduledJobStatusData(CamelModel):
    """파생 상태 상세"""
    job_id: str
    status: str
    scheduled_for: datetime | None = None
    last_run: datetime | None = None
    last_finished: datetime | None = None
    fail_reason: str | None = None

    @classmethod
    def from_job(cls, job: ScheduledJob) -> "ScheduledJobStatusData":
        return cls(
            job_id=job.id,
            status=job.status.value,
            scheduled_for=job.next_run_at,
            last_run=job.last_run_at,
            last_finished=job.last_finished_at,
            fail_reason=job.fail_reason,
        )


class ScheduledJobStatusResponse(CamelModel):
    success: bool = True
    data: ScheduledJobStatusData


class CancelResponse(CamelModel):
    success: bool = True
    message: str
