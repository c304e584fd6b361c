"""업로드(파싱 잡) 관련 모델"""

from datetime import datetime
from typing import Any

from api.model.common import CamelModel
from ingest.model.job import ParseJob


class UploadResponse(CamelModel):
    success: bool = True
    job_id: str
    message: str
    status_url: str


class ParseJobResponse(CamelModel):
    """파싱 잡 상태"""
    job_id: str
    status: str
    file_format: str
    records_processed: int
    records_failed: int
    errors: list[dict[str, Any]]
    error: str | None = None
    started_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_job(cls, job: ParseJob) -> "ParseJobResponse":
        return cls(
            job_id=job.id,
            status=job.status.value,
            file_format=job.file_format.value,
            records_processed=job.records_processed,
            records_failed=job.records_failed,
            errors=job.errors,
            error=job.error,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )
