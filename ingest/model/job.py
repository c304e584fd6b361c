"""파싱 잡 모델 정의"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from common.timeutil import utcnow
from ingest.exception import UnsupportedFormatError


class FileFormat(str, Enum):
    """수집 가능한 파일 형식"""
    CSV = "csv"
    SPREADSHEET = "spreadsheet"

    @classmethod
    def from_filename(cls, file_name: str) -> "FileFormat":
        """확장자로 형식 판별"""
        suffix = Path(file_name or "").suffix.lower()
        if suffix == ".csv":
            return cls.CSV
        if suffix in (".xlsx", ".xlsm"):
            return cls.SPREADSHEET
        raise UnsupportedFormatError(file_name)


class ParseJobStatus(str, Enum):
    """파싱 잡 상태 (pending -> processing -> completed | failed)"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in (ParseJobStatus.COMPLETED, ParseJobStatus.FAILED)


_STATUS_RANK = {
    ParseJobStatus.PENDING: 0,
    ParseJobStatus.PROCESSING: 1,
    ParseJobStatus.COMPLETED: 2,
    ParseJobStatus.FAILED: 2,
}


class ParseJob(BaseModel):
    """파싱 잡 (메모리 전용, 프로세스 재시작 시 사라짐)"""
    id: str
    source_path: str
    file_format: FileFormat
    status: ParseJobStatus = ParseJobStatus.PENDING
    records_processed: int = 0
    records_failed: int = 0
    errors: list[dict[str, Any]] = Field(default_factory=list)
    error: str | None = None
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None


class ParseResult(BaseModel):
    """격리 실행 컨텍스트에서 돌아오는 단일 메시지"""
    success: bool
    rows: list[dict[str, Any]] = Field(default_factory=list)
    error: str | None = None


class IngestConfig(BaseModel):
    """Ingest 설정"""
    isolation: Literal["process", "thread"] = "process"
    parse_timeout_seconds: float = Field(default=300, gt=0, le=3600)
    job_ttl_seconds: float | None = Field(default=86400, gt=0)
    shutdown_timeout_seconds: float = Field(default=10, ge=0, le=600)
    remove_source: bool = True
