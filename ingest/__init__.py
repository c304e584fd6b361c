"""Ingest 모듈 - 업로드 파일 파싱 및 적재"""

from ingest.main import IngestService
from ingest.executor import ParsingExecutor
from ingest.registry import ParseJobRegistry
from ingest.model import FileFormat, IngestConfig, ParseJob, ParseJobStatus, ParseResult
from ingest.exception import (
    UnsupportedFormatError,
    ParseJobNotFoundError,
    InvalidTransitionError,
)

__all__ = [
    "IngestService",
    "ParsingExecutor",
    "ParseJobRegistry",
    "FileFormat",
    "IngestConfig",
    "ParseJob",
    "ParseJobStatus",
    "ParseResult",
    "UnsupportedFormatError",
    "ParseJobNotFoundError",
    "InvalidTransitionError",
]
