from ingest.model.job import (
    FileFormat,
    IngestConfig,
    ParseJob,
    ParseJobStatus,
    ParseResult,
)

__all__ = [
    'FileFormat',
    'IngestConfig',
    'ParseJob',
    'ParseJobStatus',
    'ParseResult',
]
