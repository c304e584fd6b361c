"""
Ingest 관련 예외 클래스 정의
"""

from common.exception import ExecutionError, NotFoundError, ValidationError


class UnsupportedFormatError(ValidationError):
    """지원하지 않는 파일 형식"""
    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(
            f"Invalid file format: '{file_name}'. Only CSV and XLSX files are allowed."
        )


class ParseJobNotFoundError(NotFoundError):
    """파싱 잡을 찾을 수 없음"""
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Parse job not found: {job_id}")


class InvalidTransitionError(ExecutionError):
    """허용되지 않는 상태 전이 (역행 또는 종료 상태 이후 변경)"""
    def __init__(self, job_id: str, current: str, requested: str):
        self.job_id = job_id
        self.current = current
        self.requested = requested
        super().__init__(f"Invalid transition for job {job_id}: {current} -> {requested}")


class ParseExecutionError(ExecutionError):
    """파일 파싱 실패"""
    pass
