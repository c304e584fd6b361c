"""
Scheduler 관련 예외 클래스 정의
"""

from common.exception import ExecutionError, NotFoundError, ValidationError


class ScheduleValidationError(ValidationError):
    """예약 요청 유효성 검사 실패 (빈 메시지, 과거 시각 등)"""
    pass


class ScheduledJobNotFoundError(NotFoundError):
    """예약 잡을 찾을 수 없음"""
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Scheduled job not found: {job_id}")


class HandlerNotFoundError(NotFoundError):
    """핸들러를 찾을 수 없음"""
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Handler not found: {name}")


class HandlerExecutionError(ExecutionError):
    """핸들러 실행 실패 (fail_reason으로 기록됨)"""
    pass
