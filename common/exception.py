"""
공통 예외 분류

- ValidationError: 잘못된 입력 (동기적으로 호출자에게 전달)
- NotFoundError: 존재하지 않는 잡/엔티티 (동기적으로 전달)
- ExecutionError: 비동기 실행 실패 (잡/행 상태에 기록, 경계 밖으로 전파하지 않음)
- SupervisorError: 워커 프로세스 감시 중 시스템 오류
"""


class JobsError(Exception):
    """기본 예외"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ValidationError(JobsError):
    """입력 유효성 검사 실패"""
    pass


class NotFoundError(JobsError):
    """대상을 찾을 수 없음"""
    pass


class ExecutionError(JobsError):
    """비동기 실행 실패"""
    pass


class SupervisorError(JobsError):
    """감시 프로세스 오류"""
    pass
