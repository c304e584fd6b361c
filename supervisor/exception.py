"""
Supervisor 관련 예외 클래스 정의
"""

from common.exception import SupervisorError


class WorkerLaunchError(SupervisorError):
    """워커 프로세스 실행 실패 (supervisor에 치명적)"""
    def __init__(self, command: list[str], reason: str):
        self.command = command
        super().__init__(f"Failed to launch worker {command!r}: {reason}")


class CpuSampleError(SupervisorError):
    """CPU 사용률 샘플링 실패 (해당 주기만 건너뜀)"""
    pass
