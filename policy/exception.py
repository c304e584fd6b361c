"""
Policy 적재 관련 예외 클래스 정의
"""

from common.exception import ValidationError


class RowValidationError(ValidationError):
    """행 단위 유효성 검사 실패 (배치는 계속 진행)"""
    pass


class DuplicatePolicyError(ValidationError):
    """이미 존재하는 policy_number"""
    def __init__(self, policy_number: str):
        self.policy_number = policy_number
        super().__init__(f"Policy with number '{policy_number}' already exists")
