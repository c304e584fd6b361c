"""
핸들러 입출력 모델

모든 핸들러가 공통으로 사용하는 파라미터 및 결과 모델.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict


class HandlerParams(BaseModel):
    """핸들러 입력 파라미터 (예약 잡의 data + job_id)"""
    model_config = ConfigDict(extra='allow')

    job_id: str | None = None
    message: str | None = None
    metadata: Any = None


class HandlerResult(BaseModel):
    """핸들러 실행 결과"""
    model_config = ConfigDict(extra='allow')

    action: str
    success: bool = True
    data: Any = None
    error: str | None = None
