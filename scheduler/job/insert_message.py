"""
insert-message 핸들러

예약된 메시지를 messages 테이블에 저장합니다.

data 예시:
{
    "message": "hello",
    "metadata": {"channel": "email"}
}

metadata.shouldFail 이 true면 실패를 발생시킵니다 (실패 경로 점검용).
"""

import json
import logging

from database import get_connection, transactional
from scheduler.base import BaseHandler, handler, HandlerParams, HandlerResult
from scheduler.exception import HandlerExecutionError

logger = logging.getLogger(__name__)

INSERT_MESSAGE = "insert-message"


@handler(INSERT_MESSAGE)
class InsertMessageHandler(BaseHandler):
    """예약 메시지 저장 핸들러"""

    async def execute(self, params: HandlerParams) -> HandlerResult:
        logger.info(f"Executing scheduled message: job_id={params.job_id}, message={params.message!r}")

        metadata = params.metadata if isinstance(params.metadata, dict) else {}
        if metadata.get("shouldFail"):
            raise HandlerExecutionError("Simulated failure")

        if not params.message:
            raise HandlerExecutionError("Message cannot be empty")

        message_id = await self._insert(params)
        return HandlerResult(
            action="insert",
            success=True,
            data={"message_id": message_id, "message": params.message},
        )

    @transactional
    async def _insert(self, params: HandlerParams) -> int:
        ctx = get_connection()
        cursor = await ctx.execute(
            "INSERT INTO messages (job_id, body, metadata) VALUES (?, ?, ?)",
            (
                params.job_id,
                params.message,
                json.dumps(params.metadata) if params.metadata is not None else None,
            ),
        )
        return cursor.lastrowid
