"""
ImportPipeline

파싱된 행을 한 줄씩 적재합니다. 행마다 별도 트랜잭션을 사용하며,
잘못된 행은 errors에 기록하고 다음 행으로 넘어갑니다 (배치 중단 없음).
"""

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from common.exception import ValidationError
from database import transactional
from policy.exception import RowValidationError
from policy.model import ImportSummary, PolicyRecord, PolicyRow, RowError
from policy.repository import PolicyRepository

logger = logging.getLogger(__name__)


def _format_validation_error(error: PydanticValidationError) -> str:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        message = item.get("msg", "invalid value").removeprefix("Value error, ")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages)


class ImportPipeline:
    """행 목록 -> 참조 엔티티 find-or-create -> 계약 생성"""

    def __init__(self, repository: PolicyRepository | None = None):
        self._repository = repository or PolicyRepository()

    @property
    def repository(self) -> PolicyRepository:
        return self._repository

    async def import_rows(self, rows: list[dict[str, Any]]) -> ImportSummary:
        summary = ImportSummary()

        for index, raw in enumerate(rows):
            row_number = index + 1
            try:
                row = self.validate(raw)
                await self._import_row(row)
                summary.imported += 1
            except ValidationError as e:
                summary.failed += 1
                summary.errors.append(RowError(row_number=row_number, row=raw, error=e.message))
                logger.warning(f"Row {row_number} rejected: {e.message}")
            except Exception as e:
                summary.failed += 1
                summary.errors.append(RowError(row_number=row_number, row=raw, error=str(e)))
                logger.error(f"Row {row_number} failed: {e}")

        logger.info(f"Import finished: imported={summary.imported}, failed={summary.failed}")
        return summary

    @staticmethod
    def validate(raw: dict[str, Any]) -> PolicyRow:
        try:
            return PolicyRow.model_validate(raw)
        except PydanticValidationError as e:
            raise RowValidationError(_format_validation_error(e)) from e

    @transactional
    async def _import_row(self, row: PolicyRow) -> PolicyRecord:
        agent = await self._repository.find_or_create_agent(row.agent_name)
        user = await self._repository.find_or_create_user(row.user_email, row.user_name, row.gender)
        category = await self._repository.find_or_create_category(row.category_name)
        carrier = await self._repository.find_or_create_carrier(row.company_name)
        return await self._repository.create_policy(row, agent, user, category, carrier)
