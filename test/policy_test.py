"""
ImportPipeline 테스트

테스트 항목:
1. PolicyRow 매핑/기본값/유효성 검사
2. find-or-create 멱등성
3. 2행 배치 중 필수값 누락 1행 -> imported=1, failed=1
4. policy_number 중복은 행 실패
5. 실패한 행은 엔티티를 남기지 않음 (행 단위 트랜잭션)

실행: python -m pytest test/policy_test.py -v
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

import pytest
import pytest_asyncio

sys.path.insert(0, str(Path(__file__).parent.parent))

from database import get_db
from database.registry import DatabaseRegistry
from policy.exception import RowValidationError
from policy.model import (
    DEFAULT_CATEGORY,
    DEFAULT_POLICY_MODE,
    UNKNOWN_AGENT,
    UNKNOWN_PRODUCER,
    PolicyRow,
)
from policy.pipeline import ImportPipeline
from policy.repository import PolicyRepository

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _row(**overrides) -> dict:
    row = {
        "agent": "Alice Agent",
        "firstname": "John",
        "email": "john@example.com",
        "gender": "Male",
        "policy_number": "P-001",
        "premium_amount_written": "1200",
        "company_name": "Acme",
        "category_name": "Auto",
        "policy_start_date": "2024-01-01",
        "policy_end_date": "2025-01-01",
    }
    row.update(overrides)
    return row


# ============================================================
# Fixtures
# ============================================================

@pytest_asyncio.fixture
async def database(tmp_path):
    DatabaseRegistry.clear()
    config = {"databases": {"default": {"type": "sqlite3", "path": str(tmp_path / "policy.db")}}}
    await DatabaseRegistry.init_from_config(config)
    yield get_db("default")
    await DatabaseRegistry.close_all()


@pytest_asyncio.fixture
async def repository(database):
    return PolicyRepository()


@pytest_asyncio.fixture
async def pipeline(repository):
    return ImportPipeline(repository)


# ============================================================
# Row validation
# ============================================================

class TestPolicyRow:

    def test_defaults_for_missing_optional_fields(self):
        row = PolicyRow.model_validate({
            "email": "X@Example.com",
            "policy_number": "P-9",
            "premium_amount": "$1,000.00",
            "policy_start_date": "2024-01-01",
            "policy_end_date": "2024-06-01",
            "agent": "   ",
        })

        assert row.agent_name == UNKNOWN_AGENT
        assert row.policy_mode == DEFAULT_POLICY_MODE
        assert row.category_name == DEFAULT_CATEGORY
        assert row.user_email == "x@example.com"
        assert row.premium_amount == 1000.0
        assert row.resolved_producer == UNKNOWN_PRODUCER

    def test_producer_falls_back_to_agent(self):
        row = PolicyRow.model_validate(_row())
        assert row.resolved_producer == "Alice Agent"

    def test_account_name_alias(self):
        data = _row(account_name="Acct Holder")
        del data["firstname"]
        assert PolicyRow.model_validate(data).user_name == "Acct Holder"

    @pytest.mark.parametrize("overrides,expected", [
        ({"premium_amount_written": "0"}, "Premium amount must be positive"),
        ({"premium_amount_written": "-5"}, "Premium amount must be positive"),
        ({"policy_end_date": "2024-01-01"}, "End date must be after start date"),
        ({"gender": "Other"}, "gender"),
        ({"email": ""}, "email"),
        ({"policy_start_date": "not a date"}, "policy_start_date"),
    ])
    def test_invalid_rows(self, overrides, expected):
        with pytest.raises(RowValidationError) as exc_info:
            ImportPipeline.validate(_row(**overrides))
        assert expected in exc_info.value.message

    def test_spreadsheet_values(self):
        row = PolicyRow.model_validate(_row(
            policy_number=12345,
            premium_amount_written=99.5,
            policy_start_date=datetime(2024, 1, 1),
            policy_end_date=datetime(2024, 12, 31),
        ))
        assert row.policy_number == "12345"
        assert row.premium_amount == 99.5


# ============================================================
# Repository
# ============================================================

class TestPolicyRepository:

    @pytest.mark.asyncio
    async def test_find_or_create_idempotent(self, repository):
        first = await repository.find_or_create_agent("Alice Agent")
        second = await repository.find_or_create_agent("Alice Agent")
        assert first.id == second.id

        user_a = await repository.find_or_create_user("john@example.com", "John")
        user_b = await repository.find_or_create_user("john@example.com", "Johnny")
        assert user_a.id == user_b.id

        cat_a = await repository.find_or_create_category("Auto")
        cat_b = await repository.find_or_create_category("Auto")
        assert cat_a.id == cat_b.id

        carrier_a = await repository.find_or_create_carrier("Acme")
        carrier_b = await repository.find_or_create_carrier("Acme")
        assert carrier_a.id == carrier_b.id

    @pytest.mark.asyncio
    async def test_distinct_keys(self, repository):
        a = await repository.find_or_create_agent("A")
        b = await repository.find_or_create_agent("B")
        assert a.id != b.id


# ============================================================
# Pipeline
# ============================================================

class TestImportPipeline:

    @pytest.mark.asyncio
    async def test_partial_success(self, pipeline, repository):
        rows = [
            _row(),
            _row(agent="Second Agent", email="", policy_number="P-002"),
        ]

        summary = await pipeline.import_rows(rows)

        assert summary.imported == 1
        assert summary.failed == 1
        assert len(summary.errors) == 1
        assert summary.errors[0].row_number == 2
        assert "email" in summary.errors[0].error

        assert await repository.get_agent("Alice Agent") is not None
        assert await repository.get_user("john@example.com") is not None
        assert await repository.get_policy("P-001") is not None
        assert await repository.get_agent("Second Agent") is None

    @pytest.mark.asyncio
    async def test_duplicate_policy_number(self, pipeline, repository):
        summary = await pipeline.import_rows([
            _row(),
            _row(agent="Other Agent", email="other@example.com"),
        ])

        assert summary.imported == 1
        assert summary.failed == 1
        assert "already exists" in summary.errors[0].error
        # 실패한 행의 트랜잭션은 롤백됨
        assert await repository.get_agent("Other Agent") is None
        assert await repository.count_policies() == 1

    @pytest.mark.asyncio
    async def test_shared_entities_reused(self, pipeline, database):
        summary = await pipeline.import_rows([
            _row(policy_number="P-1"),
            _row(policy_number="P-2"),
        ])
        assert summary.imported == 2

        async with database.transaction(readonly=True) as ctx:
            agents = await ctx.fetch_val("SELECT COUNT(*) FROM agents")
            users = await ctx.fetch_val("SELECT COUNT(*) FROM users")
        assert agents == 1
        assert users == 1

    @pytest.mark.asyncio
    async def test_empty_batch(self, pipeline):
        summary = await pipeline.import_rows([])
        assert summary.imported == 0
        assert summary.failed == 0
        assert summary.errors == []
