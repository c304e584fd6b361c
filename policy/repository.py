"""
보험 계약 저장소

참조 엔티티는 자연키(name, email)로 식별합니다.
find_or_create_*는 멱등: 같은 키로 여러 번 호출해도 같은 id를 반환합니다.
"""

import logging
import sqlite3
from pathlib import Path

import aiosql

from database import get_connection, transactional, transactional_readonly
from policy.exception import DuplicatePolicyError
from policy.model import Entity, PolicyRecord, PolicyRow

logger = logging.getLogger(__name__)


class PolicyRepository:
    """agents/users/policy_categories/policy_carriers/policies 테이블 접근"""

    def __init__(self):
        sql_path = Path(__file__).parent / "sql" / "policy.sql"
        self._queries = aiosql.from_path(str(sql_path), "aiosqlite")

    @transactional
    async def find_or_create_agent(self, name: str) -> Entity:
        conn = get_connection().connection
        await self._queries.insert_agent(conn, name=name)
        row = await self._queries.get_agent_by_name(conn, name=name)
        return Entity(id=row["id"], key=row["name"])

    @transactional
    async def find_or_create_user(self, email: str, name: str, gender: str = "") -> Entity:
        conn = get_connection().connection
        await self._queries.insert_user(conn, name=name, email=email, gender=gender)
        row = await self._queries.get_user_by_email(conn, email=email)
        return Entity(id=row["id"], key=row["email"])

    @transactional
    async def find_or_create_category(self, category_name: str) -> Entity:
        conn = get_connection().connection
        await self._queries.insert_category(conn, category_name=category_name)
        row = await self._queries.get_category_by_name(conn, category_name=category_name)
        return Entity(id=row["id"], key=row["category_name"])

    @transactional
    async def find_or_create_carrier(self, company_name: str) -> Entity:
        conn = get_connection().connection
        await self._queries.insert_carrier(conn, company_name=company_name)
        row = await self._queries.get_carrier_by_name(conn, company_name=company_name)
        return Entity(id=row["id"], key=row["company_name"])

    @transactional
    async def create_policy(
        self,
        row: PolicyRow,
        agent: Entity,
        user: Entity,
        category: Entity,
        carrier: Entity,
    ) -> PolicyRecord:
        conn = get_connection().connection
        try:
            await self._queries.insert_policy(
                conn,
                policy_number=row.policy_number,
                policy_mode=row.policy_mode,
                producer=row.resolved_producer,
                premium_amount=row.premium_amount,
                policy_type=row.policy_type,
                csr=row.csr,
                start_date=row.start_date.isoformat(),
                end_date=row.end_date.isoformat(),
                agent_id=agent.id,
                user_id=user.id,
                category_id=category.id,
                carrier_id=carrier.id,
            )
        except sqlite3.IntegrityError as e:
            if "policies.policy_number" in str(e):
                raise DuplicatePolicyError(row.policy_number) from e
            raise

        record = await self._queries.get_policy_by_number(conn, policy_number=row.policy_number)
        return PolicyRecord(**dict(record))

    @transactional_readonly
    async def get_agent(self, name: str) -> Entity | None:
        row = await self._queries.get_agent_by_name(get_connection().connection, name=name)
        return Entity(id=row["id"], key=row["name"]) if row else None

    @transactional_readonly
    async def get_user(self, email: str) -> Entity | None:
        row = await self._queries.get_user_by_email(get_connection().connection, email=email.lower())
        return Entity(id=row["id"], key=row["email"]) if row else None

    @transactional_readonly
    async def get_policy(self, policy_number: str) -> PolicyRecord | None:
        row = await self._queries.get_policy_by_number(
            get_connection().connection, policy_number=policy_number
        )
        return PolicyRecord(**dict(row)) if row else None

    @transactional_readonly
    async def count_policies(self) -> int:
        return await self._queries.count_policies(get_connection().connection)
