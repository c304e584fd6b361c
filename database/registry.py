"""
DatabaseRegistry: 이름 기반 DB 인스턴스 관리

database.yaml 예시:
    databases:
      default:
        type: sqlite3
        path: ./data/jobs.db
        pool:
          pool_size: 5
"""

import logging
from typing import Any

from database.base import BaseDatabase
from database.exception import DatabaseNotFoundError

logger = logging.getLogger(__name__)


class DatabaseRegistry:
    """프로세스 내 DB 인스턴스 레지스트리"""

    _databases: dict[str, BaseDatabase] = {}

    @classmethod
    async def init_from_config(cls, config: dict[str, Any], names: list[str] | None = None) -> None:
        """설정으로부터 DB 초기화 (names 지정 시 해당 DB만)"""
        from database.sqlite3 import SQLiteDatabase

        databases = config.get("databases", {})
        for name, db_config in databases.items():
            if names is not None and name not in names:
                continue
            if name in cls._databases:
                logger.debug(f"Database '{name}' already initialized, skipping")
                continue

            db_type = db_config.get("type", "sqlite3")
            if db_type != "sqlite3":
                raise ValueError(f"Unsupported database type: {db_type}")

            cls._databases[name] = await SQLiteDatabase.create(name, db_config)

        if names:
            missing = [n for n in names if n not in cls._databases]
            if missing:
                raise DatabaseNotFoundError(missing[0])

    @classmethod
    def register(cls, db: BaseDatabase) -> None:
        cls._databases[db.name] = db

    @classmethod
    def get(cls, name: str = "default") -> BaseDatabase:
        if name not in cls._databases:
            raise DatabaseNotFoundError(name)
        return cls._databases[name]

    @classmethod
    async def close_all(cls) -> None:
        """모든 DB 종료"""
        for db in list(cls._databases.values()):
            try:
                await db.close()
            except Exception as e:
                logger.error(f"Error closing database '{db.name}': {e}")
        cls._databases.clear()

    @classmethod
    def clear(cls) -> None:
        """레지스트리 초기화 (테스트용, 연결은 닫지 않음)"""
        cls._databases.clear()
