"""
SQLite3 비동기 커넥션풀 모듈

고정 크기 aiosqlite 커넥션풀과 트랜잭션 컨텍스트를 제공하고,
초기화 시 sql/init.sql 의 스키마 스크립트를 순서대로 실행합니다.
"""

import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiosqlite
import aiosql

from database.base import BaseDatabase
from database.context import set_connection, clear_connection
from database.exception import (
    ConnectionPoolExhaustedError,
    QueryExecutionError,
    ReadOnlyTransactionError,
    TransactionError,
)

logger = logging.getLogger(__name__)

# init.sql에서 순서대로 실행할 스크립트
_INIT_SCRIPTS = (
    'create_scheduled_jobs_table',
    'create_messages_table',
    'create_entity_tables',
    'create_policies_table',
    'create_indexes',
)


@dataclass
class PoolConfig:
    """커넥션풀 설정"""
    pool_size: int = 5
    pool_timeout: float = 30.0


@dataclass
class SqliteOptions:
    """SQLite 연결 옵션"""
    busy_timeout: int = 5000
    journal_mode: str = 'WAL'
    synchronous: str = 'NORMAL'
    foreign_keys: bool = True


@dataclass
class PooledConnection:
    """풀 슬롯 (연결 + 사용 여부)"""
    connection: aiosqlite.Connection
    in_use: bool = False


class TransactionContext:
    """트랜잭션 1건에 묶인 연결 (readonly 면 쓰기 쿼리 거부)"""

    def __init__(self, connection: aiosqlite.Connection, readonly: bool = False):
        self._connection = connection
        self._readonly = readonly
        self._in_transaction = False

    @property
    def connection(self) -> aiosqlite.Connection:
        return self._connection

    async def begin(self) -> None:
        """읽기는 DEFERRED, 쓰기는 IMMEDIATE 로 시작"""
        if self._in_transaction:
            logger.debug("Transaction already started")
            return
        await self._connection.execute("BEGIN DEFERRED" if self._readonly else "BEGIN IMMEDIATE")
        self._in_transaction = True

    async def commit(self) -> None:
        if not self._in_transaction:
            return
        try:
            await self._connection.commit()
        except sqlite3.Error as e:
            raise TransactionError(f"Commit failed: {e}") from e
        finally:
            self._in_transaction = False

    async def rollback(self) -> None:
        """트랜잭션 롤백"""
        if not self._in_transaction:
            return
        await self._connection.rollback()
        self._in_transaction = False

    async def execute(self, sql: str, parameters: Any = None) -> aiosqlite.Cursor:
        """SQL 실행"""
        if self._readonly and _is_write_query(sql):
            raise ReadOnlyTransactionError("Cannot execute write query in readonly transaction")

        _log_query(sql, parameters)
        try:
            if parameters:
                return await self._connection.execute(sql, parameters)
            return await self._connection.execute(sql)
        except sqlite3.Error as e:
            raise QueryExecutionError(str(e)) from e

    async def fetch_one(self, sql: str, parameters: Any = None) -> aiosqlite.Row | None:
        """단일 행 조회"""
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchone()

    async def fetch_all(self, sql: str, parameters: Any = None) -> list[aiosqlite.Row]:
        cursor = await self.execute(sql, parameters)
        rows = await cursor.fetchall()
        logger.debug(f"[SQL Result] {len(rows)} row(s)")
        return list(rows)

    async def fetch_val(self, sql: str, parameters: Any = None) -> Any:
        """첫 행의 첫 컬럼 (없으면 None)"""
        row = await self.fetch_one(sql, parameters)
        return row[0] if row else None


def _is_write_query(sql: str) -> bool:
    write_keywords = ('INSERT', 'UPDATE', 'DELETE', 'CREATE', 'DROP', 'ALTER', 'REPLACE')
    return sql.strip().upper().startswith(write_keywords)


def _log_query(sql: str, parameters: Any = None) -> None:
    sql_oneline = ' '.join(sql.split())
    if parameters:
        logger.debug(f"[SQL] {sql_oneline} | params: {parameters}")
    else:
        logger.debug(f"[SQL] {sql_oneline}")


class AsyncConnectionPool:
    """비동기 SQLite 커넥션풀 (semaphore 로 동시 대여 수 제한)"""

    def __init__(
        self,
        db_path: str,
        pool_config: PoolConfig | None = None,
        sqlite_options: SqliteOptions | None = None
    ):
        self._db_path = Path(db_path)
        self._pool_config = pool_config or PoolConfig()
        self._sqlite_options = sqlite_options or SqliteOptions()

        self._pool: list[PooledConnection] = []
        self._lock = asyncio.Lock()
        self._semaphore: asyncio.Semaphore | None = None
        self._initialized = False
        self._closed = False

    async def initialize(self) -> None:
        """DB 파일 디렉터리 생성 후 pool_size 만큼 연결 생성"""
        if self._initialized:
            logger.warning("Connection pool already initialized")
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._semaphore = asyncio.Semaphore(self._pool_config.pool_size)

        for _ in range(self._pool_config.pool_size):
            conn = await self._create_connection()
            self._pool.append(PooledConnection(connection=conn))

        self._initialized = True
        logger.info(
            f"Connection pool initialized: {self._db_path} "
            f"(size={self._pool_config.pool_size}, timeout={self._pool_config.pool_timeout}s)"
        )

    async def _create_connection(self) -> aiosqlite.Connection:
        """PRAGMA 옵션을 적용한 새 연결"""
        conn = await aiosqlite.connect(
            self._db_path,
            timeout=self._sqlite_options.busy_timeout / 1000.0
        )
        conn.row_factory = aiosqlite.Row

        await conn.execute(f"PRAGMA busy_timeout={self._sqlite_options.busy_timeout}")
        await conn.execute(f"PRAGMA journal_mode={self._sqlite_options.journal_mode}")
        await conn.execute(f"PRAGMA synchronous={self._sqlite_options.synchronous}")
        await conn.execute(f"PRAGMA foreign_keys={'ON' if self._sqlite_options.foreign_keys else 'OFF'}")
        return conn

    async def acquire(self, timeout: float | None = None) -> PooledConnection:
        """커넥션풀에서 연결 획득"""
        if not self._initialized:
            raise RuntimeError("Connection pool not initialized. Call initialize() first.")
        if self._closed:
            raise RuntimeError("Connection pool is closed.")

        timeout = timeout or self._pool_config.pool_timeout
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            raise ConnectionPoolExhaustedError(f"Connection pool exhausted. Timeout after {timeout}s")

        async with self._lock:
            for pooled_conn in self._pool:
                if not pooled_conn.in_use:
                    pooled_conn.in_use = True
                    return pooled_conn

        self._semaphore.release()
        raise ConnectionPoolExhaustedError("No available connection in pool")

    async def release(self, pooled_conn: PooledConnection) -> None:
        """연결을 풀에 반환"""
        async with self._lock:
            pooled_conn.in_use = False
        self._semaphore.release()

    async def close(self) -> None:
        self._closed = True
        async with self._lock:
            for pooled_conn in self._pool:
                try:
                    await pooled_conn.connection.close()
                except Exception as e:
                    logger.error(f"Error closing connection: {e}")
            self._pool.clear()
        logger.info("Connection pool closed")

    @property
    def available(self) -> int:
        """대여 가능한 연결 수"""
        return sum(1 for pc in self._pool if not pc.in_use)


class ManagedTransaction:
    """SQLite 트랜잭션 컨텍스트 매니저 (커넥션 획득 ~ 커밋/롤백 ~ 반환)"""

    def __init__(self, db: 'SQLiteDatabase', readonly: bool = False):
        self._db = db
        self._readonly = readonly
        self._pooled_conn: PooledConnection | None = None
        self._ctx: TransactionContext | None = None

    async def __aenter__(self) -> TransactionContext:
        self._pooled_conn = await self._db.pool.acquire()
        self._ctx = TransactionContext(self._pooled_conn.connection, self._readonly)
        try:
            await self._ctx.begin()
        except Exception:
            await self._db.pool.release(self._pooled_conn)
            raise

        set_connection(self._db.name, self._ctx)
        return self._ctx

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            if exc_type:
                await self._ctx.rollback()
            else:
                await self._ctx.commit()
        finally:
            clear_connection(self._db.name)
            await self._db.pool.release(self._pooled_conn)


class SQLiteDatabase(BaseDatabase):
    """
    SQLite 데이터베이스 구현

    사용 예시:
        db = await SQLiteDatabase.create('default', config)

        async with db.transaction() as ctx:
            await ctx.execute(...)
    """

    def __init__(self, name: str, config: dict[str, Any]):
        super().__init__(name)
        self._config = config
        self._pool: AsyncConnectionPool | None = None

    @classmethod
    async def create(cls, name: str, config: dict[str, Any]) -> 'SQLiteDatabase':
        instance = cls(name, config)
        await instance._initialize()
        return instance

    async def _initialize(self) -> None:
        pool_cfg = self._config.get('pool', {})
        pool_config = PoolConfig(
            pool_size=pool_cfg.get('pool_size', 5),
            pool_timeout=pool_cfg.get('pool_timeout', 30.0),
        )

        opts = self._config.get('options', {})
        sqlite_options = SqliteOptions(
            busy_timeout=opts.get('busy_timeout', 5000),
            journal_mode=opts.get('journal_mode', 'WAL'),
            synchronous=opts.get('synchronous', 'NORMAL'),
            foreign_keys=opts.get('foreign_keys', True),
        )

        self._pool = AsyncConnectionPool(
            db_path=self._config.get('path', f'./data/{self.name}.db'),
            pool_config=pool_config,
            sqlite_options=sqlite_options
        )
        await self._pool.initialize()
        await self._run_init_sql()

        logger.info(f"SQLiteDatabase '{self.name}' initialized successfully")

    async def _run_init_sql(self) -> None:
        """스키마 생성 (CREATE ... IF NOT EXISTS)"""
        init_sql_path = Path(__file__).parent / 'sql' / 'init.sql'
        queries = aiosql.from_path(str(init_sql_path), "aiosqlite")
        pooled_conn = await self._pool.acquire()
        try:
            for script in _INIT_SCRIPTS:
                await getattr(queries, script)(pooled_conn.connection)
            await pooled_conn.connection.commit()
        finally:
            await self._pool.release(pooled_conn)

    def transaction(self, readonly: bool = False) -> ManagedTransaction:
        return ManagedTransaction(self, readonly)

    @property
    def pool(self) -> AsyncConnectionPool:
        if self._pool is None:
            raise RuntimeError(f"Database '{self.name}' not initialized")
        return self._pool

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
        logger.info(f"SQLiteDatabase '{self.name}' closed")

