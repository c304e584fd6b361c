"""
비동기 데이터베이스 패키지

사용 예시:
    from database import transactional, get_connection
    from database.registry import DatabaseRegistry

    await DatabaseRegistry.init_from_config(config)

    @transactional
    async def create_job(...):
        ctx = get_connection()
        await ctx.execute("INSERT INTO ...")
"""

import functools
import inspect

from database.context import lookup_connection
from database.exception import (
    DatabaseError,
    DatabaseNotFoundError,
    ConnectionPoolExhaustedError,
    TransactionError,
    QueryExecutionError,
    ReadOnlyTransactionError,
)
from database.registry import DatabaseRegistry

__all__ = [
    'get_db',
    'get_connection',
    'transactional',
    'transactional_readonly',
    'DatabaseError',
    'DatabaseNotFoundError',
    'ConnectionPoolExhaustedError',
    'TransactionError',
    'QueryExecutionError',
    'ReadOnlyTransactionError',
]


def get_db(name: str = "default"):
    """등록된 DB 인스턴스 반환"""
    return DatabaseRegistry.get(name)


def get_connection(name: str = "default"):
    """현재 태스크의 트랜잭션 컨텍스트 반환"""
    ctx = lookup_connection(name)
    if ctx is None:
        raise TransactionError(
            f"No active transaction for database '{name}'. Use @transactional or db.transaction()."
        )
    return ctx


def _make_transactional(readonly: bool, db_name: str):
    def decorator(func):
        if not inspect.iscoroutinefunction(func):
            raise TypeError("transactional can only decorate async functions")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            # 이미 트랜잭션이 열려 있으면 참여
            if lookup_connection(db_name) is not None:
                return await func(*args, **kwargs)

            db = DatabaseRegistry.get(db_name)
            async with db.transaction(readonly=readonly):
                return await func(*args, **kwargs)

        return wrapper
    return decorator


def transactional(func=None, *, db: str = "default"):
    """
    쓰기 트랜잭션 데코레이터

    @transactional 또는 @transactional(db="data") 형태로 사용.
    예외 발생 시 롤백, 정상 종료 시 커밋.
    """
    if func is not None and callable(func):
        return _make_transactional(False, db)(func)
    return _make_transactional(False, db)


def transactional_readonly(func=None, *, db: str = "default"):
    """읽기 전용 트랜잭션 데코레이터"""
    if func is not None and callable(func):
        return _make_transactional(True, db)(func)
    return _make_transactional(True, db)
