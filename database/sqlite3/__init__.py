"""SQLite3 비동기 데이터베이스 구현"""

from database.sqlite3.connection import (
    SQLiteDatabase,
    TransactionContext,
)

__all__ = [
    'SQLiteDatabase',
    'TransactionContext',
]
