"""예약 잡 핸들러 모음 (import 시 @handler로 등록됨)"""

from scheduler.job import insert_message  # noqa: F401
