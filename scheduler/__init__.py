"""Scheduler 모듈 - 영속 예약 잡 처리"""

from scheduler.main import SchedulerService
from scheduler.model import ScheduledJob, ScheduledJobStatus, SchedulerConfig, derive_status
from scheduler.store import ScheduledJobStore, SqliteScheduledJobStore
from scheduler.exception import (
    ScheduleValidationError,
    ScheduledJobNotFoundError,
    HandlerNotFoundError,
)

__all__ = [
    "SchedulerService",
    "ScheduledJob",
    "ScheduledJobStatus",
    "SchedulerConfig",
    "derive_status",
    "ScheduledJobStore",
    "SqliteScheduledJobStore",
    "ScheduleValidationError",
    "ScheduledJobNotFoundError",
    "HandlerNotFoundError",
]
