"""Scheduler 모델"""

from scheduler.model.job import (
    ScheduledJob,
    ScheduledJobStatus,
    SchedulerConfig,
    derive_status,
)
from scheduler.model.handler import HandlerParams, HandlerResult

__all__ = [
    'ScheduledJob',
    'ScheduledJobStatus',
    'SchedulerConfig',
    'derive_status',
    'HandlerParams',
    'HandlerResult',
]
