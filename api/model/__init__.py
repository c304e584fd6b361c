from api.model.common import CamelModel, HealthResponse
from api.model.schedule import (
    CancelResponse,
    ScheduleRequest,
    ScheduleResponse,
    ScheduledJobStatusData,
    ScheduledJobStatusResponse,
    ScheduledMessage,
    ScheduledMessageList,
)
from api.model.upload import ParseJobResponse, UploadResponse

__all__ = [
    'CamelModel',
    'HealthResponse',
    'ScheduleRequest',
    'ScheduleResponse',
    'ScheduledMessage',
    'ScheduledMessageList',
    'ScheduledJobStatusData',
    'ScheduledJobStatusResponse',
    'CancelResponse',
    'UploadResponse',
    'ParseJobResponse',
]
