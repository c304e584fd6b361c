"""라우트 의존성: lifespan 에서 만든 서비스를 app.state 에서 꺼냄"""

from fastapi import Request

from ingest.main import IngestService
from scheduler.main import SchedulerService


def get_ingest_service(request: Request) -> IngestService:
    return request.app.state.ingest_service


def get_scheduler_service(request: Request) -> SchedulerService:
    return request.app.state.scheduler_service


def get_api_config(request: Request) -> dict:
    return request.app.state.api_config
