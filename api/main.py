"""API 서버 진입점"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.router.api import router
from common.config import load_config
from common.exception import NotFoundError, ValidationError
from database.registry import DatabaseRegistry
from ingest.main import IngestService
from ingest.model.job import IngestConfig
from policy.pipeline import ImportPipeline
from scheduler.main import SchedulerService
from scheduler.model.job import SchedulerConfig

logger = logging.getLogger(__name__)


def _database_names(config: dict[str, Any]) -> list[str]:
    names = {
        config.get("api", {}).get("database", "default"),
        config.get("scheduler", {}).get("database", "default"),
        # 적재/메시지 저장은 default DB 사용
        "default",
    }
    return sorted(names)


def create_app(config: dict[str, Any] | None = None) -> FastAPI:
    """FastAPI 앱 생성 (서비스는 lifespan 에서 한 번만 생성)"""
    config = config if config is not None else load_config()
    api_config = config.get("api", {})

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # 시작 시
        await DatabaseRegistry.init_from_config(config, _database_names(config))
        logger.info("Database initialized")

        app.state.api_config = api_config
        app.state.ingest_service = IngestService(
            ImportPipeline(),
            config=IngestConfig(**config.get("ingest", {})),
        )
        app.state.scheduler_service = SchedulerService(SchedulerConfig(**config.get("scheduler", {})))
        await app.state.scheduler_service.start()

        yield

        # 종료 시
        await app.state.ingest_service.stop()
        await app.state.scheduler_service.stop()
        await DatabaseRegistry.close_all()
        logger.info("Services stopped, database closed")

    app = FastAPI(
        title="Jobs API",
        description="파일 수집 / 메시지 예약 API",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS 설정
    cors_config = api_config.get("cors", {})
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_config.get("origins", ["*"]),
        allow_credentials=cors_config.get("allow_credentials", True),
        allow_methods=cors_config.get("allow_methods", ["*"]),
        allow_headers=cors_config.get("allow_headers", ["*"]),
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"success": False, "error": exc.message})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"success": False, "error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        messages = [
            f"{'.'.join(str(part) for part in err.get('loc', ())[1:])}: {err.get('msg')}"
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"success": False, "error": "; ".join(messages)})

    app.include_router(router)
    return app
