"""API 라우터 (업로드 / 메시지 예약 / 헬스체크)"""

import logging
import re
import uuid
from pathlib import Path

from fastapi import APIRouter, Depends, File, Query, UploadFile

from api.dependencies import get_api_config, get_ingest_service, get_scheduler_service
from api.model.common import HealthResponse
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
from common.exception import ValidationError
from common.timeutil import ensure_utc
from database import get_db
from ingest.exception import ParseJobNotFoundError
from ingest.main import IngestService
from ingest.model.job import FileFormat
from scheduler.exception import ScheduledJobNotFoundError
from scheduler.main import SchedulerService
from scheduler.model.job import ScheduledJobStatus

logger = logging.getLogger(__name__)

router = APIRouter()

JOB_ID_PATTERN = re.compile(r"^[0-9a-f]{24}$")
CHUNK_SIZE = 1024 * 1024


# ============================================
# UPLOAD API
# ============================================

@router.post("/api/upload", response_model=UploadResponse, status_code=202, tags=["Upload"])
async def upload_file(
    file: UploadFile = File(...),
    ingest: IngestService = Depends(get_ingest_service),
    api_config: dict = Depends(get_api_config),
):
    """CSV/XLSX 업로드 -> 파싱 잡 생성 (즉시 반환)"""
    # 형식이 맞지 않으면 잡을 만들지 않음
    file_format = FileFormat.from_filename(file.filename)

    upload_dir = Path(api_config.get("upload_dir", "./data/uploads"))
    upload_dir.mkdir(parents=True, exist_ok=True)
    max_bytes = api_config.get("max_upload_bytes", 10 * 1024 * 1024)

    target = upload_dir / f"{uuid.uuid4().hex}_{Path(file.filename).name}"
    written = 0
    with open(target, "wb") as f:
        while chunk := await file.read(CHUNK_SIZE):
            written += len(chunk)
            if written > max_bytes:
                f.close()
                target.unlink(missing_ok=True)
                raise ValidationError(f"File too large. Maximum size is {max_bytes} bytes.")
            f.write(chunk)

    job_id = await ingest.start_job(str(target), file_format)
    logger.info(f"Upload accepted: {file.filename} ({written} bytes) -> job {job_id}")
    return UploadResponse(
        job_id=job_id,
        message="File uploaded successfully. Processing started.",
        status_url=f"/api/upload/status/{job_id}",
    )


@router.get("/api/upload/status/{job_id}", response_model=ParseJobResponse, tags=["Upload"])
async def get_upload_status(job_id: str, ingest: IngestService = Depends(get_ingest_service)):
    """파싱 잡 상태 조회"""
    job = await ingest.get_status(job_id)
    if job is None:
        raise ParseJobNotFoundError(job_id)
    return ParseJobResponse.from_job(job)


# ============================================
# SCHEDULE API
# ============================================

@router.post("/api/schedule/message", response_model=ScheduleResponse, status_code=201, tags=["Schedule"])
async def schedule_message(
    request: ScheduleRequest,
    scheduler: SchedulerService = Depends(get_scheduler_service),
):
    """메시지 예약"""
    job_id = await scheduler.schedule(request.message, request.scheduled_for, request.metadata)
    # 응답은 요청 값 기준 (저장된 잡은 이미 claim 또는 취소되었을 수 있음)
    return ScheduleResponse(
        job_id=job_id,
        status=ScheduledJobStatus.SCHEDULED.value,
        scheduled_for=ensure_utc(request.scheduled_for),
        message="Message scheduled successfully",
    )


@router.get("/api/schedule/messages", response_model=ScheduledMessageList, tags=["Schedule"])
async def list_scheduled_messages(
    status: str | None = Query(default=None, description="'scheduled' 면 끝나지 않은 잡만"),
    scheduler: SchedulerService = Depends(get_scheduler_service),
):
    """예약 메시지 목록"""
    jobs = await scheduler.list_jobs(status)
    return ScheduledMessageList(data=[ScheduledMessage.from_job(job) for job in jobs])


@router.delete("/api/schedule/message/{job_id}", response_model=CancelResponse, tags=["Schedule"])
async def cancel_scheduled_message(
    job_id: str,
    scheduler: SchedulerService = Depends(get_scheduler_service),
):
    """예약 취소 (실행 전인 잡만)"""
    if not JOB_ID_PATTERN.match(job_id):
        raise ValidationError("Invalid job ID format")

    if not await scheduler.cancel(job_id):
        raise ScheduledJobNotFoundError(job_id)
    return CancelResponse(message="Scheduled message cancelled successfully")


@router.get(
    "/api/schedule/message/{job_id}/status",
    response_model=ScheduledJobStatusResponse,
    tags=["Schedule"],
)
async def get_scheduled_message_status(
    job_id: str,
    scheduler: SchedulerService = Depends(get_scheduler_service),
):
    """예약 잡 파생 상태 조회"""
    job = await scheduler.get_job(job_id)
    if job is None:
        raise ScheduledJobNotFoundError(job_id)
    return ScheduledJobStatusResponse(data=ScheduledJobStatusData.from_job(job))


# ============================================
# HEALTH
# ============================================

@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health(api_config: dict = Depends(get_api_config)):
    """헬스체크"""
    database = "connected"
    try:
        async with get_db(api_config.get("database", "default")).transaction(readonly=True) as ctx:
            await ctx.fetch_val("SELECT 1")
    except Exception as e:
        logger.warning(f"Health check database probe failed: {e}")
        database = "disconnected"

    status = "ok" if database == "connected" else "degraded"
    return HealthResponse(status=status, database=database)
