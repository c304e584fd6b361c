"""
API 테스트 (httpx + ASGITransport)

테스트 항목:
1. 업로드 -> 상태 조회 (completed), 잘못된 형식 400, 없는 잡 404
2. 메시지 예약 201, 과거 시각/빈 메시지 400
3. 예약 목록 (status=scheduled 필터)
4. 예약 취소 (잘못된 id 400, 없는 id 404)
5. 예약 상태 조회, 실행 후 completed
6. 헬스체크

실행: python -m pytest test/api_test.py -v
"""

import asyncio
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

sys.path.insert(0, str(Path(__file__).parent.parent))

from api.dependencies import get_scheduler_service
from api.main import create_app
from database.registry import DatabaseRegistry

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

CSV_CONTENT = (
    "agent,firstname,email,policy_number,premium_amount_written,policy_start_date,policy_end_date\n"
    "Alice Agent,John,john@example.com,P-001,100,2024-01-01,2025-01-01\n"
    "Bob Agent,Jane,,P-002,200,2024-01-01,2025-01-01\n"
)


@pytest_asyncio.fixture
async def app(tmp_path):
    DatabaseRegistry.clear()
    config = {
        "databases": {"default": {"type": "sqlite3", "path": str(tmp_path / "api.db")}},
        "api": {"database": "default", "upload_dir": str(tmp_path / "uploads"), "max_upload_bytes": 1024},
        "ingest": {"isolation": "thread"},
        "scheduler": {"poll_interval_seconds": 0.05, "shutdown_timeout_seconds": 2},
    }
    app = create_app(config)
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def _future(seconds: float = 300) -> str:
    return (datetime.now(timezone.utc) + timedelta(seconds=seconds)).isoformat()


async def _poll(client, url: str, done, timeout: float = 10.0) -> dict:
    deadline = asyncio.get_running_loop().time() + timeout
    while asyncio.get_running_loop().time() < deadline:
        response = await client.get(url)
        body = response.json()
        if done(body):
            return body
        await asyncio.sleep(0.05)
    raise AssertionError(f"{url} did not reach expected state")


# ============================================================
# Upload
# ============================================================

class TestUploadApi:

    @pytest.mark.asyncio
    async def test_upload_and_status(self, client):
        response = await client.post(
            "/api/upload",
            files={"file": ("policies.csv", CSV_CONTENT.encode(), "text/csv")},
        )
        assert response.status_code == 202
        body = response.json()
        assert body["success"] is True
        assert body["statusUrl"] == f"/api/upload/status/{body['jobId']}"

        status = await _poll(client, body["statusUrl"], lambda b: b["status"] in ("completed", "failed"))
        assert status["status"] == "completed"
        assert status["recordsProcessed"] == 1
        assert status["recordsFailed"] == 1
        assert len(status["errors"]) == 1
        assert status["completedAt"] is not None

    @pytest.mark.asyncio
    async def test_upload_rejects_format(self, client):
        response = await client.post(
            "/api/upload",
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 400
        assert "Only CSV and XLSX" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_upload_too_large(self, client):
        response = await client.post(
            "/api/upload",
            files={"file": ("big.csv", b"x" * 2048, "text/csv")},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_status_not_found(self, client):
        response = await client.get("/api/upload/status/does-not-exist")
        assert response.status_code == 404
        assert response.json()["success"] is False


# ============================================================
# Schedule
# ============================================================

class TestScheduleApi:

    @pytest.mark.asyncio
    async def test_schedule_message(self, client):
        response = await client.post(
            "/api/schedule/message",
            json={"message": "hello", "scheduledFor": _future(), "metadata": {"to": "a@b.c"}},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "scheduled"
        assert len(body["jobId"]) == 24

        status = await client.get(f"/api/schedule/message/{body['jobId']}/status")
        assert status.status_code == 200
        assert status.json()["data"]["status"] == "scheduled"

    @pytest.mark.asyncio
    async def test_schedule_response_uses_request_values(self, app, client):
        class ClaimedImmediately:
            """예약 직후 잡이 사라진 (claim 후 정리/취소된) 것처럼 동작"""

            async def schedule(self, message, due_time, metadata=None):
                return "a" * 24

            async def get_job(self, job_id):
                return None

        scheduled_for = "2099-01-01T09:00:00+09:00"
        app.dependency_overrides[get_scheduler_service] = lambda: ClaimedImmediately()
        try:
            response = await client.post(
                "/api/schedule/message",
                json={"message": "race", "scheduledFor": scheduled_for},
            )
        finally:
            app.dependency_overrides.pop(get_scheduler_service, None)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "scheduled"
        assert body["jobId"] == "a" * 24
        assert datetime.fromisoformat(body["scheduledFor"].replace("Z", "+00:00")) == datetime(
            2099, 1, 1, 0, 0, tzinfo=timezone.utc
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"message": "", "scheduledFor": _future()},
        {"message": "late", "scheduledFor": "2000-01-01T00:00:00Z"},
        {"message": "no time"},
    ])
    async def test_schedule_validation(self, client, payload):
        response = await client.post("/api/schedule/message", json=payload)
        assert response.status_code == 400
        assert response.json()["error"]

    @pytest.mark.asyncio
    async def test_list_messages(self, client):
        ids = []
        for i in range(3):
            response = await client.post(
                "/api/schedule/message",
                json={"message": f"m{i}", "scheduledFor": _future(300 + i)},
            )
            ids.append(response.json()["jobId"])

        response = await client.get("/api/schedule/messages", params={"status": "scheduled"})
        assert response.status_code == 200
        listed = {item["jobId"] for item in response.json()["data"]}
        assert set(ids) <= listed

    @pytest.mark.asyncio
    async def test_cancel(self, client):
        response = await client.post(
            "/api/schedule/message",
            json={"message": "cancel me", "scheduledFor": _future()},
        )
        job_id = response.json()["jobId"]

        cancelled = await client.delete(f"/api/schedule/message/{job_id}")
        assert cancelled.status_code == 200
        assert cancelled.json()["success"] is True

        again = await client.delete(f"/api/schedule/message/{job_id}")
        assert again.status_code == 404

        status = await client.get(f"/api/schedule/message/{job_id}/status")
        assert status.status_code == 404

    @pytest.mark.asyncio
    async def test_cancel_invalid_id(self, client):
        response = await client.delete("/api/schedule/message/not-a-valid-id")
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid job ID format"

    @pytest.mark.asyncio
    async def test_scheduled_message_executes(self, client):
        response = await client.post(
            "/api/schedule/message",
            json={"message": "soon", "scheduledFor": _future(1.0)},
        )
        job_id = response.json()["jobId"]

        body = await _poll(
            client,
            f"/api/schedule/message/{job_id}/status",
            lambda b: b["data"]["status"] in ("completed", "failed"),
        )
        assert body["data"]["status"] == "completed"
        assert body["data"]["lastFinished"] is not None
        assert body["data"]["failReason"] is None


# ============================================================
# Health
# ============================================================

class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "database": "connected"}
