"""
통합 진입점

사용법:
    python main.py supervisor      # 워커(API 서버)를 띄우고 CPU 사용률 감시
    python main.py api             # API 서버 (업로드 수집 + 메시지 예약 poller)
"""

import sys
import os

# Windows 인코딩 설정 (cp949 -> UTF-8)
if sys.platform == "win32":
    os.environ["PYTHONUTF8"] = "1"

import asyncio
import signal
import logging

from common.config import load_config
from common.logging import setup_logging

logger = logging.getLogger(__name__)

VALID_MODULES = ("supervisor", "api")


async def run_supervisor(config: dict, stop_event: asyncio.Event):
    """WorkerSupervisor 실행"""
    from supervisor.main import WorkerSupervisor
    from supervisor.model.supervisor import SupervisorConfig

    supervisor = WorkerSupervisor(SupervisorConfig(**config.get("supervisor", {})))

    async def wait_stop():
        await stop_event.wait()
        await supervisor.shutdown()

    stop_task = asyncio.create_task(wait_stop())
    try:
        await supervisor.run()
    finally:
        stop_task.cancel()


async def run_api(config: dict, stop_event: asyncio.Event):
    """API 서버 실행"""
    import uvicorn
    from api.main import create_app

    api_config = config.get("api", {})
    uv_config = uvicorn.Config(
        create_app(config),
        host=api_config.get("host", "0.0.0.0"),
        port=api_config.get("port", 3000),
        log_level="info",
    )
    server = uvicorn.Server(uv_config)

    async def wait_stop():
        await stop_event.wait()
        server.should_exit = True

    asyncio.create_task(wait_stop())
    await server.serve()


async def main(module: str):
    """메인 함수"""
    config = load_config()

    log_config = config.get("logging", {})
    setup_logging(
        level=log_config.get("level", "INFO"),
        json_format=log_config.get("json_format", True),
        log_file=log_config.get("log_file"),
    )

    # 종료 이벤트
    stop_event = asyncio.Event()

    # 시그널 핸들러
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        stop_event.set()

    # Windows는 add_signal_handler를 지원하지 않음
    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

    try:
        if module == "supervisor":
            await run_supervisor(config, stop_event)
        else:
            await run_api(config, stop_event)
    except asyncio.CancelledError:
        logger.info("Tasks cancelled")
    finally:
        logger.info(f"{module} stopped")


if __name__ == "__main__":
    args = sys.argv[1:]
    if len(args) != 1 or args[0] not in VALID_MODULES:
        print("Usage: python main.py [supervisor|api]")
        sys.exit(1)

    try:
        asyncio.run(main(args[0]))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
