"""
Supervisor 설정/상태 모델
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum

import psutil
from pydantic import BaseModel, Field


class SupervisorState(str, Enum):
    """Idle -> Running -> Restarting -> Running, Running -> Stopped"""
    IDLE = "idle"
    RUNNING = "running"
    RESTARTING = "restarting"
    STOPPED = "stopped"


class SupervisorConfig(BaseModel):
    """Supervisor 설정"""
    cpu_threshold: float = Field(default=70.0, gt=0, le=100)
    check_interval_seconds: float = Field(default=5.0, gt=0)
    stop_timeout_seconds: float = Field(default=10.0, gt=0)
    worker_command: list[str] | None = None


@dataclass
class WorkerHandle:
    """실행 중인 워커 프로세스 (supervisor 전용)"""
    process: asyncio.subprocess.Process
    ps_process: psutil.Process | None = None
    alive: bool = True
    cpu_percent: float | None = None
    intentional_stop: bool = False
    exit_code: int | None = None
    watch_task: asyncio.Task | None = field(default=None, repr=False)

    @property
    def pid(self) -> int:
        return self.process.pid
