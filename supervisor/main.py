"""
WorkerSupervisor: 워커 프로세스 1개를 띄우고 CPU 사용률을 감시

- check_interval_seconds 마다 워커의 CPU 사용률을 샘플링
- 샘플링 실패는 로그만 남기고 해당 주기를 건너뜀
- 사용률 >= cpu_threshold 이면 restart() (중지 후 재실행)
- restart는 직렬화: 재시작 중 들어온 초과 신호는 무시 (큐잉하지 않음)
- 워커가 스스로 종료되면 감시를 멈추고 재실행하지 않음 (STOPPED)
  이후 명시적 restart() 호출만 워커를 다시 띄우고 감시를 재개함 (shutdown 후에는 불가)
- 워커 실행 실패는 supervisor에 치명적 (WorkerLaunchError)
"""

import asyncio
import logging
import sys
from collections.abc import Callable
from pathlib import Path

import psutil

from supervisor.exception import CpuSampleError, WorkerLaunchError
from supervisor.model.supervisor import SupervisorConfig, SupervisorState, WorkerHandle

logger = logging.getLogger(__name__)

CpuSampler = Callable[[WorkerHandle], float]


def default_worker_command() -> list[str]:
    """python main.py api"""
    main_path = Path(__file__).parent.parent / "main.py"
    return [sys.executable, str(main_path), "api"]


def psutil_sampler(handle: WorkerHandle) -> float:
    """직전 호출 이후의 CPU 사용률 (%)"""
    if handle.ps_process is None:
        raise CpuSampleError(f"No process info for worker pid={handle.pid}")
    try:
        return handle.ps_process.cpu_percent(interval=None)
    except psutil.Error as e:
        raise CpuSampleError(f"Failed to sample CPU for pid={handle.pid}: {e}") from e


class WorkerSupervisor:
    """
    워커 프로세스 감시자

    사용 예시:
        supervisor = WorkerSupervisor(SupervisorConfig(cpu_threshold=70))
        await supervisor.run()        # shutdown() 또는 워커 종료까지 대기
    """

    def __init__(self, config: SupervisorConfig | None = None, cpu_sampler: CpuSampler | None = None):
        self._config = config or SupervisorConfig()
        self._command = self._config.worker_command or default_worker_command()
        self._sampler = cpu_sampler or psutil_sampler

        self._state = SupervisorState.IDLE
        self._worker: WorkerHandle | None = None
        self._restart_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._monitor_task: asyncio.Task | None = None
        self._fatal_error: WorkerLaunchError | None = None
        self._restart_count = 0
        self._shutdown_requested = False

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def worker(self) -> WorkerHandle | None:
        return self._worker

    @property
    def restart_count(self) -> int:
        return self._restart_count

    @property
    def config(self) -> SupervisorConfig:
        return self._config

    async def start(self) -> None:
        """워커 실행 + 감시 시작"""
        if self._state != SupervisorState.IDLE:
            logger.warning(f"Supervisor already started (state={self._state.value})")
            return

        logger.info(
            f"Supervisor starting (threshold={self._config.cpu_threshold}%, "
            f"interval={self._config.check_interval_seconds}s, command={self._command})"
        )
        try:
            self._worker = await self._launch()
        except WorkerLaunchError:
            self._state = SupervisorState.STOPPED
            raise

        self._state = SupervisorState.RUNNING
        self._monitor_task = asyncio.create_task(self._monitor_loop())

    async def run(self) -> None:
        """start 후 감시가 끝날 때까지 대기"""
        await self.start()
        await self._stop_event.wait()
        if self._monitor_task:
            await asyncio.gather(self._monitor_task, return_exceptions=True)
        if self._fatal_error:
            raise self._fatal_error

    async def _monitor_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self._config.check_interval_seconds,
                )
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.check_once()
            except WorkerLaunchError as e:
                logger.critical(f"Worker launch failed, supervisor stopping: {e}")
                self._fatal_error = e
                self._state = SupervisorState.STOPPED
                self._stop_event.set()

        logger.info("Supervisor monitor loop stopped")

    async def check_once(self) -> bool:
        """
        CPU 1회 점검

        Returns:
            이번 점검으로 재시작했으면 True
        """
        handle = self._worker
        if handle is None or not handle.alive or self._state != SupervisorState.RUNNING:
            return False

        try:
            usage = await asyncio.to_thread(self._sampler, handle)
        except Exception as e:
            logger.warning(f"CPU sample failed for pid={handle.pid}, skipping cycle: {e}")
            return False

        handle.cpu_percent = usage
        logger.debug(f"Worker pid={handle.pid} CPU {usage:.1f}%")

        if usage < self._config.cpu_threshold:
            return False

        # 샘플링하는 동안 이미 교체된 워커에 대한 신호는 무시
        if handle is not self._worker:
            logger.info(f"Ignoring breach from replaced worker pid={handle.pid}")
            return False

        logger.warning(
            f"Worker pid={handle.pid} CPU {usage:.1f}% >= {self._config.cpu_threshold}%, restarting"
        )
        return await self.restart()

    async def restart(self) -> bool:
        """
        중지 후 재실행 (직렬화)

        Returns:
            재시작을 수행했으면 True, 다른 재시작이 진행 중이거나 시작 전/shutdown 이후면 False
        """
        if self._restart_lock.locked():
            logger.info("Restart already in progress, ignoring request")
            return False
        if self._state == SupervisorState.IDLE or self._shutdown_requested:
            logger.info(f"Restart ignored in state {self._state.value}")
            return False

        async with self._restart_lock:
            resume_monitor = self._state == SupervisorState.STOPPED
            if resume_monitor:
                await self._join_monitor()
            self._state = SupervisorState.RESTARTING
            old = self._worker
            if old is not None:
                await self._terminate(old)

            try:
                self._worker = await self._launch()
            except WorkerLaunchError:
                self._worker = None
                self._state = SupervisorState.STOPPED
                raise

            self._restart_count += 1
            self._state = SupervisorState.RUNNING
            if resume_monitor:
                self._stop_event.clear()
                self._fatal_error = None
                self._monitor_task = asyncio.create_task(self._monitor_loop())
            logger.info(
                f"Worker restarted: pid {old.pid if old else None} -> {self._worker.pid} "
                f"(restarts={self._restart_count})"
            )
            return True

    async def shutdown(self) -> None:
        """감시 중지 + 워커 종료"""
        self._shutdown_requested = True
        if self._state == SupervisorState.IDLE:
            self._state = SupervisorState.STOPPED
            return

        logger.info("Supervisor shutting down")
        self._stop_event.set()

        # 진행 중인 재시작이 끝난 뒤 종료
        async with self._restart_lock:
            self._state = SupervisorState.STOPPED
            if self._worker is not None:
                await self._terminate(self._worker)

        await self._join_monitor()
        logger.info("Supervisor stopped")

    async def _join_monitor(self) -> None:
        if self._monitor_task and self._monitor_task is not asyncio.current_task():
            await asyncio.gather(self._monitor_task, return_exceptions=True)

    async def _launch(self) -> WorkerHandle:
        try:
            process = await asyncio.create_subprocess_exec(*self._command)
        except OSError as e:
            raise WorkerLaunchError(self._command, str(e)) from e

        handle = WorkerHandle(process=process)
        try:
            handle.ps_process = psutil.Process(process.pid)
            # 첫 호출은 기준점 (항상 0.0)
            handle.ps_process.cpu_percent(interval=None)
        except psutil.Error as e:
            logger.warning(f"Could not attach process info to pid={process.pid}: {e}")

        handle.watch_task = asyncio.create_task(self._watch_exit(handle))
        logger.info(f"Worker launched: pid={handle.pid}")
        return handle

    async def _watch_exit(self, handle: WorkerHandle) -> None:
        exit_code = await handle.process.wait()
        handle.alive = False
        handle.exit_code = exit_code

        if handle.intentional_stop:
            logger.info(f"Worker pid={handle.pid} stopped (exit={exit_code})")
            return

        # 예기치 않은 종료: 재실행하지 않고 감시 중단
        logger.error(f"Worker pid={handle.pid} exited unexpectedly (exit={exit_code}), monitoring stopped")
        if handle is self._worker:
            self._worker = None
        self._state = SupervisorState.STOPPED
        self._stop_event.set()

    async def _terminate(self, handle: WorkerHandle) -> None:
        handle.intentional_stop = True
        if not handle.alive:
            return

        try:
            handle.process.terminate()
        except ProcessLookupError:
            pass

        try:
            await asyncio.wait_for(handle.process.wait(), timeout=self._config.stop_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Worker pid={handle.pid} did not stop in {self._config.stop_timeout_seconds}s, killing")
            try:
                handle.process.kill()
            except ProcessLookupError:
                pass
            await handle.process.wait()

        if handle.watch_task:
            await asyncio.gather(handle.watch_task, return_exceptions=True)
