from supervisor.exception import CpuSampleError, WorkerLaunchError
from supervisor.main import WorkerSupervisor, default_worker_command, psutil_sampler
from supervisor.model import SupervisorConfig, SupervisorState, WorkerHandle

__all__ = [
    'WorkerSupervisor',
    'SupervisorConfig',
    'SupervisorState',
    'WorkerHandle',
    'WorkerLaunchError',
    'CpuSampleError',
    'default_worker_command',
    'psutil_sampler',
]
