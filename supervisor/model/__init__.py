from supervisor.model.supervisor import SupervisorConfig, SupervisorState, WorkerHandle

__all__ = ['SupervisorConfig', 'SupervisorState', 'WorkerHandle']
