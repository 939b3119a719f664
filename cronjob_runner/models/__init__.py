# Pydantic models
from .events import Added, Updated, Deleted, WatchEvent
from .job import JOB_COMPLETE, JOB_FAILED, TerminationOutcome, JobCondition, JobSnapshot
from .pod import PodPhase, ContainerState, ContainerStatus, PodSnapshot, ContainerStartedEvent
from .logs import LogRecord

__all__ = [
    # Events
    'Added', 'Updated', 'Deleted', 'WatchEvent',
    # Job
    'JOB_COMPLETE', 'JOB_FAILED', 'TerminationOutcome', 'JobCondition', 'JobSnapshot',
    # Pod
    'PodPhase', 'ContainerState', 'ContainerStatus', 'PodSnapshot', 'ContainerStartedEvent',
    # Logs
    'LogRecord',
]
