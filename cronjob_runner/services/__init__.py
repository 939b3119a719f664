# Business logic services
from .watcher import ResourceWatcher
from .job_tracker import JobTracker, start_job_watcher
from .pod_tracker import PodTracker, start_pod_watcher
from .logs import ContainerLogger, DefaultContainerLogger, LogTailer, open_log_stream
from .runner import RunCronJobOptions, run_job_from_cronjob, wait_for_job

__all__ = [
    'ResourceWatcher',
    'JobTracker', 'start_job_watcher',
    'PodTracker', 'start_pod_watcher',
    'ContainerLogger', 'DefaultContainerLogger', 'LogTailer', 'open_log_stream',
    'RunCronJobOptions', 'run_job_from_cronjob', 'wait_for_job',
]
