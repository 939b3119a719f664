"""
Pod tracker
Job의 Pod들을 watch하며 phase와 컨테이너 상태 변화를 로그로 남기고,
컨테이너가 시작되면 ContainerStartedEvent를 보낸다.
"""
import logging
from typing import List, Optional, Tuple

from kubernetes import client

from ..core.config import settings
from ..models.events import Added, Deleted, Updated, WatchEvent
from ..models.pod import ContainerState, ContainerStartedEvent, ContainerStatus, PodSnapshot
from ..utils.channel import Channel
from ..utils.context import Context
from ..utils.helpers import format_status_message
from .watcher import ResourceWatcher

ContainerStateChange = Tuple[ContainerStatus, ContainerStatus]


def compute_container_state_changes(
    old_statuses: List[ContainerStatus],
    new_statuses: List[ContainerStatus],
) -> List[ContainerStateChange]:
    """(old, new) pairs of the containers whose state has changed.

    A container absent in old_statuses is regarded as Waiting.
    """
    old_by_name = {s.name: s for s in old_statuses}
    changes = []
    for new_status in new_statuses:
        old_status = old_by_name.get(new_status.name, ContainerStatus(name=new_status.name))
        if old_status.state != new_status.state:
            changes.append((old_status, new_status))
    return changes


def is_container_started(old_state: ContainerState, new_state: ContainerState) -> bool:
    """Waiting -> Running/Terminated, or Terminated -> Running (restarted)"""
    if old_state == ContainerState.WAITING and new_state != ContainerState.WAITING:
        return True
    return old_state == ContainerState.TERMINATED and new_state == ContainerState.RUNNING


class PodTracker:
    """Diffs Pod snapshots and emits ContainerStartedEvent"""

    def __init__(
        self,
        started_ch: Channel[ContainerStartedEvent],
        ctx: Optional[Context] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._started_ch = started_ch
        self._ctx = ctx
        self._logger = logger or logging.getLogger(__name__)

    def handle(self, event: WatchEvent) -> None:
        if isinstance(event, Added):
            pod = event.obj
            self._logger.info(f"Pod {pod.namespace}/{pod.name} is {pod.phase.value}")
            # 이미 실행 중인 컨테이너도 tail 하도록 빈 Pod와 비교
            self._on_change(PodSnapshot(namespace=pod.namespace, name=pod.name), pod)
        elif isinstance(event, Updated):
            if event.old.phase != event.new.phase:
                self._logger.info(f"Pod {event.new.namespace}/{event.new.name} is {event.new.phase.value}")
            self._on_change(event.old, event.new)
        elif isinstance(event, Deleted):
            pod = event.obj
            self._logger.info(f"Pod {pod.namespace}/{pod.name} is deleted")
        else:
            raise TypeError(f"unknown watch event: {event!r}")

    def _on_change(self, old: PodSnapshot, new: PodSnapshot) -> None:
        self._on_container_changes(new, old.init_container_statuses, new.init_container_statuses)
        self._on_container_changes(new, old.container_statuses, new.container_statuses)

    def _on_container_changes(
        self,
        pod: PodSnapshot,
        old_statuses: List[ContainerStatus],
        new_statuses: List[ContainerStatus],
    ) -> None:
        for old_status, new_status in compute_container_state_changes(old_statuses, new_statuses):
            self._log_container_status(pod, new_status)
            if is_container_started(old_status.state, new_status.state):
                event = ContainerStartedEvent(
                    namespace=pod.namespace,
                    pod_name=pod.name,
                    container_name=new_status.name,
                )
                if not self._started_ch.send(event, self._ctx):
                    self._logger.debug(f"Dropped {event} on shutdown")

    def _log_container_status(self, pod: PodSnapshot, status: ContainerStatus) -> None:
        prefix = f"Pod {pod.namespace}/{pod.name}: Container {status.name}"
        if status.state == ContainerState.WAITING:
            self._logger.info(f"{prefix} is waiting {format_status_message(status.reason, status.message)}".rstrip())
        elif status.state == ContainerState.RUNNING:
            self._logger.info(f"{prefix} is running")
        else:
            self._logger.info(
                f"{prefix} is terminated with exit code {status.exit_code} "
                f"{format_status_message(status.reason, status.message)}".rstrip()
            )


def start_pod_watcher(
    core_v1: client.CoreV1Api,
    ctx: Context,
    namespace: str,
    job_name: str,
    started_ch: Channel[ContainerStartedEvent],
    logger: Optional[logging.Logger] = None,
) -> ResourceWatcher[PodSnapshot]:
    """Start watching the Pods of the Job. The caller must call shutdown()."""
    tracker = PodTracker(started_ch, ctx=ctx, logger=logger)
    watcher = ResourceWatcher(
        core_v1.list_namespaced_pod,
        "V1Pod",
        namespace,
        PodSnapshot.from_k8s,
        tracker.handle,
        ctx=ctx,
        label_selector=f"{settings.JOB_NAME_LABEL}={job_name}",
        name=f"pods of job {namespace}/{job_name}",
        logger=logger,
    ).start()
    (logger or logging.getLogger(__name__)).info(f"Watching the pods of job {namespace}/{job_name}")
    return watcher
