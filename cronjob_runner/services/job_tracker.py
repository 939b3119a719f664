"""
Job tracker
Job의 condition 변화를 감지하고 종료(Complete / Failed)를 한 번만 알린다.
"""
import logging
from typing import Optional

from kubernetes import client

from ..models.events import Added, Deleted, Updated, WatchEvent
from ..models.job import JobSnapshot, TerminationOutcome
from ..utils.channel import Channel
from ..utils.context import Context
from ..utils.helpers import format_status_message
from .watcher import ResourceWatcher


class JobTracker:
    """Turns Job watch events into a single termination outcome.

    States: pending, then terminal once the active condition is Complete or
    Failed. After the outcome is sent the tracker ignores every event.
    """

    def __init__(
        self,
        finished_ch: Channel[TerminationOutcome],
        ctx: Optional[Context] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._finished_ch = finished_ch
        self._ctx = ctx
        self._logger = logger or logging.getLogger(__name__)
        self._outcome: Optional[TerminationOutcome] = None

    @property
    def outcome(self) -> Optional[TerminationOutcome]:
        return self._outcome

    def handle(self, event: WatchEvent) -> None:
        if self._outcome is not None:
            return
        if isinstance(event, Added):
            job = event.obj
            if event.initial:
                self._logger.info(f"Job {job.namespace}/{job.name} is found")
            else:
                self._logger.info(f"Job {job.namespace}/{job.name} is created")
            self._on_change(None, job)
        elif isinstance(event, Updated):
            self._on_change(event.old, event.new)
        elif isinstance(event, Deleted):
            job = event.obj
            self._logger.warning(f"Job {job.namespace}/{job.name} is deleted")
        else:
            raise TypeError(f"unknown watch event: {event!r}")

    def _on_change(self, old: Optional[JobSnapshot], new: JobSnapshot) -> None:
        if old is None or old.pod_counts() != new.pod_counts():
            self._logger.info(
                f"Job {new.namespace}/{new.name} has the pod(s) of "
                f"active={new.active}, succeeded={new.succeeded}, failed={new.failed}"
            )

        # True가 아니었던 condition이 True가 되었을 때만 로그
        for condition in new.true_conditions():
            was_true = old is not None and any(
                c.type == condition.type and c.status for c in old.conditions
            )
            if not was_true:
                self._logger.info(
                    f"Job {new.namespace}/{new.name} is {condition.type} "
                    f"{format_status_message(condition.reason, condition.message, sep=': ')}".rstrip()
                )

        condition = new.active_condition()
        if condition is None:
            return
        outcome = condition.outcome()
        if outcome is None:
            return
        self._outcome = outcome
        if not self._finished_ch.send(outcome, self._ctx):
            self._logger.debug(f"Dropped the outcome of Job {new.namespace}/{new.name} on shutdown")


def start_job_watcher(
    batch_v1: client.BatchV1Api,
    ctx: Context,
    namespace: str,
    job_name: str,
    finished_ch: Channel[TerminationOutcome],
    logger: Optional[logging.Logger] = None,
) -> ResourceWatcher[JobSnapshot]:
    """Start watching the Job by name. The caller must call shutdown()."""
    tracker = JobTracker(finished_ch, ctx=ctx, logger=logger)
    watcher = ResourceWatcher(
        batch_v1.list_namespaced_job,
        "V1Job",
        namespace,
        JobSnapshot.from_k8s,
        tracker.handle,
        ctx=ctx,
        field_selector=f"metadata.name={job_name}",
        name=f"job {namespace}/{job_name}",
        logger=logger,
    ).start()
    (logger or logging.getLogger(__name__)).info(f"Watching the job {namespace}/{job_name}")
    return watcher
