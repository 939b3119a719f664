"""
Runner: create a Job from a CronJob and wait for the completion.

It runs a new Job as follows:

- Create a Secret if ``RunCronJobOptions.secret_env`` is set.
- Create a Job from the CronJob template.
- Wait for the Job (see ``wait_for_job``).

If the Job succeeded it returns None, if the Job failed it raises
JobFailedError, and if the context is cancelled it raises
ContextCancelledError after stopping every background worker.
"""
import logging
from functools import partial
from typing import Any, Dict, Optional

from kubernetes.client import V1Job
from kubernetes.client.rest import ApiException
from pydantic import BaseModel, ConfigDict

from ..core.config import settings
from ..core.exceptions import ContextCancelledError, JobFailedError, SetupError
from ..core.kubernetes import KubernetesClients
from ..models.job import TerminationOutcome
from ..models.pod import ContainerStartedEvent
from ..utils.channel import Channel
from ..utils.context import Context
from ..utils.group import TailerPool, TaskGroup
from .job_tracker import start_job_watcher
from .jobs import cancel_job, create_job, new_job_from_cronjob, print_job_yaml
from .logs import ContainerLogger, DefaultContainerLogger, LogTailer, open_log_stream
from .pod_tracker import start_pod_watcher
from .secrets import apply_owner_reference, create_secret, delete_secret

logger = logging.getLogger(__name__)


class RunCronJobOptions(BaseModel):
    """Options of run_job_from_cronjob"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    # 모든 컨테이너에 주입할 환경변수
    env: Dict[str, str] = {}
    # 임시 Secret을 통해 주입할 환경변수
    secret_env: Dict[str, str] = {}
    # 기본값: DefaultContainerLogger
    container_logger: Optional[Any] = None
    # 중단 시 Job에 activeDeadlineSeconds=0 적용
    cancel_job_on_interrupt: bool = False


def wait_for_job(
    ctx: Context,
    clients: KubernetesClients,
    job: V1Job,
    container_logger: Optional[ContainerLogger] = None,
    log: Optional[logging.Logger] = None,
) -> None:
    """Wait for the completion of the Job.

    - Show the statuses of the Job, Pod(s) and container(s) when changed.
    - Tail the log streams of all containers.
    - Wait for the Job to be succeeded or failed.

    If the Job is deleted before it finishes, only a warning is logged and
    this keeps waiting. Cancel ctx (e.g. by a timer) to bound the wait.

    Raises:
        JobFailedError: the Job failed
        ContextCancelledError: ctx was cancelled
        SetupError: a watch could not be started
    """
    log = log or logger
    namespace, name = job.metadata.namespace, job.metadata.name
    tailer = LogTailer(
        open_log_stream(clients.core_v1),
        container_logger or DefaultContainerLogger(),
        logger=log,
    )

    watch_ctx = ctx.child()
    container_started_ch: Channel[ContainerStartedEvent] = Channel(settings.EVENT_BUFFER_SIZE)
    job_finished_ch: Channel[TerminationOutcome] = Channel(1)
    watchers = []
    tailers = TailerPool()
    spawner = TaskGroup("spawner")

    def spawn_tailers() -> None:
        # 컨테이너가 시작되면 로그 tail 시작
        for event in container_started_ch:
            started = tailers.submit(
                event.key(),
                partial(tailer.tail, ctx, event.namespace, event.pod_name, event.container_name),
            )
            if not started:
                log.debug(f"Container {event.pod_name}/{event.container_name} will be tailed again after the current stream")

    spawner.start(spawn_tailers, name="container-started")
    try:
        watchers.append(start_pod_watcher(clients.core_v1, watch_ctx, namespace, name, container_started_ch, logger=log))
        watchers.append(start_job_watcher(clients.batch_v1, watch_ctx, namespace, name, job_finished_ch, logger=log))
        try:
            outcome = job_finished_ch.receive(ctx)
        except ContextCancelledError:
            log.info(f"Shutting down: {ctx.reason}")
            raise
        if outcome == TerminationOutcome.FAILED:
            raise JobFailedError(namespace, name)
        log.info(f"Job {namespace}/{name} succeeded")
    finally:
        # 순서 중요: watcher 종료 -> 채널 close -> tailer 대기
        watch_ctx.cancel("shutting down")
        for watcher in watchers:
            watcher.shutdown()
        container_started_ch.close()
        job_finished_ch.close()
        spawner.wait()
        tailers.wait()
        log.info("Stopped all background workers")


def run_job_from_cronjob(
    ctx: Context,
    clients: KubernetesClients,
    namespace: str,
    cronjob_name: str,
    options: Optional[RunCronJobOptions] = None,
) -> None:
    """Create a Job from the existing CronJob and wait for the completion.

    Raises:
        JobFailedError: the Job failed
        ContextCancelledError: ctx was cancelled
        SetupError: the CronJob, Secret or Job could not be handled
    """
    options = options or RunCronJobOptions()
    try:
        cronjob = clients.batch_v1.read_namespaced_cron_job(cronjob_name, namespace)
    except ApiException as e:
        raise SetupError(f"could not get the CronJob {namespace}/{cronjob_name}: {e.status} {e.reason}") from e
    logger.info(f"Found the CronJob {cronjob.metadata.namespace}/{cronjob.metadata.name}")
    ctx.raise_if_cancelled()

    if not options.secret_env:
        job = _create_job(clients, new_job_from_cronjob(cronjob, options.env))
        _wait(ctx, clients, job, options)
        return

    try:
        secret = create_secret(clients.core_v1, namespace, cronjob_name, options.secret_env)
    except ApiException as e:
        raise SetupError(f"could not create a Secret: {e.status} {e.reason}") from e
    try:
        job = _create_job(clients, new_job_from_cronjob(
            cronjob, options.env, options.secret_env, secret.metadata.name,
        ))
        try:
            apply_owner_reference(clients.core_v1, secret, job)
        except ApiException as e:
            raise SetupError(f"could not apply the owner reference to the Secret: {e.status} {e.reason}") from e
        _wait(ctx, clients, job, options)
    finally:
        # ctx가 이미 취소되었어도 정리는 수행
        delete_secret(clients.core_v1, secret.metadata.namespace, secret.metadata.name)


def _create_job(clients: KubernetesClients, job: V1Job) -> V1Job:
    try:
        created = create_job(clients.batch_v1, job)
    except ApiException as e:
        raise SetupError(f"could not create a Job: {e.status} {e.reason}") from e
    print_job_yaml(created)
    return created


def _wait(ctx: Context, clients: KubernetesClients, job: V1Job, options: RunCronJobOptions) -> None:
    try:
        wait_for_job(ctx, clients, job, container_logger=options.container_logger)
    except ContextCancelledError:
        if options.cancel_job_on_interrupt:
            try:
                cancel_job(clients.batch_v1, job.metadata.namespace, job.metadata.name)
            except ApiException as e:
                logger.warning(f"Could not cancel the Job {job.metadata.namespace}/{job.metadata.name}: {e.status} {e.reason}")
        raise
