"""
cronjob-runner command line

Creates a Job from a CronJob, shows the status and logs, and exits with
0 when the Job succeeded or 1 otherwise.
"""
import logging
import os
import signal
import threading
from collections import deque
from typing import Deque, Dict, List, Optional

import typer
from kubernetes.client.rest import ApiException

from .core.config import settings
from .core.exceptions import JobFailedError, RunnerError
from .core.kubernetes import get_k8s_clients, get_server_version, load_kube_config, resolve_namespace
from .core.logging import setup_logging
from .services.runner import RunCronJobOptions, run_job_from_cronjob
from .utils.context import Context

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="cronjob-runner",
    help="Run a Job from a CronJob and wait for the completion",
    add_completion=False,
)


def parse_env(values: List[str]) -> Dict[str, str]:
    """KEY=VALUE 목록을 dict로 변환"""
    env = {}
    for value in values:
        key, sep, val = value.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"must be in the form of KEY=VALUE: {value}", param_hint="--env")
        env[key] = val
    return env


def secret_env_from_environ(keys: List[str]) -> Dict[str, str]:
    """실행 환경의 환경변수에서 Secret 값을 읽음"""
    return {key: os.environ.get(key, "") for key in keys}


def install_signal_handlers(ctx: Context, poll_interval: float = 0.1) -> threading.Thread:
    """SIGINT / SIGTERM이 오면 ctx를 취소

    The handler runs on the main thread between any two bytecodes, possibly
    while the main thread holds a lock of ctx. So it only records the signal
    and a relay thread cancels ctx.
    """
    received: Deque[int] = deque()

    def handler(signum, frame):
        received.append(signum)

    def relay() -> None:
        while not received:
            if ctx.wait(poll_interval):
                return
        ctx.cancel(f"received {signal.Signals(received[0]).name}")

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)
    thread = threading.Thread(target=relay, name="signal-relay", daemon=True)
    thread.start()
    return thread


@app.command()
def run(
    cronjob_name: str = typer.Option(..., "--cronjob-name", help="Name of CronJob"),
    namespace: Optional[str] = typer.Option(None, "--namespace", "-n", help="Namespace of CronJob"),
    kubeconfig: Optional[str] = typer.Option(None, "--kubeconfig", help="Path to the kubeconfig file"),
    context: Optional[str] = typer.Option(None, "--context", help="Name of the kubeconfig context"),
    env: List[str] = typer.Option(
        [], "--env", help="Environment variables to set into the all containers, in the form of KEY=VALUE",
    ),
    secret_env: List[str] = typer.Option(
        [], "--secret-env", help="Environment variables of secrets to set into the all containers, in the form of KEY",
    ),
    cancel_job_on_interrupt: bool = typer.Option(
        False, "--cancel-job-on-interrupt", help="Stop the Job when interrupted",
    ),
    log_level: str = typer.Option(settings.LOG_LEVEL, "--log-level", help="Log level"),
) -> None:
    """Run a Job from the CronJob"""
    setup_logging(log_level)
    options = RunCronJobOptions(
        env=parse_env(env),
        secret_env=secret_env_from_environ(secret_env),
        cancel_job_on_interrupt=cancel_job_on_interrupt,
    )

    ctx = Context()
    install_signal_handlers(ctx)
    try:
        load_kube_config(kubeconfig, context)
        target_namespace = resolve_namespace(namespace, kubeconfig, context)
        logger.info(f"Cluster version {get_server_version()}")
        run_job_from_cronjob(ctx, get_k8s_clients(), target_namespace, cronjob_name, options)
    except JobFailedError as e:
        logger.error(f"{e}")
        raise typer.Exit(code=1)
    except (RunnerError, ApiException) as e:
        logger.error(f"Error: {e}")
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
