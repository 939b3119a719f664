"""
Job 생성 / 출력 / 취소
CronJob의 jobTemplate으로 Job을 만든다.
"""
import copy
import logging
import sys
from typing import Dict, List, Optional, TextIO

import yaml
from kubernetes import client
from kubernetes.client import (
    V1Container,
    V1CronJob,
    V1EnvVar,
    V1EnvVarSource,
    V1Job,
    V1ObjectMeta,
    V1OwnerReference,
    V1SecretKeySelector,
)

from ..core.config import settings

logger = logging.getLogger(__name__)


def new_job_from_cronjob(
    cronjob: V1CronJob,
    env: Optional[Dict[str, str]] = None,
    secret_env: Optional[Dict[str, str]] = None,
    secret_name: Optional[str] = None,
) -> V1Job:
    """CronJob의 jobTemplate으로 Job 객체 생성 (API 호출 없음)

    Args:
        cronjob: source CronJob
        env: environment variables appended to all containers
        secret_env: keys of the Secret appended to all containers via secretKeyRef
        secret_name: name of the Secret holding secret_env

    Returns:
        V1Job: a Job to create, the CronJob is not modified
    """
    template = cronjob.spec.job_template
    template_metadata = template.metadata or V1ObjectMeta()
    spec = copy.deepcopy(template.spec)

    env_vars = [V1EnvVar(name=k, value=v) for k, v in sorted((env or {}).items())]
    if secret_env:
        if not secret_name:
            raise ValueError("secret_name is required when secret_env is given")
        env_vars.extend(
            V1EnvVar(
                name=k,
                value_from=V1EnvVarSource(secret_key_ref=V1SecretKeySelector(name=secret_name, key=k)),
            )
            for k in sorted(secret_env)
        )
    if env_vars:
        pod_spec = spec.template.spec
        pod_spec.containers = _append_env(pod_spec.containers, env_vars)
        if pod_spec.init_containers:
            pod_spec.init_containers = _append_env(pod_spec.init_containers, env_vars)

    return V1Job(
        api_version="batch/v1",
        kind="Job",
        metadata=V1ObjectMeta(
            namespace=cronjob.metadata.namespace,
            generate_name=f"{cronjob.metadata.name}-",
            labels=copy.deepcopy(template_metadata.labels),
            annotations=copy.deepcopy(template_metadata.annotations),
            # CronJob 컨트롤러가 오래된 Job을 정리하도록 owner reference 설정
            owner_references=[V1OwnerReference(
                api_version="batch/v1",
                kind="CronJob",
                name=cronjob.metadata.name,
                uid=cronjob.metadata.uid,
                controller=True,
            )],
        ),
        spec=spec,
    )


def _append_env(containers: List[V1Container], env_vars: List[V1EnvVar]) -> List[V1Container]:
    result = []
    for container in containers or []:
        new_container = copy.deepcopy(container)
        new_container.env = list(container.env or []) + copy.deepcopy(env_vars)
        result.append(new_container)
    return result


def create_job(batch_v1: client.BatchV1Api, job: V1Job) -> V1Job:
    created = batch_v1.create_namespaced_job(job.metadata.namespace, job)
    logger.info(f"Created a Job {created.metadata.namespace}/{created.metadata.name}")
    return created


def job_to_yaml(job: V1Job) -> str:
    body = client.ApiClient().sanitize_for_serialization(job)
    body.setdefault("apiVersion", "batch/v1")
    body.setdefault("kind", "Job")
    # managedFields는 숨김
    body.get("metadata", {}).pop("managedFields", None)
    return yaml.safe_dump(body, sort_keys=False, default_flow_style=False)


def print_job_yaml(job: V1Job, stream: Optional[TextIO] = None) -> None:
    """Job YAML 출력 (GitHub Actions 로그 그룹으로 묶음)"""
    stream = stream or sys.stderr
    stream.write("::group::Job YAML\n")
    stream.write(job_to_yaml(job))
    stream.write("::endgroup::\n")
    stream.flush()


def cancel_job(batch_v1: client.BatchV1Api, namespace: str, name: str) -> None:
    """activeDeadlineSeconds=0 으로 Job을 중단시킨다 (Job 컨트롤러가 Failed 처리)"""
    batch_v1.patch_namespaced_job(
        name,
        namespace,
        {"spec": {"activeDeadlineSeconds": 0}},
        field_manager=settings.FIELD_MANAGER,
    )
    logger.info(f"Applied activeDeadlineSeconds=0 to the Job {namespace}/{name}")
