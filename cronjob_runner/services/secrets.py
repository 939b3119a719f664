"""
Job 실행용 임시 Secret
"""
import logging
from typing import Dict

from kubernetes import client
from kubernetes.client import V1Job, V1ObjectMeta, V1Secret
from kubernetes.client.rest import ApiException

from ..core.config import settings

logger = logging.getLogger(__name__)


def create_secret(core_v1: client.CoreV1Api, namespace: str, cronjob_name: str, data: Dict[str, str]) -> V1Secret:
    """Create an immutable Secret named after the CronJob"""
    secret = core_v1.create_namespaced_secret(namespace, V1Secret(
        metadata=V1ObjectMeta(namespace=namespace, generate_name=f"{cronjob_name}-"),
        immutable=True,
        string_data=dict(data),
    ))
    logger.info(f"Created a Secret {secret.metadata.namespace}/{secret.metadata.name}")
    return secret


def apply_owner_reference(core_v1: client.CoreV1Api, secret: V1Secret, job: V1Job) -> V1Secret:
    """Job을 owner로 지정하여 Job 삭제 시 Secret도 정리되도록 함"""
    owner_reference = {
        "apiVersion": "batch/v1",
        "kind": "Job",
        "name": job.metadata.name,
        "uid": job.metadata.uid,
    }
    patched = core_v1.patch_namespaced_secret(
        secret.metadata.name,
        secret.metadata.namespace,
        {"metadata": {"ownerReferences": [owner_reference]}},
        field_manager=settings.FIELD_MANAGER,
    )
    logger.info(f"Applied the owner reference to the Secret {secret.metadata.namespace}/{secret.metadata.name}")
    return patched


def delete_secret(core_v1: client.CoreV1Api, namespace: str, name: str) -> bool:
    """Best-effort cleanup. Returns False if the Secret could not be deleted."""
    try:
        core_v1.delete_namespaced_secret(name, namespace)
    except ApiException as e:
        if e.status == 404:
            logger.info(f"Secret {namespace}/{name} is already deleted")
            return True
        logger.warning(f"Could not clean up the Secret {namespace}/{name}: {e.status} {e.reason}")
        return False
    logger.info(f"Cleaned up the Secret {namespace}/{name}")
    return True
