# Core module - configuration, exceptions, logging, Kubernetes clients
from .config import settings
from .exceptions import RunnerError, JobFailedError, ContextCancelledError, SetupError
from .kubernetes import (
    KubernetesClients,
    get_k8s_clients,
    load_kube_config,
    resolve_namespace,
    get_server_version,
)

__all__ = [
    'settings',
    'RunnerError',
    'JobFailedError',
    'ContextCancelledError',
    'SetupError',
    'KubernetesClients',
    'get_k8s_clients',
    'load_kube_config',
    'resolve_namespace',
    'get_server_version',
]
