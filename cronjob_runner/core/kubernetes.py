"""
Kubernetes 클라이언트 환경 자동 감지

환경에 따라 인증 방식을 자동으로 선택:
- Pod 내부 (KUBERNETES_SERVICE_HOST 존재): ServiceAccount 토큰 사용 (incluster_config)
- 로컬/CI 환경: kubeconfig 파일 사용 (kube_config)
"""
import os
import logging
from typing import NamedTuple, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from .exceptions import SetupError

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"
DEFAULT_NAMESPACE = "default"


class KubernetesClients(NamedTuple):
    """API clients used by the runner"""
    core_v1: client.CoreV1Api
    batch_v1: client.BatchV1Api


def is_running_in_cluster() -> bool:
    """현재 코드가 K8s 클러스터 내부(Pod)에서 실행 중인지 확인"""
    return os.environ.get('KUBERNETES_SERVICE_HOST') is not None


def load_kube_config(kubeconfig: Optional[str] = None, context: Optional[str] = None) -> bool:
    """K8s 설정 로드 (환경 자동 감지)

    kubeconfig 또는 context가 명시되면 kubeconfig를 우선 사용한다.

    Returns:
        bool: 클러스터 내부 config 사용 시 True, kube_config 사용 시 False

    Raises:
        SetupError: 어떤 설정도 로드할 수 없을 때
    """
    if kubeconfig is None and context is None and is_running_in_cluster():
        try:
            config.load_incluster_config()
            logger.info("Loaded the in-cluster config (ServiceAccount)")
            return True
        except config.ConfigException as e:
            logger.warning(f"In-cluster config failed: {e}, falling back to kubeconfig")

    try:
        config.load_kube_config(config_file=kubeconfig, context=context)
    except (config.ConfigException, OSError) as e:
        raise SetupError(f"could not load the config: {e}") from e
    logger.debug("Loaded the kubeconfig")
    return False


def get_k8s_clients() -> KubernetesClients:
    """Kubernetes API 클라이언트 반환 (load_kube_config 이후 호출)"""
    return KubernetesClients(core_v1=client.CoreV1Api(), batch_v1=client.BatchV1Api())


def resolve_namespace(
    namespace: Optional[str] = None,
    kubeconfig: Optional[str] = None,
    context: Optional[str] = None,
) -> str:
    """Determine the namespace to run the Job in.

    Order: explicit value, the namespace of the kubeconfig context,
    the namespace of the ServiceAccount, then "default".
    """
    if namespace:
        return namespace

    try:
        contexts, active_context = config.list_kube_config_contexts(config_file=kubeconfig)
    except (config.ConfigException, OSError):
        contexts, active_context = [], None
    selected = active_context
    if context:
        selected = next((c for c in contexts if c.get("name") == context), None)
    if selected:
        context_namespace = (selected.get("context") or {}).get("namespace")
        if context_namespace:
            return context_namespace

    if os.path.exists(SERVICE_ACCOUNT_NAMESPACE_FILE):
        with open(SERVICE_ACCOUNT_NAMESPACE_FILE) as f:
            service_account_namespace = f.read().strip()
        if service_account_namespace:
            return service_account_namespace

    return DEFAULT_NAMESPACE


def get_server_version() -> str:
    """API 서버 버전 문자열 (예: v1.30.2)"""
    try:
        version = client.VersionApi().get_code()
    except ApiException as e:
        raise SetupError(f"could not get the server version: {e}") from e
    return version.git_version


__all__ = [
    'KubernetesClients',
    'is_running_in_cluster',
    'load_kube_config',
    'get_k8s_clients',
    'resolve_namespace',
    'get_server_version',
    'ApiException',
]
