"""
Pod 관련 Pydantic 모델
Pod phase와 컨테이너 상태 스냅샷
"""
from enum import Enum
from typing import List, Optional

from kubernetes.client import V1ContainerStatus, V1Pod
from pydantic import BaseModel, ConfigDict


class PodPhase(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


class ContainerState(str, Enum):
    """컨테이너 상태. 어느 것도 설정되지 않았으면 Waiting"""
    WAITING = "Waiting"
    RUNNING = "Running"
    TERMINATED = "Terminated"


class ContainerStatus(BaseModel):
    """컨테이너 상태 정보"""
    model_config = ConfigDict(frozen=True)

    name: str
    state: ContainerState = ContainerState.WAITING
    reason: Optional[str] = None
    message: Optional[str] = None
    exit_code: Optional[int] = None  # Terminated only

    @classmethod
    def from_k8s(cls, status: V1ContainerStatus) -> "ContainerStatus":
        state = status.state
        if state is not None and state.waiting is not None:
            return cls(
                name=status.name,
                state=ContainerState.WAITING,
                reason=state.waiting.reason,
                message=state.waiting.message,
            )
        if state is not None and state.running is not None:
            return cls(name=status.name, state=ContainerState.RUNNING)
        if state is not None and state.terminated is not None:
            return cls(
                name=status.name,
                state=ContainerState.TERMINATED,
                reason=state.terminated.reason,
                message=state.terminated.message,
                exit_code=state.terminated.exit_code,
            )
        return cls(name=status.name)


class PodSnapshot(BaseModel):
    """Pod 상태 스냅샷"""
    model_config = ConfigDict(frozen=True)

    namespace: str
    name: str
    resource_version: str = ""
    phase: PodPhase = PodPhase.PENDING
    init_container_statuses: List[ContainerStatus] = []
    container_statuses: List[ContainerStatus] = []

    @classmethod
    def from_k8s(cls, pod: V1Pod) -> "PodSnapshot":
        status = pod.status
        phase = PodPhase.PENDING
        if status is not None and status.phase:
            try:
                phase = PodPhase(status.phase)
            except ValueError:
                phase = PodPhase.UNKNOWN
        return cls(
            namespace=pod.metadata.namespace,
            name=pod.metadata.name,
            resource_version=pod.metadata.resource_version or "",
            phase=phase,
            init_container_statuses=[
                ContainerStatus.from_k8s(s) for s in (status.init_container_statuses if status else None) or []
            ],
            container_statuses=[
                ContainerStatus.from_k8s(s) for s in (status.container_statuses if status else None) or []
            ],
        )


class ContainerStartedEvent(BaseModel):
    """컨테이너가 시작됨 (로그 tail 시작 트리거)"""
    model_config = ConfigDict(frozen=True)

    namespace: str
    pod_name: str
    container_name: str

    def key(self) -> tuple:
        return (self.pod_name, self.container_name)


__all__ = [
    "PodPhase",
    "ContainerState",
    "ContainerStatus",
    "PodSnapshot",
    "ContainerStartedEvent",
]
