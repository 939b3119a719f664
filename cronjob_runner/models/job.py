"""
Job 관련 Pydantic 모델
Job 상태(conditions, pod 카운트) 스냅샷
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from kubernetes.client import V1Job
from pydantic import BaseModel, ConfigDict

JOB_COMPLETE = "Complete"
JOB_FAILED = "Failed"

# 여러 condition이 동시에 True일 때의 우선순위 (작을수록 우선)
CONDITION_PRIORITY = {
    JOB_FAILED: 0,
    JOB_COMPLETE: 1,
    "FailureTarget": 2,
    "SuccessCriteriaMet": 3,
}


class TerminationOutcome(str, Enum):
    """Job의 최종 결과"""
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class JobCondition(BaseModel):
    """Job condition"""
    model_config = ConfigDict(frozen=True)

    type: str
    status: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    last_transition_time: Optional[datetime] = None

    def outcome(self) -> Optional[TerminationOutcome]:
        if self.type == JOB_COMPLETE:
            return TerminationOutcome.SUCCEEDED
        if self.type == JOB_FAILED:
            return TerminationOutcome.FAILED
        return None


class JobSnapshot(BaseModel):
    """Job 상태 스냅샷"""
    model_config = ConfigDict(frozen=True)

    namespace: str
    name: str
    resource_version: str = ""
    conditions: List[JobCondition] = []
    active: int = 0
    succeeded: int = 0
    failed: int = 0

    @classmethod
    def from_k8s(cls, job: V1Job) -> "JobSnapshot":
        status = job.status
        conditions = []
        for c in (status.conditions if status else None) or []:
            conditions.append(JobCondition(
                type=c.type,
                status=c.status == "True",
                reason=c.reason,
                message=c.message,
                last_transition_time=c.last_transition_time,
            ))
        return cls(
            namespace=job.metadata.namespace,
            name=job.metadata.name,
            resource_version=job.metadata.resource_version or "",
            conditions=conditions,
            active=(status.active if status else None) or 0,
            succeeded=(status.succeeded if status else None) or 0,
            failed=(status.failed if status else None) or 0,
        )

    def true_conditions(self) -> List[JobCondition]:
        return [c for c in self.conditions if c.status]

    def active_condition(self) -> Optional[JobCondition]:
        """The condition consulted for termination.

        Among the True conditions, the one with the latest transition time
        wins. Ties and missing times fall back to CONDITION_PRIORITY, then
        to the type name.
        """
        candidates = self.true_conditions()
        if not candidates:
            return None

        def sort_key(c: JobCondition):
            time_key = c.last_transition_time.timestamp() if c.last_transition_time else float("-inf")
            return (-time_key, CONDITION_PRIORITY.get(c.type, len(CONDITION_PRIORITY)), c.type)

        return sorted(candidates, key=sort_key)[0]

    def pod_counts(self) -> tuple:
        return (self.active, self.succeeded, self.failed)


__all__ = [
    "JOB_COMPLETE",
    "JOB_FAILED",
    "TerminationOutcome",
    "JobCondition",
    "JobSnapshot",
]
