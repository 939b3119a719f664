"""
Container log record
"""
from pydantic import BaseModel, ConfigDict


class LogRecord(BaseModel):
    """컨테이너 로그 한 줄"""
    model_config = ConfigDict(frozen=True)

    raw_timestamp: str  # 원본 RFC3339 문자열, 파싱 실패 시 ""
    namespace: str
    pod_name: str
    container_name: str
    message: str


__all__ = ["LogRecord"]
