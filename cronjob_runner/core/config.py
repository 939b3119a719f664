"""
Application configuration settings
환경변수(CRONJOB_RUNNER_*)로 기본값을 덮어쓸 수 있음
"""
import os

ENV_PREFIX = "CRONJOB_RUNNER_"


def _env_str(name: str, default: str) -> str:
    return os.environ.get(ENV_PREFIX + name, default)


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(ENV_PREFIX + name)
    if value is None or value == "":
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(ENV_PREFIX + name)
    if value is None or value == "":
        return default
    return float(value)


class Settings:
    """Application settings"""

    # Kubernetes
    FIELD_MANAGER: str = _env_str("FIELD_MANAGER", "cronjob-runner")
    JOB_NAME_LABEL: str = _env_str("JOB_NAME_LABEL", "batch.kubernetes.io/job-name")

    # Watch
    WATCH_TIMEOUT_SECONDS: int = _env_int("WATCH_TIMEOUT_SECONDS", 300)
    WATCH_RETRY_INTERVAL: float = _env_float("WATCH_RETRY_INTERVAL", 1.0)

    # Log tailing
    LOG_RETRY_INTERVAL: float = _env_float("LOG_RETRY_INTERVAL", 0.1)

    # 0이면 동기 전달 (unbuffered)
    EVENT_BUFFER_SIZE: int = _env_int("EVENT_BUFFER_SIZE", 0)

    # Logging
    LOG_LEVEL: str = _env_str("LOG_LEVEL", "INFO")


settings = Settings()
