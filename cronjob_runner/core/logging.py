"""
Logging setup
상태 로그는 stderr, 컨테이너 로그는 stdout (ContainerLogger)
"""
import logging
import sys
from datetime import datetime
from typing import Optional, TextIO

LOG_FORMAT = "%(asctime)s %(filename)s:%(lineno)d: %(message)s"


class MicrosecondFormatter(logging.Formatter):
    """Formatter with the timestamp of microsecond precision"""

    def formatTime(self, record, datefmt=None):
        return datetime.fromtimestamp(record.created).strftime("%Y/%m/%d %H:%M:%S.%f")


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None) -> None:
    """Configure the root logger for the command line.

    Args:
        level: log level name such as "INFO" or "DEBUG"
        stream: destination of the status logs, default to stderr
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(MicrosecondFormatter(LOG_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())

    # urllib3 재시도 경고는 watcher가 직접 로그를 남기므로 숨김
    logging.getLogger("urllib3").setLevel(logging.ERROR)
