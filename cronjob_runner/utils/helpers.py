"""
Utility helper functions
"""
import re
from datetime import datetime, timezone
from typing import NamedTuple, Optional

_RFC3339 = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt](\d{2}:\d{2}:\d{2})(?:\.(\d{1,9}))?([Zz]|[+-]\d{2}:\d{2})$"
)


class Timestamp(NamedTuple):
    """RFC3339 timestamp with nanosecond precision (UTC)"""
    seconds: datetime
    nanos: int


def parse_rfc3339(value: str) -> Optional[Timestamp]:
    """RFC3339(Nano) 문자열을 Timestamp로 변환. 형식이 맞지 않으면 None"""
    m = _RFC3339.match(value)
    if not m:
        return None
    date, clock, fraction, offset = m.groups()
    if offset in ("Z", "z"):
        offset = "+00:00"
    try:
        seconds = datetime.fromisoformat(f"{date}T{clock}{offset}")
    except ValueError:
        return None
    nanos = int(fraction.ljust(9, "0")) if fraction else 0
    return Timestamp(seconds.astimezone(timezone.utc), nanos)


def format_status_message(reason: Optional[str], message: Optional[str], sep: str = ", ") -> str:
    """(reason, message) 형태의 괄호 문자열. 둘 다 없으면 빈 문자열"""
    if not reason and not message:
        return ""
    if not message:
        return f"({reason})"
    return f"({reason or ''}{sep}{message})"
