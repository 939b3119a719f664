# Utility functions and concurrency primitives
from .channel import Channel, ChannelClosed
from .context import Context, cancellable_sleep
from .group import TaskGroup, TailerPool
from .helpers import Timestamp, parse_rfc3339, format_status_message

__all__ = [
    'Channel', 'ChannelClosed',
    'Context', 'cancellable_sleep',
    'TaskGroup', 'TailerPool',
    'Timestamp', 'parse_rfc3339', 'format_status_message',
]
