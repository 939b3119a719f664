"""
Closable hand-off channel between threads
"""
import threading
from collections import deque
from typing import Deque, Generic, Iterator, Optional, TypeVar

from ..core.exceptions import ContextCancelledError
from .context import Context

T = TypeVar("T")


class ChannelClosed(Exception):
    """The channel is closed and drained"""


class _Slot(Generic[T]):
    __slots__ = ("item", "taken")

    def __init__(self, item: T):
        self.item = item
        self.taken = False


class Channel(Generic[T]):
    """A queue with a single closing point.

    With ``maxsize=0`` a send blocks until a receiver takes the item. With
    ``maxsize>0`` a send blocks only while the buffer is full. A blocked send
    gives up when the channel is closed or the given context is cancelled, so
    a sender never blocks a teardown.
    """

    def __init__(self, maxsize: int = 0):
        self._maxsize = maxsize
        self._slots: Deque[_Slot[T]] = deque()
        self._cond = threading.Condition()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _wake(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def send(self, item: T, ctx: Optional[Context] = None) -> bool:
        """Send an item. Returns False if it was not delivered."""
        with self._cond:
            unregister = ctx.on_cancel(self._wake) if ctx is not None else None
            try:
                return self._send_locked(item, ctx)
            finally:
                if unregister is not None:
                    unregister()

    def _send_locked(self, item: T, ctx: Optional[Context]) -> bool:
        def gave_up() -> bool:
            return self._closed or (ctx is not None and ctx.cancelled())

        if self._maxsize > 0:
            while len(self._slots) >= self._maxsize:
                if gave_up():
                    return False
                self._cond.wait()
            if gave_up():
                return False
            self._slots.append(_Slot(item))
            self._cond.notify_all()
            return True

        if gave_up():
            return False
        slot = _Slot(item)
        self._slots.append(slot)
        self._cond.notify_all()
        while not slot.taken:
            if gave_up():
                self._slots.remove(slot)
                return False
            self._cond.wait()
        return True

    def receive(self, ctx: Optional[Context] = None) -> T:
        """Receive an item.

        Raises:
            ChannelClosed: the channel is closed and no item is left
            ContextCancelledError: ctx was cancelled while waiting
        """
        with self._cond:
            unregister = ctx.on_cancel(self._wake) if ctx is not None else None
            try:
                while not self._slots:
                    if self._closed:
                        raise ChannelClosed()
                    if ctx is not None and ctx.cancelled():
                        raise ContextCancelledError(ctx.reason or "context canceled")
                    self._cond.wait()
                slot = self._slots.popleft()
                slot.taken = True
                self._cond.notify_all()
                return slot.item
            finally:
                if unregister is not None:
                    unregister()

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                yield self.receive()
            except ChannelClosed:
                return
