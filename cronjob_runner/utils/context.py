"""
Cancellation context shared by every blocking operation
"""
import logging
import threading
from typing import Callable, Dict, Optional

from ..core.exceptions import ContextCancelledError

logger = logging.getLogger(__name__)


def _noop() -> None:
    pass


class Context:
    """Cancellation token.

    A context is cancelled once and stays cancelled. Blocking operations
    either wait on it (``wait``) or register a callback (``on_cancel``) which
    unblocks them, e.g. by closing a stream. A child context is cancelled
    together with its parent but can also be cancelled on its own.
    """

    def __init__(self, parent: Optional["Context"] = None):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._next_id = 0
        self._reason: Optional[str] = None
        if parent is not None:
            parent.on_cancel(lambda: self.cancel(parent.reason or "context canceled"))

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "context canceled") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Error in a cancel callback: {e!r}")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Sleep up to timeout seconds. Returns True if cancelled."""
        return self._event.wait(timeout)

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback run on cancellation.

        The callback runs immediately if the context is already cancelled.
        Returns a function to unregister the callback.
        """
        with self._lock:
            if not self._event.is_set():
                callback_id = self._next_id
                self._next_id += 1
                self._callbacks[callback_id] = callback

                def unregister() -> None:
                    with self._lock:
                        self._callbacks.pop(callback_id, None)

                return unregister
        callback()
        return _noop

    def child(self) -> "Context":
        return Context(parent=self)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ContextCancelledError(self._reason or "context canceled")


def cancellable_sleep(ctx: Context) -> Callable[[float], None]:
    """tenacity ``sleep=`` 용 대기 함수. ctx가 취소되면 즉시 ContextCancelledError"""

    def sleep(seconds: float) -> None:
        if ctx.wait(seconds):
            raise ContextCancelledError(ctx.reason or "context canceled")

    return sleep
