"""
Background task groups
"""
import threading
from typing import Any, Callable, Hashable, List, Set


class TaskGroup:
    """Runs functions in threads and waits for all of them.

    Tasks may be started while another thread is in ``wait()``; ``wait()``
    returns only when no task is left running.
    """

    def __init__(self, name: str = "task"):
        self._name = name
        self._lock = threading.Lock()
        self._threads: List[threading.Thread] = []

    def start(self, fn: Callable[..., Any], *args: Any, name: str = "") -> threading.Thread:
        thread = threading.Thread(
            target=fn,
            args=args,
            name=f"{self._name}-{name or len(self._threads)}",
            daemon=True,
        )
        with self._lock:
            self._threads.append(thread)
            thread.start()
        return thread

    def wait(self) -> None:
        while True:
            with self._lock:
                threads = list(self._threads)
            for thread in threads:
                thread.join()
            with self._lock:
                if len(self._threads) == len(threads):
                    return

    def running(self) -> int:
        with self._lock:
            return sum(1 for t in self._threads if t.is_alive())


class TailerPool(TaskGroup):
    """TaskGroup keyed by (pod, container).

    At most one task runs per key. A submit for a key which is still running
    is remembered, and the task runs again once the current one has exited.
    """

    def __init__(self, name: str = "tailer"):
        super().__init__(name)
        self._keys_lock = threading.Lock()
        self._running: Set[Hashable] = set()
        self._rerun: Set[Hashable] = set()

    def submit(self, key: Hashable, fn: Callable[[], Any]) -> bool:
        """Returns True if a new task was started, False if a rerun was queued."""
        with self._keys_lock:
            if key in self._running:
                self._rerun.add(key)
                return False
            self._running.add(key)
        self.start(self._run, key, fn, name="/".join(str(k) for k in _as_tuple(key)))
        return True

    def _run(self, key: Hashable, fn: Callable[[], Any]) -> None:
        try:
            while True:
                fn()
                with self._keys_lock:
                    # 확인과 해제를 한 락 안에서 해야 그 사이의 submit이 유실되지 않음
                    if key not in self._rerun:
                        self._running.discard(key)
                        return
                    self._rerun.discard(key)
        except BaseException:
            with self._keys_lock:
                self._running.discard(key)
                self._rerun.discard(key)
            raise


def _as_tuple(key: Hashable) -> tuple:
    return key if isinstance(key, tuple) else (key,)
