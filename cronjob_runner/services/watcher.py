"""
Resource watcher (list + watch)

하나의 리소스 종류를 watch하며 초기 목록을 Added 이벤트로 먼저 전달한 뒤
Added / Updated / Deleted 이벤트를 순서대로 전달한다.
연결 오류는 내부에서 재시도하며 호출자에게 전달하지 않는다.
"""
import logging
import threading
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from kubernetes import watch
from kubernetes.client.rest import ApiException
from kubernetes.watch.watch import iter_resp_lines
from tenacity import Retrying, retry_if_exception, wait_fixed

from ..core.config import settings
from ..core.exceptions import ContextCancelledError, SetupError
from ..models.events import Added, Deleted, Updated, WatchEvent
from ..utils.context import Context, cancellable_sleep

logger = logging.getLogger(__name__)

T = TypeVar("T")

HTTP_GONE = 410


class ResourceExpired(Exception):
    """The resource version of the watch is too old (410 Gone)"""


class WatchError(Exception):
    """The server sent an ERROR event"""


def close_response(resp: Any) -> None:
    """Stop a streaming response, unblocking a reader in another thread."""
    resp.shutdown()
    resp.close()


class ResourceWatcher(Generic[T]):
    """Watches one kind of resource in a namespace.

    Args:
        list_func: list function of the API, e.g. ``BatchV1Api.list_namespaced_job``
        return_type: model name of an item, e.g. ``"V1Job"``
        namespace: namespace to watch
        to_snapshot: converts an API object into the snapshot passed to handler
        handler: called with each WatchEvent, in the order of the store
        ctx: parent context, the watcher stops when it is cancelled
        field_selector / label_selector: filter of the objects
    """

    def __init__(
        self,
        list_func: Callable[..., Any],
        return_type: str,
        namespace: str,
        to_snapshot: Callable[[Any], T],
        handler: Callable[[WatchEvent], None],
        ctx: Optional[Context] = None,
        field_selector: Optional[str] = None,
        label_selector: Optional[str] = None,
        name: str = "",
        timeout_seconds: Optional[int] = None,
        retry_interval: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._list_func = list_func
        self._return_type = return_type
        self._namespace = namespace
        self._to_snapshot = to_snapshot
        self._handler = handler
        self._ctx = ctx.child() if ctx is not None else Context()
        self._selectors = {}
        if field_selector:
            self._selectors["field_selector"] = field_selector
        if label_selector:
            self._selectors["label_selector"] = label_selector
        self._name = name or return_type
        self._timeout_seconds = timeout_seconds or settings.WATCH_TIMEOUT_SECONDS
        self._retry_interval = settings.WATCH_RETRY_INTERVAL if retry_interval is None else retry_interval
        self._logger = logger or logging.getLogger(__name__)
        self._decoder = watch.Watch()
        self._cache: Dict[str, T] = {}
        self._resource_version: Optional[str] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "ResourceWatcher[T]":
        """List the objects and start watching in the background.

        Raises:
            SetupError: the initial list failed
        """
        try:
            initial = self._list_func(self._namespace, **self._selectors)
        except ApiException as e:
            raise SetupError(f"could not list {self._name}: {e.status} {e.reason}") from e
        self._thread = threading.Thread(
            target=self._run,
            args=(initial,),
            name=f"watch-{self._name}",
            daemon=True,
        )
        self._thread.start()
        return self

    def shutdown(self) -> None:
        """Stop the watch and wait for the background thread.

        It is idempotent and safe to call while an event is being delivered.
        """
        self._ctx.cancel("watcher shutdown")
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()

    def _run(self, initial: Any) -> None:
        for item in initial.items or []:
            snapshot = self._to_snapshot(item)
            self._cache[_name_of(item)] = snapshot
            self._dispatch(Added(obj=snapshot, initial=True))
        self._resource_version = initial.metadata.resource_version

        retrying = Retrying(
            retry=retry_if_exception(lambda e: not self._ctx.cancelled() and not isinstance(e, ContextCancelledError)),
            wait=wait_fixed(self._retry_interval),
            sleep=cancellable_sleep(self._ctx),
            before_sleep=lambda state: self._logger.warning(
                f"Watch of {self._name} was disconnected, retrying: {state.outcome.exception()}"
            ),
            reraise=True,
        )
        try:
            while not self._ctx.cancelled():
                retrying(self._watch_once)
        except Exception:
            # 취소 외의 오류는 재시도 조건상 여기까지 오지 않음
            if not self._ctx.cancelled():
                raise
        self._logger.debug(f"Stopped the watch of {self._name}")

    def _watch_once(self) -> None:
        try:
            if self._resource_version is None:
                self._relist()
            self._watch()
        except ResourceExpired:
            self._logger.debug(f"Watch of {self._name} expired, listing again")
            self._resource_version = None

    def _watch(self) -> None:
        """Watch from the last resource version until the stream ends"""
        try:
            resp = self._list_func(
                self._namespace,
                watch=True,
                resource_version=self._resource_version,
                allow_watch_bookmarks=True,
                timeout_seconds=self._timeout_seconds,
                _preload_content=False,
                **self._selectors,
            )
        except ApiException as e:
            if e.status == HTTP_GONE:
                raise ResourceExpired(e.reason) from e
            raise
        unregister = self._ctx.on_cancel(lambda: close_response(resp))
        try:
            for line in iter_resp_lines(resp):
                if self._ctx.cancelled():
                    break
                event = self._decoder.unmarshal_event(line, self._return_type)
                if event is None:
                    continue
                event_type = event["type"]
                if event_type == "ERROR":
                    status = event["raw_object"] or {}
                    if status.get("code") == HTTP_GONE:
                        raise ResourceExpired(status.get("message"))
                    raise WatchError(status.get("message") or str(status))
                if event_type != "BOOKMARK":
                    self._apply(event_type, event["object"])
                # 이벤트를 전달한 뒤에 갱신 (재연결 시 이 버전부터)
                metadata = event["raw_object"].get("metadata") or {}
                self._resource_version = metadata.get("resourceVersion", self._resource_version)
        finally:
            unregister()
            resp.close()
            resp.release_conn()

    def _apply(self, event_type: str, obj: Any) -> None:
        name = _name_of(obj)
        snapshot = self._to_snapshot(obj)
        if event_type == "DELETED":
            self._cache.pop(name, None)
            self._dispatch(Deleted(obj=snapshot))
            return
        old = self._cache.get(name)
        self._cache[name] = snapshot
        if old is None:
            self._dispatch(Added(obj=snapshot))
        else:
            self._dispatch(Updated(old=old, new=snapshot))

    def _relist(self) -> None:
        """List again and deliver the difference from the cache"""
        listed = self._list_func(self._namespace, **self._selectors)
        seen = set()
        for item in listed.items or []:
            name = _name_of(item)
            seen.add(name)
            snapshot = self._to_snapshot(item)
            old = self._cache.get(name)
            self._cache[name] = snapshot
            if old is None:
                self._dispatch(Added(obj=snapshot))
            elif old != snapshot:
                self._dispatch(Updated(old=old, new=snapshot))
        for name in [n for n in self._cache if n not in seen]:
            self._dispatch(Deleted(obj=self._cache.pop(name)))
        self._resource_version = listed.metadata.resource_version

    def _dispatch(self, event: WatchEvent) -> None:
        if self._ctx.cancelled():
            return
        try:
            self._handler(event)
        except Exception:
            self._logger.exception(f"Internal error: event handler of {self._name} failed")


def _name_of(obj: Any) -> str:
    return obj.metadata.name
