"""
Container log tailing
컨테이너 로그를 follow 하며 스트림이 끊기면 마지막 타임스탬프 이후부터 다시 읽는다.
"""
import logging
import sys
from typing import Any, Callable, Optional, Protocol, TextIO, Tuple

from kubernetes import client
from kubernetes.client.rest import ApiException
from kubernetes.watch.watch import iter_resp_lines
from tenacity import Retrying, retry_if_exception, wait_fixed

from ..core.config import settings
from ..core.exceptions import ContextCancelledError
from ..models.logs import LogRecord
from ..utils.context import Context, cancellable_sleep
from ..utils.helpers import Timestamp, parse_rfc3339
from .watcher import close_response

logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404

# (namespace, pod, container, since_time) -> streaming response
LogStreamOpener = Callable[[str, str, str, Optional[str]], Any]


class ContainerLogger(Protocol):
    """Sink of the container logs. It is called by every log line."""

    def print_container_log(self, record: LogRecord) -> None:
        ...


class DefaultContainerLogger:
    """Writes ``|timestamp|namespace|pod|container| message`` lines"""

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream

    def print_container_log(self, record: LogRecord) -> None:
        stream = self._stream or sys.stdout
        stream.write(
            f"|{record.raw_timestamp}|{record.namespace}|{record.pod_name}|{record.container_name}| {record.message}\n"
        )
        stream.flush()


def parse_log_line(line: str) -> Tuple[str, Optional[Timestamp], str]:
    """Split a line of ``kubectl logs --timestamps`` into (raw timestamp, timestamp, message).

    If the line has no valid RFC3339 prefix, the whole line is the message
    and the timestamp is empty.
    """
    raw_timestamp, sep, message = line.partition(" ")
    if not sep:
        return "", None, line
    timestamp = parse_rfc3339(raw_timestamp)
    if timestamp is None:
        logger.debug(f"Invalid log timestamp: {raw_timestamp!r}")
        return "", None, line
    return raw_timestamp, timestamp, message


def open_log_stream(core_v1: client.CoreV1Api) -> LogStreamOpener:
    """Opener of the log stream with follow, timestamps and sinceTime.

    ``read_namespaced_pod_log`` has no sinceTime parameter, so the request is
    sent through the ApiClient directly.
    """

    def open_stream(namespace: str, pod_name: str, container_name: str, since_time: Optional[str]) -> Any:
        query_params = [
            ("container", container_name),
            ("follow", "true"),
            ("timestamps", "true"),
        ]
        if since_time:
            query_params.append(("sinceTime", since_time))
        return core_v1.api_client.call_api(
            "/api/v1/namespaces/{namespace}/pods/{name}/log",
            "GET",
            path_params={"namespace": namespace, "name": pod_name},
            query_params=query_params,
            header_params={"Accept": "*/*"},
            response_type="str",
            auth_settings=["BearerToken"],
            _return_http_data_only=True,
            _preload_content=False,
        )

    return open_stream


class TailCursor:
    """Timestamp of the last forwarded line of one container"""

    def __init__(self):
        self.raw: Optional[str] = None
        self.timestamp: Optional[Timestamp] = None

    def advance(self, raw: str, timestamp: Timestamp) -> None:
        self.raw = raw
        self.timestamp = timestamp

    def is_after(self, timestamp: Timestamp) -> bool:
        """True if the timestamp is strictly after the cursor"""
        return self.timestamp is None or timestamp > self.timestamp


class LogTailer:
    """Tails container logs into a ContainerLogger"""

    def __init__(
        self,
        open_stream: LogStreamOpener,
        container_logger: ContainerLogger,
        retry_interval: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._open_stream = open_stream
        self._container_logger = container_logger
        self._retry_interval = settings.LOG_RETRY_INTERVAL if retry_interval is None else retry_interval
        self._logger = logger or logging.getLogger(__name__)

    def tail(self, ctx: Context, namespace: str, pod_name: str, container_name: str) -> None:
        """Tail the container log until the following cases:

        - Reached to EOF
        - The Pod is not found (already removed from the Node)
        - The context is cancelled

        Any other error reopens the stream after the last forwarded line.
        """
        target = f"{namespace}/{pod_name}/{container_name}"
        self._logger.info(f"Tailing the container log of {target}")
        cursor = TailCursor()

        def should_retry(e: BaseException) -> bool:
            if ctx.cancelled() or isinstance(e, ContextCancelledError):
                return False
            return not (isinstance(e, ApiException) and e.status == HTTP_NOT_FOUND)

        retrying = Retrying(
            retry=retry_if_exception(should_retry),
            wait=wait_fixed(self._retry_interval),
            sleep=cancellable_sleep(ctx),
            before_sleep=lambda state: self._logger.info(
                f"Retrying to tail the container log of {target}: {state.outcome.exception()}"
            ),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    self._resume(ctx, namespace, pod_name, container_name, cursor)
        except Exception as e:
            if ctx.cancelled() or isinstance(e, ContextCancelledError):
                self._logger.info(f"Stopped tailing the container log of {target} before reached to EOF: {ctx.reason}")
                return
            if isinstance(e, ApiException) and e.status == HTTP_NOT_FOUND:
                self._logger.info(f"Pod {namespace}/{pod_name} was deleted before reached to EOF of the container log: {e.reason}")
                return
            raise
        if ctx.cancelled():
            self._logger.info(f"Stopped tailing the container log of {target}: {ctx.reason}")
        else:
            self._logger.debug(f"Reached to EOF of the container log of {target}")

    def _resume(self, ctx: Context, namespace: str, pod_name: str, container_name: str, cursor: TailCursor) -> None:
        resp = self._open_stream(namespace, pod_name, container_name, cursor.raw)
        unregister = ctx.on_cancel(lambda: close_response(resp))
        # 다시 연 스트림의 앞부분만 이미 보낸 줄을 건너뜀 (sinceTime은 경계를 포함)
        replaying = cursor.timestamp is not None
        try:
            for line in iter_resp_lines(resp):
                if ctx.cancelled():
                    return
                if not line.strip():
                    continue
                raw_timestamp, timestamp, message = parse_log_line(line)
                if replaying and timestamp is not None:
                    if not cursor.is_after(timestamp):
                        continue
                    replaying = False
                self._container_logger.print_container_log(LogRecord(
                    raw_timestamp=raw_timestamp,
                    namespace=namespace,
                    pod_name=pod_name,
                    container_name=container_name,
                    message=message.rstrip(),
                ))
                if timestamp is not None:
                    cursor.advance(raw_timestamp, timestamp)
        finally:
            unregister()
            resp.close()
            resp.release_conn()
