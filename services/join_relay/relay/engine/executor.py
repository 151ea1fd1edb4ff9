"""Single upstream attempt under a hard deadline.

The deadline covers name resolution, connect, request, redirects and the full
body read. The exchange runs on a worker thread; when `timeout_seconds` elapses
first, the live socket is shut down and the attempt reports a timeout no matter
how the worker ends. Each blocking socket step also gets the time still left
as its timeout, so a stalled upstream fails on the worker too. The connection
is closed on every exit path.
"""

from __future__ import annotations

import http.client
import json
import logging
import socket
import threading
import time
from contextlib import closing, suppress
from typing import Any, Callable, Mapping
from urllib.parse import urljoin, urlsplit

from .errors import AttemptTimeout, TooManyRedirects, UnsupportedTarget
from .types import METHOD_GET, METHOD_POST, AttemptDescriptor, AttemptOutcome

READ_CHUNK_BYTES = 16 * 1024
MAX_REDIRECTS = 5
REDIRECT_STATUSES = {301, 302, 303, 307, 308}

logger = logging.getLogger(__name__)


class AttemptDeadline:
    """Monotonic time budget shared by every blocking step of one attempt."""

    def __init__(self, seconds: float, *, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.expires_at = clock() + max(float(seconds), 0.0)

    def remaining(self) -> float:
        left = self.expires_at - self._clock()
        if left <= 0:
            raise AttemptTimeout("deadline_exceeded")
        return left


def _abort_connection(conn) -> None:
    sock = getattr(conn, "sock", None)
    if sock is not None:
        with suppress(OSError):
            sock.shutdown(socket.SHUT_RDWR)
    conn.close()


class AttemptWatch:
    """Settles one attempt exactly once: finished by its worker, or cut off at the deadline."""

    def __init__(self):
        self._lock = threading.Lock()
        self._conn = None
        self._finished = False
        self.expired = False
        self.result = None
        self.error: BaseException | None = None

    def attach(self, conn) -> None:
        with self._lock:
            self._conn = conn
            expired = self.expired
        if expired:
            _abort_connection(conn)
            raise AttemptTimeout("deadline_exceeded")

    def finish(self, result=None, error: BaseException | None = None) -> None:
        with self._lock:
            if self.expired:
                return
            self._finished = True
            self.result = result
            self.error = error

    def expire(self) -> bool:
        """Cut the attempt off unless it already finished. True when it was cut off."""
        with self._lock:
            if self._finished:
                return False
            self.expired = True
            conn = self._conn
        if conn is not None:
            _abort_connection(conn)
        return True


def open_connection(target: str, *, timeout: float) -> http.client.HTTPConnection:
    parts = urlsplit(target)
    scheme = (parts.scheme or "").lower()
    if scheme not in {"http", "https"} or not parts.hostname:
        raise UnsupportedTarget("Invalid upstream URL")
    connection_cls = http.client.HTTPSConnection if scheme == "https" else http.client.HTTPConnection
    return connection_cls(parts.hostname, parts.port, timeout=timeout)


def request_path(target: str) -> str:
    parts = urlsplit(target)
    path = parts.path or "/"
    return f"{path}?{parts.query}" if parts.query else path


def parse_body(raw_text: str) -> Any:
    if not raw_text:
        return {}
    try:
        return json.loads(raw_text)
    except ValueError:
        return raw_text


def is_success_status(status: int) -> bool:
    return 200 <= int(status) < 300


def _bound_socket(conn, deadline: AttemptDeadline) -> None:
    sock = getattr(conn, "sock", None)
    if sock is not None:
        sock.settimeout(deadline.remaining())


def _response_charset(response) -> str:
    headers = getattr(response, "headers", None) or getattr(response, "msg", None)
    charset = headers.get_content_charset() if headers is not None else None
    return charset or "utf-8"


def read_body_text(response, *, conn, deadline: AttemptDeadline, method: str = "") -> str:
    """Read the full body; a broken read gives an empty body unless the deadline ran out."""
    chunks: list[bytes] = []
    try:
        while True:
            _bound_socket(conn, deadline)
            chunk = response.read(READ_CHUNK_BYTES)
            if not chunk:
                break
            chunks.append(chunk)
    except TimeoutError:
        raise
    except (OSError, http.client.HTTPException) as exc:
        logger.warning("join_attempt_body_unreadable method=%s error=%s", method, exc.__class__.__name__)
        return ""
    charset = _response_charset(response)
    try:
        return b"".join(chunks).decode(charset, errors="replace")
    except LookupError:
        return b"".join(chunks).decode("utf-8", errors="replace")


def _exchange(
    descriptor: AttemptDescriptor,
    *,
    headers: Mapping[str, str],
    deadline: AttemptDeadline,
    watch: AttemptWatch,
    connection_factory,
    max_redirects: int,
) -> tuple[int, str]:
    method = descriptor.method
    target = descriptor.target
    body = None
    request_headers: dict[str, str] = {}
    if method == METHOD_POST:
        body = json.dumps(dict(descriptor.payload or {})).encode("utf-8")
        request_headers = dict(headers or {})

    for _hop in range(max_redirects + 1):
        conn = connection_factory(target, timeout=deadline.remaining())
        watch.attach(conn)
        with closing(conn):
            conn.request(method, request_path(target), body=body, headers=request_headers)
            _bound_socket(conn, deadline)
            response = conn.getresponse()
            status = int(response.status)
            location = response.getheader("Location") if status in REDIRECT_STATUSES else None
            if not location:
                return status, read_body_text(response, conn=conn, deadline=deadline, method=method)
        target = urljoin(target, location)
        if status == 303 or (status in {301, 302} and method == METHOD_POST):
            method, body, request_headers = METHOD_GET, None, {}
    raise TooManyRedirects(f"more than {max_redirects} redirects")


def execute(
    descriptor: AttemptDescriptor,
    timeout_seconds: float,
    *,
    headers: Mapping[str, str] | None = None,
    connection_factory=open_connection,
    clock: Callable[[], float] = time.monotonic,
    max_redirects: int = MAX_REDIRECTS,
) -> AttemptOutcome:
    """Run one attempt; never raises for network, timeout or protocol failures."""
    deadline = AttemptDeadline(timeout_seconds, clock=clock)
    watch = AttemptWatch()

    def _run():
        try:
            watch.finish(
                result=_exchange(
                    descriptor,
                    headers=headers or {},
                    deadline=deadline,
                    watch=watch,
                    connection_factory=connection_factory,
                    max_redirects=max_redirects,
                )
            )
        except Exception as exc:
            watch.finish(error=exc)

    worker = threading.Thread(target=_run, name="join-attempt", daemon=True)
    worker.start()
    worker.join(max(float(timeout_seconds), 0.0))
    if watch.expire():
        return AttemptOutcome.unreachable(descriptor.label, detail=AttemptTimeout.__name__)

    exc = watch.error
    if isinstance(exc, (OSError, http.client.HTTPException, ValueError, TooManyRedirects)):
        return AttemptOutcome.unreachable(descriptor.label, detail=exc.__class__.__name__)
    if exc is not None:
        raise exc

    status, raw_text = watch.result
    return AttemptOutcome(
        succeeded=is_success_status(status),
        descriptor_label=descriptor.label,
        http_status=status,
        body=parse_body(raw_text),
    )


__all__ = [
    "AttemptDeadline",
    "AttemptWatch",
    "MAX_REDIRECTS",
    "READ_CHUNK_BYTES",
    "execute",
    "is_success_status",
    "open_connection",
    "parse_body",
    "read_body_text",
    "request_path",
]
