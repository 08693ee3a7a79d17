"""HTTP client for the API under test.

Every call goes through the same pipeline: ``build_request`` turns a
descriptor plus the shared ``ClientConfig`` into a fully specified
``WireRequest``, a transport sends it, and ``interpret_response`` maps the
result to a ``Success`` or a ``Failure``. Failed calls never raise.

The default transport uses only stdlib (urllib.request).
"""

from __future__ import annotations

import http.client
import json
import logging
import socket
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import urlencode, urlsplit

from api_tester.config import DEFAULT_TIMEOUT_MS, ClientConfig
from api_tester.models import (
    Failure,
    FailureKind,
    HttpMethod,
    RequestDescriptor,
    RequestOutcome,
    Success,
)

logger = logging.getLogger(__name__)

MAX_SNIPPET_LEN = 200
MAX_ERROR_BODY_LEN = 2000
_READ_CHUNK = 64 * 1024

_opener = urllib.request.build_opener()


@dataclass(frozen=True)
class WireRequest:
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None
    timeout: float = DEFAULT_TIMEOUT_MS / 1000


@dataclass(frozen=True)
class WireResponse:
    status: int
    body: bytes = b""
    reason: str = ""


class TransportError(Exception):
    """The request could not be delivered or no response was read."""


class TransportTimeout(TransportError):
    """No response arrived within the request timeout."""


Transport = Callable[[WireRequest], WireResponse]


def _response_socket(resp: Any) -> socket.socket | None:
    raw = getattr(getattr(resp, "fp", None), "raw", None)
    return getattr(raw, "_sock", None)


def _read_body(resp: Any, deadline: float) -> bytes:
    """Read a response body in chunks, giving up at the deadline."""
    sock = _response_socket(resp)
    chunks: list[bytes] = []
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError("request timed out")
        if sock is not None:
            sock.settimeout(remaining)
        chunk = resp.read1(_READ_CHUNK)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def urllib_transport(wire: WireRequest) -> WireResponse:
    """Send a WireRequest with urllib. Non-2xx statuses are returned, not raised.

    ``wire.timeout`` bounds the whole call, body included.
    """
    deadline = time.monotonic() + wire.timeout
    try:
        req = urllib.request.Request(
            wire.url, data=wire.body, headers=wire.headers, method=wire.method,
        )
        with _opener.open(req, timeout=wire.timeout) as resp:
            return WireResponse(
                status=resp.status,
                body=_read_body(resp, deadline),
                reason=resp.reason or "",
            )
    except urllib.error.HTTPError as e:
        try:
            body = _read_body(e.fp, deadline) if e.fp is not None else b""
        except TimeoutError as te:
            raise TransportTimeout(str(te)) from te
        except (OSError, http.client.HTTPException):
            body = b""
        return WireResponse(status=e.code, body=body, reason=str(e.reason))
    except urllib.error.URLError as e:
        if isinstance(e.reason, TimeoutError):
            raise TransportTimeout(str(e.reason)) from e
        raise TransportError(str(e.reason)) from e
    except TimeoutError as e:
        raise TransportTimeout(str(e)) from e
    except (OSError, ValueError, http.client.HTTPException) as e:
        raise TransportError(str(e) or type(e).__name__) from e


# -- Request building ---------------------------------------------------------


def is_absolute_url(path: str) -> bool:
    parts = urlsplit(path)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def resolve_url(base_url: str, path: str) -> str:
    """Join base URL and path with exactly one slash; absolute paths win."""
    if is_absolute_url(path):
        return path
    if not base_url:
        return path
    if not path:
        return base_url
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def _append_query(url: str, params: dict[str, str] | None) -> str:
    if not params:
        return url
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}{urlencode(params)}"


def _encode_body(body: Any) -> bytes | None:
    if body is None:
        return None
    return json.dumps(body).encode()


def build_request(descriptor: RequestDescriptor, config: ClientConfig) -> WireRequest:
    """Build the wire request for a descriptor: base URL, auth and JSON headers."""
    url = resolve_url(config.base_url, descriptor.path)
    url = _append_query(url, descriptor.query_params)

    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    if config.auth_token:
        headers["Authorization"] = f"Bearer {config.auth_token}"

    return WireRequest(
        method=descriptor.method.value,
        url=url,
        headers=headers,
        body=_encode_body(descriptor.body),
        timeout=config.timeout_ms / 1000,
    )


# -- Response handling --------------------------------------------------------


def _error_message(resp: WireResponse) -> str:
    text = resp.body.decode(errors="replace").strip()
    if text:
        return text[:MAX_ERROR_BODY_LEN]
    if resp.reason:
        return f"HTTP {resp.status} {resp.reason}"
    return f"HTTP {resp.status}"


def interpret_response(resp: WireResponse) -> RequestOutcome:
    """Map a raw response to Success or Failure."""
    if not 200 <= resp.status < 300:
        return Failure(
            kind=FailureKind.HTTP_ERROR,
            status_code=resp.status,
            message=_error_message(resp),
        )

    if not resp.body:
        return Success(status_code=resp.status, body=None)
    text = resp.body.decode(errors="replace")
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError:
        return Failure(
            kind=FailureKind.DECODE_ERROR,
            status_code=resp.status,
            message=text[:MAX_SNIPPET_LEN],
        )
    return Success(status_code=resp.status, body=decoded)


def send(wire: WireRequest, transport: Transport | None = None) -> RequestOutcome:
    """Run a wire request through the transport and interpret the result."""
    transport = transport or urllib_transport
    try:
        resp = transport(wire)
    except TransportTimeout:
        return Failure(kind=FailureKind.TIMEOUT, message="request timed out")
    except TransportError as e:
        return Failure(kind=FailureKind.NETWORK_ERROR, message=str(e))
    return interpret_response(resp)


def _log_failure(wire: WireRequest, outcome: Failure) -> None:
    logger.error(
        "API error: %s %s -> %s (status=%s): %s",
        wire.method,
        wire.url,
        outcome.kind.value,
        outcome.status_code,
        outcome.message,
    )


# -- Entry points -------------------------------------------------------------


def execute(
    descriptor: RequestDescriptor,
    config: ClientConfig,
    transport: Transport | None = None,
) -> RequestOutcome:
    """Execute a descriptor against the configured API.

    Failures are logged here and returned to the caller; callers should
    display them but not log them again.
    """
    if not config.base_url and not is_absolute_url(descriptor.path):
        outcome = Failure(
            kind=FailureKind.NETWORK_ERROR,
            message=(
                f"no base URL configured to resolve {descriptor.path!r}; "
                "set API_BASE_URL or use an absolute URL"
            ),
        )
        logger.error(
            "API error: %s %s -> %s: %s",
            descriptor.method.value,
            descriptor.path,
            outcome.kind.value,
            outcome.message,
        )
        return outcome

    wire = build_request(descriptor, config)
    outcome = send(wire, transport)
    if isinstance(outcome, Failure):
        _log_failure(wire, outcome)
    return outcome


def execute_raw(
    url: str,
    *,
    method: HttpMethod | str = HttpMethod.GET,
    body: Any = None,
    params: dict[str, str] | None = None,
    headers: dict[str, str] | None = None,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    transport: Transport | None = None,
) -> RequestOutcome:
    """One-off request to an absolute URL, without base URL or auth injection."""
    method = HttpMethod(method.upper())
    wire_headers: dict[str, str] = {}
    if body is not None:
        wire_headers["Content-Type"] = "application/json"
    if headers:
        wire_headers.update(headers)

    wire = WireRequest(
        method=method.value,
        url=_append_query(url, params),
        headers=wire_headers,
        body=_encode_body(body),
        timeout=timeout_ms / 1000,
    )
    return send(wire, transport)


class RequestClient:
    """Binds a ClientConfig and transport; holds no per-call state."""

    def __init__(
        self,
        config: ClientConfig,
        transport: Transport | None = None,
    ) -> None:
        self.config = config
        self.transport = transport or urllib_transport

    def execute(self, descriptor: RequestDescriptor) -> RequestOutcome:
        return execute(descriptor, self.config, self.transport)

    def execute_raw(self, url: str, **options: Any) -> RequestOutcome:
        options.setdefault("transport", self.transport)
        return execute_raw(url, **options)

    def get(
        self, path: str, params: dict[str, str] | None = None,
    ) -> RequestOutcome:
        return self.execute(
            RequestDescriptor(method=HttpMethod.GET, path=path, query_params=params)
        )

    def post(self, path: str, body: Any = None) -> RequestOutcome:
        return self.execute(
            RequestDescriptor(method=HttpMethod.POST, path=path, body=body)
        )

    def put(self, path: str, body: Any = None) -> RequestOutcome:
        return self.execute(
            RequestDescriptor(method=HttpMethod.PUT, path=path, body=body)
        )

    def patch(self, path: str, body: Any = None) -> RequestOutcome:
        return self.execute(
            RequestDescriptor(method=HttpMethod.PATCH, path=path, body=body)
        )

    def delete(self, path: str) -> RequestOutcome:
        return self.execute(RequestDescriptor(method=HttpMethod.DELETE, path=path))
