"""Pydantic models for API Tester requests, outcomes and listener responses."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, model_validator


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @property
    def accepts_body(self) -> bool:
        return self in (HttpMethod.POST, HttpMethod.PUT, HttpMethod.PATCH)


class RequestDescriptor(BaseModel):
    """One outbound call, relative to the configured base URL."""

    model_config = ConfigDict(frozen=True)

    method: HttpMethod
    path: str
    body: Any = None
    query_params: dict[str, str] | None = None

    @model_validator(mode="after")
    def _check_payload(self) -> RequestDescriptor:
        if self.body is not None and not self.method.accepts_body:
            raise ValueError(f"{self.method.value} requests cannot carry a body")
        if self.query_params and self.method is not HttpMethod.GET:
            raise ValueError("query parameters are only supported for GET")
        return self


class FailureKind(str, Enum):
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    HTTP_ERROR = "http_error"
    DECODE_ERROR = "decode_error"


class Success(BaseModel):
    """A 2xx response with its decoded JSON body."""

    model_config = ConfigDict(frozen=True)

    ok: Literal[True] = True
    status_code: int
    body: Any = None


class Failure(BaseModel):
    """A request that did not produce a usable response."""

    model_config = ConfigDict(frozen=True)

    ok: Literal[False] = False
    kind: FailureKind
    status_code: int | None = None
    message: str


RequestOutcome = Union[Success, Failure]


class HealthResponse(BaseModel):
    """Health check response from the local listener."""

    status: str = "ok"
    timestamp: str
    uptime_seconds: float


class WebhookAck(BaseModel):
    """Acknowledgement returned for every webhook delivery."""

    received: bool = True
