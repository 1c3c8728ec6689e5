from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

from pdcall.errors import InvalidRequestSpecError

ParamValue = Union[str, int, float, bool, Sequence[Union[str, int]]]

ALLOWED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})

DEFAULT_BASE_URL = "https://api.pagerduty.com"


@dataclass(frozen=True)
class RequestSpec:
    """
    Immutable description of one HTTP call against the API.

    Attributes:
        endpoint (str): Path relative to the API base URL, e.g. "teams/PABC123"
        method (str): HTTP method, GET by default
        params (Mapping[str, ParamValue]): Query parameters; sequence values are
            sent as repeated keys (use the "key[]" name the API expects)
        body (Any | None): JSON-serializable request body, not allowed on GET
        headers (Mapping[str, str]): Extra headers, override the shared ones

    Raises:
        InvalidRequestSpecError: On an empty endpoint, an unknown method, a GET body
            or a body that cannot be serialized to JSON
    """

    endpoint: str
    method: str = "GET"
    params: Mapping[str, ParamValue] = field(default_factory=dict)
    body: Any | None = None
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.endpoint, str) or not self.endpoint.strip("/ "):
            raise InvalidRequestSpecError("RequestSpec requires a non-empty endpoint")
        method = str(self.method).upper()
        if method not in ALLOWED_METHODS:
            raise InvalidRequestSpecError(f"Unsupported HTTP method: {self.method}")
        if method == "GET" and self.body is not None:
            raise InvalidRequestSpecError("GET requests must not carry a body")
        self.encoded_body()

        object.__setattr__(self, "endpoint", self.endpoint.strip().lstrip("/"))
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    def encoded_body(self) -> str | None:
        """
        The body as strict JSON text, or None when there is no body.

        Raises:
            InvalidRequestSpecError: If the body cannot be encoded, e.g. it holds a set
        """
        if self.body is None:
            return None
        try:
            return json.dumps(self.body, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise InvalidRequestSpecError(f"Body is not JSON-serializable: {e}") from e

    def query_items(self) -> list[tuple[str, str]]:
        """Flatten params into (key, value) pairs, expanding sequence values."""
        items: list[tuple[str, str]] = []
        for key, value in self.params.items():
            if isinstance(value, (list, tuple)):
                items.extend((key, _to_query_value(v)) for v in value)
            else:
                items.append((key, _to_query_value(value)))
        return items

    def with_params(self, **extra: ParamValue) -> RequestSpec:
        """Return a copy with `extra` merged over the existing params."""
        return RequestSpec(
            endpoint=self.endpoint,
            method=self.method,
            params={**self.params, **extra},
            body=self.body,
            headers=self.headers,
        )


def _to_query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass
class RetryConfig:
    """
    Retry behavior for rate-limited (HTTP 429) responses.

    Attributes:
        max_attempts (int): Total attempts per request, including the first
        base_delay_seconds (float): Initial backoff when no reset header is sent
        max_delay_seconds (float): Cap on any single wait, header-driven or not
        jitter (float): Random variation factor (0.0-1.0) on backoff delays
    """

    max_attempts: int = 5
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    jitter: float = 0.1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


@dataclass
class RateLimitConfig:
    """
    Optional client-side throttle.

    Attributes:
        max_requests_per_minute (float): Requests allowed per minute across the client
    """

    max_requests_per_minute: float


@dataclass
class ClientConfig:
    """
    Connection settings for the engine.

    Attributes:
        base_url (str): API root URL
        timeout_seconds (float): Total timeout of each network call
        page_size (int): Items requested per page when paginating
        concurrency (int): Default ceiling of in-flight requests in a batch
        user_agent (str): User-Agent header value
    """

    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = 30.0
    page_size: int = 25
    concurrency: int = 10
    user_agent: str = "pdcall/0.1.0"

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError("page_size must be positive")
        if self.concurrency < 1:
            raise ValueError("concurrency must be positive")
