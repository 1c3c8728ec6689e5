from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import aiohttp
from aiohttp import ClientSession, ClientTimeout
from loguru import logger

from pdcall.auth import Authenticator
from pdcall.core.models import ClientConfig, RateLimitConfig, RequestSpec, RetryConfig
from pdcall.core.rate_limit import TokenBucket
from pdcall.core.result import Result
from pdcall.core.retry import Backoff
from pdcall.errors import (
    APIError,
    InvalidRequestSpecError,
    MalformedResponseError,
    RateLimitError,
    TransportError,
)

"""
Single-request execution.

Every network or API condition becomes a Result; only caller bugs (a malformed
RequestSpec, a body that cannot be serialized) and a missing credential raise.
"""

HTTP_TOO_MANY_REQUESTS = 429

SleepFunc = Callable[[float], Awaitable[None]]


class RequestExecutor:
    """
    Issues authenticated HTTP requests and wraps each outcome in a Result.

    Rate-limited (429) responses are retried after the delay given by the
    response's reset header, or an exponential backoff, up to
    RetryConfig.max_attempts total attempts.

    Attributes:
        session (ClientSession): Shared aiohttp session (connection pool)
        authenticator (Authenticator): Source of the Authorization header
        config (ClientConfig): Base URL, timeout and User-Agent
        retry (RetryConfig): Rate-limit retry bound and backoff parameters

    Raises:
        NoCredentialError: At construction, if the authenticator has no credential
    """

    def __init__(
        self,
        session: ClientSession,
        authenticator: Authenticator,
        config: ClientConfig | None = None,
        retry: RetryConfig | None = None,
        rate_limit: RateLimitConfig | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.session = session
        self.authenticator = authenticator
        self.config = config or ClientConfig()
        self.retry = retry or RetryConfig()
        self.backoff = Backoff(
            base_delay_seconds=self.retry.base_delay_seconds,
            max_delay_seconds=self.retry.max_delay_seconds,
            jitter=self.retry.jitter,
        )
        self.bucket: TokenBucket | None = None
        if rate_limit is not None:
            self.bucket = TokenBucket.full(rate_limit.max_requests_per_minute)
        self._sleep = sleep
        self._timeout = ClientTimeout(total=self.config.timeout_seconds)
        # Resolved once; the credential is immutable for the executor's lifetime.
        self._shared_headers = {
            **authenticator.headers(),
            "User-Agent": self.config.user_agent,
        }

    def url_for(self, endpoint: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{endpoint}"

    def headers_for(self, spec: RequestSpec) -> dict[str, str]:
        """Shared headers overlaid with the RequestSpec's own headers."""
        headers = dict(self._shared_headers)
        if spec.body is not None:
            headers["Content-Type"] = "application/json"
        headers.update(spec.headers)
        return headers

    async def execute(self, spec: RequestSpec) -> Result:
        """
        Execute one request.

        Args:
            spec (RequestSpec): The request to issue

        Returns:
            Result: Success with the parsed JSON payload, or Failure with a
                TransportError, RateLimitError, APIError or MalformedResponseError

        Raises:
            InvalidRequestSpecError: If `spec` is not a RequestSpec or its body cannot
                be encoded as JSON
        """
        if not isinstance(spec, RequestSpec):
            raise InvalidRequestSpecError(
                f"Expected a RequestSpec, got {type(spec).__name__}"
            )

        max_attempts = self.retry.max_attempts
        rate_limit_message: str | None = None

        for attempt_index in range(max_attempts):
            attempts = attempt_index + 1
            if self.bucket is not None:
                await self.bucket.take()

            logger.debug(f"{spec.method} {spec.endpoint} (attempt {attempts}/{max_attempts})")
            try:
                status, reason, headers, body = await self._send(spec)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.warning(
                    f"{spec.method} {spec.endpoint}: transport error: {type(e).__name__}: {e}"
                )
                return Result.failure(TransportError(e), attempts=attempts, endpoint=spec.endpoint)

            if status != HTTP_TOO_MANY_REQUESTS:
                return self._to_result(status, reason, body, attempts, spec.endpoint)

            rate_limit_message = APIError.from_response(status, reason, body).api_message
            if attempts < max_attempts:
                delay = self.backoff.delay_for(attempt_index, headers)
                logger.debug(
                    f"{spec.method} {spec.endpoint}: rate limited, retrying in {delay:.2f}s "
                    f"(attempt {attempts + 1}/{max_attempts})"
                )
                await self._sleep(delay)

        logger.warning(
            f"{spec.method} {spec.endpoint}: still rate limited after {max_attempts} attempts"
        )
        return Result.failure(
            RateLimitError(max_attempts, rate_limit_message),
            attempts=max_attempts,
            endpoint=spec.endpoint,
        )

    async def _send(self, spec: RequestSpec) -> tuple[int, str, Mapping[str, str], str]:
        kwargs: dict[str, Any] = {
            "headers": self.headers_for(spec),
            "params": spec.query_items(),
            "timeout": self._timeout,
        }
        data = spec.encoded_body()
        if data is not None:
            kwargs["data"] = data

        url = self.url_for(spec.endpoint)
        async with self.session.request(spec.method, url, **kwargs) as response:
            raw = await response.read()
            return (
                response.status,
                response.reason or "",
                response.headers,
                raw.decode("utf-8", errors="replace"),
            )

    @staticmethod
    def _to_result(status: int, reason: str, body: str, attempts: int, endpoint: str) -> Result:
        if 200 <= status < 300:
            if not body.strip():
                # 204 No Content and friends
                return Result.success(status, None, attempts=attempts, endpoint=endpoint)
            try:
                payload = json.loads(body)
            except ValueError:
                logger.warning(f"{endpoint}: malformed JSON in {status} response")
                return Result.failure(
                    MalformedResponseError(status, body), attempts=attempts, endpoint=endpoint
                )
            return Result.success(status, payload, attempts=attempts, endpoint=endpoint)

        error = APIError.from_response(status, reason, body)
        logger.debug(f"{endpoint}: API error: {error}")
        return Result.failure(error, attempts=attempts, endpoint=endpoint)
