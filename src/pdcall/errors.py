from __future__ import annotations

import json
from typing import Any

"""
Error taxonomy for the PagerDuty request engine.

Two families live here:
- RequestError subclasses describe remote or network conditions. They are never
  raised out of the engine; they are stored inside a Failure Result.
- Everything else (AuthError, InvalidRequestSpecError, ResultStateError) signals a
  configuration problem or a caller bug and is raised immediately.
"""

MAX_RAW_BODY_CHARS = 200


class PagerDutyError(Exception):
    """Base class for all pdcall errors."""


class AuthError(PagerDutyError):
    """The credential is missing or unusable. Fatal, never retried."""


class NoCredentialError(AuthError):
    """No credential is configured for the engine."""


class InvalidRequestSpecError(PagerDutyError, ValueError):
    """A RequestSpec was built with invalid fields (caller bug)."""


class ResultStateError(PagerDutyError, RuntimeError):
    """An accessor was used on the wrong Result state (caller bug)."""


class RequestError(PagerDutyError):
    """
    A condition that resolves to a Failure Result.

    Attributes:
        status (int | None): HTTP status code, or None if no response was received
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self) -> str:
        return self.message


class TransportError(RequestError):
    """No HTTP response was received (DNS, timeout, connection reset)."""

    def __init__(self, cause: BaseException) -> None:
        detail = str(cause) or type(cause).__name__
        super().__init__(f"Network error ({type(cause).__name__}): {detail}", status=None)
        self.cause = cause


class RateLimitError(RequestError):
    """HTTP 429 persisted for every allowed attempt."""

    def __init__(self, attempts: int, api_message: str | None = None) -> None:
        message = f"429 Too Many Requests: rate limited after {attempts} attempts"
        if api_message:
            message += f" ({api_message})"
        super().__init__(message, status=429)
        self.attempts = attempts


class MalformedResponseError(RequestError):
    """A success status arrived with a body that is not valid JSON."""

    def __init__(self, status: int, body: str) -> None:
        super().__init__(
            f"{status}: malformed response, expected JSON but got {_truncate(body)!r}",
            status=status,
        )
        self.body = body


class APIError(RequestError):
    """
    The API answered with a 4xx/5xx status.

    Attributes:
        status (int): HTTP status code
        reason (str): HTTP reason phrase
        api_message (str | None): error.message from the API's error body
        code (int | None): error.code from the API's error body
        errors (list[str]): error.errors from the API's error body
    """

    def __init__(
        self,
        status: int,
        reason: str,
        api_message: str | None = None,
        code: int | None = None,
        errors: list[str] | None = None,
        raw_body: str | None = None,
    ) -> None:
        self.reason = reason
        self.api_message = api_message
        self.code = code
        self.errors = errors or []
        self.raw_body = raw_body
        super().__init__(self._format(status), status=status)

    @classmethod
    def from_response(cls, status: int, reason: str, body: str) -> APIError:
        """
        Build an APIError from a raw response body.

        Understands the API's `{"error": {"message", "code", "errors"}}` envelope and
        falls back to the raw status line when the body is anything else.
        """
        payload = _try_json(body)
        error = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error, dict):
            raw_errors = error.get("errors") or []
            if not isinstance(raw_errors, list):
                raw_errors = [raw_errors]
            code = error.get("code")
            return cls(
                status=status,
                reason=reason,
                api_message=error.get("message"),
                code=code if isinstance(code, int) else None,
                errors=[str(e) for e in raw_errors],
            )
        if isinstance(error, str):
            return cls(status=status, reason=reason, api_message=error)
        return cls(status=status, reason=reason, raw_body=body or None)

    def _format(self, status: int) -> str:
        message = f"{status} {self.reason}".rstrip()
        if self.api_message:
            message += f": {self.api_message}"
            if self.code is not None:
                message += f" (code {self.code})"
        if self.errors:
            message += ": " + "; ".join(self.errors)
        if self.api_message is None and not self.errors and self.raw_body:
            message += f": {_truncate(self.raw_body)}"
        return message


def _truncate(text: str) -> str:
    text = text.strip()
    if len(text) <= MAX_RAW_BODY_CHARS:
        return text
    return text[:MAX_RAW_BODY_CHARS] + "..."


def _try_json(body: str) -> Any:
    try:
        return json.loads(body)
    except ValueError:
        return None
