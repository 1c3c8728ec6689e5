"""
pdcall: Calmly call the PagerDuty REST API, many requests at a time.

An async request engine for the PagerDuty REST API with:
- Bearer (OAuth) and legacy API key authentication
- Automatic retry of rate-limited (429) requests
- Offset and cursor pagination with exact item limits
- Concurrent batches with a concurrency ceiling and per-request failure isolation
- Name and email lookups

Example:
    >>> from pdcall import Credential, PagerDutyClient, RequestSpec
    >>>
    >>> async with PagerDutyClient(Credential(token="u+...")) as pd:
    ...     r = await pd.ep_id_for_name("Ops")
    ...     if r.is_success and r.data:
    ...         batch = await pd.run_batch(
    ...             [RequestSpec(f"teams/{t}/escalation_policies/{r.data}", method="PUT")
    ...              for t in ["PTEAM01", "PTEAM02"]],
    ...             concurrency=5,
    ...         )
    ...         print(batch.failed_indices())
"""

from pdcall.auth import Authenticator, Credential, CredentialKind, CredentialSet, headers_for
from pdcall.client import PagerDutyClient
from pdcall.core.models import ClientConfig, RateLimitConfig, RequestSpec, RetryConfig
from pdcall.core.result import BatchResult, Result
from pdcall.errors import (
    APIError,
    AuthError,
    InvalidRequestSpecError,
    MalformedResponseError,
    NoCredentialError,
    PagerDutyError,
    RateLimitError,
    RequestError,
    ResultStateError,
    TransportError,
)
from pdcall.utils import invalid_pagerduty_ids, setup_logger

__version__ = "0.1.0"

__all__ = [
    # Client
    "PagerDutyClient",
    # Authentication
    "Credential",
    "CredentialKind",
    "CredentialSet",
    "Authenticator",
    "headers_for",
    # Request and configuration models
    "RequestSpec",
    "ClientConfig",
    "RetryConfig",
    "RateLimitConfig",
    # Result models
    "Result",
    "BatchResult",
    # Errors
    "PagerDutyError",
    "AuthError",
    "NoCredentialError",
    "RequestError",
    "TransportError",
    "RateLimitError",
    "APIError",
    "MalformedResponseError",
    "InvalidRequestSpecError",
    "ResultStateError",
    # Utilities
    "invalid_pagerduty_ids",
    "setup_logger",
    # Version
    "__version__",
]
