"""Core engine: request execution, pagination and batching."""

from pdcall.core.batch import BatchScheduler, StatusTracker
from pdcall.core.executor import RequestExecutor
from pdcall.core.models import ClientConfig, RateLimitConfig, RequestSpec, RetryConfig
from pdcall.core.paginator import Paginator
from pdcall.core.rate_limit import TokenBucket
from pdcall.core.result import BatchResult, Result
from pdcall.core.retry import Backoff

__all__ = [
    # Engine components
    "RequestExecutor",
    "Paginator",
    "BatchScheduler",
    "StatusTracker",
    # Request and configuration models
    "RequestSpec",
    "ClientConfig",
    "RetryConfig",
    "RateLimitConfig",
    # Result models
    "Result",
    "BatchResult",
    # Utilities
    "TokenBucket",
    "Backoff",
]
