from __future__ import annotations

import random
from collections.abc import Mapping
from dataclasses import dataclass

"""
Delay computation for rate-limited retries.

A 429 response is retried after the delay the API asks for (its rate-limit
reset header) when present, otherwise after an exponential backoff with jitter.
Both are capped at max_delay_seconds.
"""

# Checked in order; values are seconds until the limit resets.
RATE_LIMIT_RESET_HEADERS = ("ratelimit-reset", "retry-after")


@dataclass
class Backoff:
    """
    Exponential backoff calculator with jitter.

    Attributes:
        base_delay_seconds (float): Initial delay for first retry
        max_delay_seconds (float): Maximum delay (caps exponential growth)
        jitter (float): Random variation factor (0.0-1.0)
    """

    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    jitter: float = 0.1

    def compute_delay(self, attempt_index: int) -> float:
        """
        Calculate backoff delay for the given attempt.

        Delay = min(max_delay, base_delay * 2^attempt_index) + jitter

        Args:
            attempt_index (int): Zero-based attempt number

        Returns:
            float: Delay in seconds (always >= 0)
        """
        delay = min(self.max_delay_seconds, self.base_delay_seconds * (2**attempt_index))
        noise = delay * self.jitter * (2 * random.random() - 1)
        result: float = max(0.0, delay + noise)
        return result

    def delay_for(self, attempt_index: int, headers: Mapping[str, str] | None) -> float:
        """
        Delay before retrying a rate-limited request.

        Uses the response's reset hint when it parses, the exponential backoff
        otherwise.
        """
        reset = reset_seconds_from_headers(headers)
        if reset is not None:
            return min(self.max_delay_seconds, reset)
        return self.compute_delay(attempt_index)


def reset_seconds_from_headers(headers: Mapping[str, str] | None) -> float | None:
    """
    Read the seconds-until-reset hint from response headers.

    Returns:
        float | None: Non-negative seconds, or None if no usable header is present
    """
    if not headers:
        return None
    lowered = {k.lower(): v for k, v in headers.items()}
    for name in RATE_LIMIT_RESET_HEADERS:
        raw = lowered.get(name)
        if raw is None:
            continue
        try:
            return max(0.0, float(raw))
        except ValueError:
            continue
    return None
