from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

SECONDS_TO_SLEEP_WHEN_EMPTY = 0.05


@dataclass
class TokenBucket:
    """
    Client-side request budget, refilled continuously per minute.

    Attributes:
        requests_per_minute (float): Bucket capacity and refill rate
        available (float): Tokens currently available
        last_refill (float): Monotonic timestamp of the last refill
    """

    requests_per_minute: float
    available: float
    last_refill: float

    @classmethod
    def full(cls, requests_per_minute: float) -> TokenBucket:
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive")
        return cls(requests_per_minute, requests_per_minute, time.monotonic())

    def refill(self) -> None:
        now = time.monotonic()
        earned = self.requests_per_minute * (now - self.last_refill) / 60.0
        self.available = min(self.requests_per_minute, self.available + earned)
        self.last_refill = now

    def try_take(self, amount: float = 1.0) -> bool:
        self.refill()
        if self.available < amount:
            return False
        self.available -= amount
        return True

    async def take(self, amount: float = 1.0) -> None:
        # try_take never awaits, so two waiters cannot spend the same token.
        while not self.try_take(amount):
            await asyncio.sleep(SECONDS_TO_SLEEP_WHEN_EMPTY)
