from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from loguru import logger
from tqdm import tqdm

from pdcall.core.executor import RequestExecutor
from pdcall.core.models import RequestSpec
from pdcall.core.result import BatchResult, Result
from pdcall.errors import InvalidRequestSpecError

"""
Concurrent execution of many independent requests.

A fixed pool of worker tasks pulls (index, spec) pairs from a FIFO queue, so at
most `concurrency` requests are in flight and specs are admitted in input order.
Each outcome is stored at its input index, so a failure at one index never
affects another and the BatchResult is aligned with the input no matter which
request finishes first.
"""


@dataclass
class StatusTracker:
    """
    Counters shared by the workers of one batch.

    Attributes:
        num_tasks_started (int): Specs handed to the executor
        num_tasks_in_progress (int): Specs currently in flight
        max_tasks_in_progress (int): Highest in-flight count observed
        num_tasks_succeeded (int): Specs that ended in a Success
        num_tasks_failed (int): Specs that ended in a Failure
        num_rate_limit_retries (int): 429 retries made across the batch
    """

    num_tasks_started: int = 0
    num_tasks_in_progress: int = 0
    max_tasks_in_progress: int = 0
    num_tasks_succeeded: int = 0
    num_tasks_failed: int = 0
    num_rate_limit_retries: int = 0

    def start(self) -> None:
        # Called between awaits, so updates from several workers cannot interleave.
        self.num_tasks_started += 1
        self.num_tasks_in_progress += 1
        self.max_tasks_in_progress = max(self.max_tasks_in_progress, self.num_tasks_in_progress)

    def finish(self, result: Result) -> None:
        self.num_tasks_in_progress -= 1
        self.num_rate_limit_retries += result.retries
        if result.is_success:
            self.num_tasks_succeeded += 1
        else:
            self.num_tasks_failed += 1


class BatchScheduler:
    """
    Runs many RequestSpecs through one executor under a concurrency ceiling.

    Attributes:
        executor (RequestExecutor): Executor shared by all workers
        status (StatusTracker): Counters of the most recently completed batch
    """

    def __init__(self, executor: RequestExecutor) -> None:
        self.executor = executor
        self.status = StatusTracker()

    async def run_batch(
        self,
        specs: Sequence[RequestSpec],
        concurrency: int,
        show_progress: bool = False,
        description: str = "Completed requests",
    ) -> BatchResult:
        """
        Execute every spec and collect the outcomes in input order.

        Failures never stop the batch: every spec runs to completion and the
        caller decides what to do with the failed indices.

        Args:
            specs (Sequence[RequestSpec]): Requests to execute
            concurrency (int): Maximum requests in flight at once
            show_progress (bool): Show a tqdm progress bar
            description (str): Progress bar label

        Returns:
            BatchResult: One Result per spec, `result[i]` belonging to `specs[i]`

        Raises:
            ValueError: If concurrency is not a positive integer
            InvalidRequestSpecError: If any element is not a RequestSpec or has a body
                that cannot be encoded; raised before any request is sent
        """
        if not isinstance(concurrency, int) or isinstance(concurrency, bool) or concurrency < 1:
            raise ValueError(f"concurrency must be a positive integer, got {concurrency!r}")
        for index, spec in enumerate(specs):
            if not isinstance(spec, RequestSpec):
                raise InvalidRequestSpecError(
                    f"Batch item {index} is a {type(spec).__name__}, not a RequestSpec"
                )
            # The body may have been mutated since construction.
            spec.encoded_body()

        # One tracker per run; concurrent batches never share counters.
        status = StatusTracker()
        total = len(specs)
        if total == 0:
            self.status = status
            return BatchResult([])

        results: list[Result | None] = [None] * total
        queue: asyncio.Queue[tuple[int, RequestSpec]] = asyncio.Queue()
        for item in enumerate(specs):
            queue.put_nowait(item)

        pbar = tqdm(total=total, desc=description, unit="req", disable=not show_progress)
        start_time = time.time()
        workers = [
            asyncio.create_task(self._worker(queue, results, status, pbar))
            for _ in range(min(concurrency, total))
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            for worker in workers:
                worker.cancel()
            pbar.close()

        self.status = status
        self._log_summary(status, time.time() - start_time)
        # Every slot is filled once all workers have drained the queue.
        return BatchResult(results)  # type: ignore[arg-type]

    async def _worker(
        self,
        queue: asyncio.Queue[tuple[int, RequestSpec]],
        results: list[Result | None],
        status: StatusTracker,
        pbar: Any,  # tqdm progress bar
    ) -> None:
        while True:
            try:
                index, spec = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            status.start()
            result = await self.executor.execute(spec)
            results[index] = result
            status.finish(result)
            if result.is_failure:
                logger.debug(f"Batch item {index} failed: {result.formatted_error()}")
            pbar.update(1)

    @staticmethod
    def _log_summary(status: StatusTracker, duration: float) -> None:
        logger.info(
            f"Batch complete: {status.num_tasks_succeeded:,} / {status.num_tasks_started:,} "
            f"requests succeeded in {duration:.1f}s"
        )
        if status.num_tasks_failed > 0:
            logger.warning(
                f"{status.num_tasks_failed:,} / {status.num_tasks_started:,} requests failed"
            )
        if status.num_rate_limit_retries > 0:
            logger.warning(
                f"{status.num_rate_limit_retries:,} rate limit retries. "
                f"Consider a lower concurrency."
            )
