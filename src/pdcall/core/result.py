from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any

from pdcall.errors import RequestError, ResultStateError

"""
Success/failure wrappers returned by every engine operation.

A Result holds exactly one of:
- Success: an HTTP status and the parsed JSON payload
- Failure: an optional HTTP status and a RequestError describing what went wrong

Reading the payload of a Failure, or the error of a Success, raises
ResultStateError. That is a caller bug and is kept distinct from request failures.
"""


@dataclass(frozen=True)
class Result:
    """
    Outcome of executing one RequestSpec.

    Build instances with Result.success() or Result.failure().

    Attributes:
        status (int | None): HTTP status code, None for transport failures or when
            no request was needed (e.g. fetch_all with item_limit=0)
        attempts (int): Number of HTTP attempts made (1 + retries, 0 if none)
        endpoint (str | None): Endpoint the request was sent to
    """

    status: int | None
    _data: Any = None
    _error: RequestError | None = None
    attempts: int = 1
    endpoint: str | None = None

    @classmethod
    def success(
        cls, status: int | None, data: Any, attempts: int = 1, endpoint: str | None = None
    ) -> Result:
        return cls(status=status, _data=data, attempts=attempts, endpoint=endpoint)

    @classmethod
    def failure(
        cls, error: RequestError, attempts: int = 1, endpoint: str | None = None
    ) -> Result:
        return cls(status=error.status, _error=error, attempts=attempts, endpoint=endpoint)

    @property
    def is_success(self) -> bool:
        return self._error is None

    @property
    def is_failure(self) -> bool:
        return self._error is not None

    @property
    def retries(self) -> int:
        return max(self.attempts - 1, 0)

    @property
    def data(self) -> Any:
        """
        Parsed JSON payload of a successful request.

        Raises:
            ResultStateError: If the Result is a Failure
        """
        if self._error is not None:
            raise ResultStateError(
                f"Cannot read data from a failed result: {self._error}"
            )
        return self._data

    @property
    def error(self) -> RequestError:
        """
        The typed error of a failed request.

        Raises:
            ResultStateError: If the Result is a Success
        """
        if self._error is None:
            raise ResultStateError("Cannot read the error of a successful result")
        return self._error

    def formatted_error(self) -> str:
        """Human-readable error message. Only valid on a Failure."""
        return str(self.error)

    def __repr__(self) -> str:
        if self.is_success:
            return f"Result.success(status={self.status}, attempts={self.attempts})"
        return f"Result.failure({self._error!r}, attempts={self.attempts})"


class BatchResult(Sequence[Result]):
    """
    Ordered Results of a batch, index-aligned with the submitted RequestSpecs.

    `batch[i]` (or `batch.result_at(i)`) is always the outcome of `specs[i]`,
    whatever order the requests completed in.
    """

    def __init__(self, results: Sequence[Result]) -> None:
        self._results = tuple(results)

    @property
    def results(self) -> tuple[Result, ...]:
        return self._results

    def __len__(self) -> int:
        return len(self._results)

    def __getitem__(self, index):  # type: ignore[no-untyped-def, override]
        return self._results[index]

    def __iter__(self) -> Iterator[Result]:
        return iter(self._results)

    def result_at(self, index: int) -> Result:
        return self._results[index]

    def successful_payloads(self) -> list[Any]:
        """Payloads of succeeded requests in input order, failures skipped."""
        return [r.data for r in self._results if r.is_success]

    def failed_indices(self) -> list[int]:
        return [i for i, r in enumerate(self._results) if r.is_failure]

    def succeeded_indices(self) -> list[int]:
        return [i for i, r in enumerate(self._results) if r.is_success]

    def failures(self) -> list[tuple[int, Result]]:
        return [(i, r) for i, r in enumerate(self._results) if r.is_failure]

    @property
    def all_succeeded(self) -> bool:
        return all(r.is_success for r in self._results)

    def __repr__(self) -> str:
        return (
            f"BatchResult(total={len(self)}, "
            f"succeeded={len(self) - len(self.failed_indices())}, "
            f"failed={len(self.failed_indices())})"
        )
