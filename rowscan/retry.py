"""Fixed-count immediate retry policy."""

from __future__ import annotations

from typing import Callable, TypeVar

T = TypeVar("T")

MAX_TRIES = 1
"""Additional attempts after the first failure, shared by the whole process."""


def set_max_tries(value: int) -> None:
    """Set the process-wide number of additional attempts."""

    global MAX_TRIES
    if value < 0:
        raise ValueError("max tries cannot be negative")
    MAX_TRIES = value


def with_retry(operation: Callable[[], T], *, max_tries: int | None = None) -> T:
    """Run ``operation``, retrying up to ``max_tries`` more times on failure.

    There is no backoff and no classification of errors: any exception counts
    as a failure. When every attempt fails, the last exception is re-raised.
    """

    tries = MAX_TRIES if max_tries is None else max_tries
    try:
        return operation()
    except Exception as exc:
        last_error = exc
    for _ in range(tries):
        try:
            return operation()
        except Exception as exc:
            last_error = exc
    raise last_error


__all__ = ["MAX_TRIES", "set_max_tries", "with_retry"]
