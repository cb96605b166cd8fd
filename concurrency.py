"""Deadline propagation and bounded fan-out for collaborator calls.

Every cluster and metrics call made by the engines receives the remaining
time of the caller's Deadline as its request timeout. Work units fan out on a
bounded ThreadPoolExecutor; a failing unit is logged and dropped.
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, Hashable, Iterable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Hashable)


class DeadlineExceeded(Exception):
    """Raised when a Deadline has expired or was cancelled.

    `partial_results` carries what a bounded_map fan-out finished before the
    deadline ran out.
    """

    def __init__(self, message: str = "deadline exceeded", partial_results: Optional[Dict[Any, Any]] = None):
        super().__init__(message)
        self.partial_results: Dict[Any, Any] = dict(partial_results or {})


class Deadline:
    """Cancellable, timeout-bearing context shared by one engine call.

    Args:
        timeout: Seconds until expiry; None means no expiry (cancel only)
    """

    def __init__(self, timeout: Optional[float] = None):
        self._expires_at = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left, or None when unbounded. Never negative."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        if self.cancelled:
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self) -> None:
        if self.cancelled:
            raise DeadlineExceeded("operation cancelled")
        if self.expired():
            raise DeadlineExceeded("deadline exceeded")

    def timeout_for(self, default: float) -> float:
        """Per-request timeout: the smaller of `default` and what is left."""
        self.check()
        remaining = self.remaining()
        if remaining is None:
            return default
        return min(default, remaining)


def bounded_map(
    fn: Callable[[T], Any],
    items: Iterable[T],
    max_workers: int,
    deadline: Optional[Deadline] = None,
    label: str = "task",
) -> Dict[T, Any]:
    """Run fn(item) for every item on a bounded pool.

    Returns a dict of item -> result for the units that succeeded. Failures
    are logged and left out; DeadlineExceeded from any unit is re-raised
    once the pool has drained, carrying the finished units in
    `partial_results`.
    """
    items = list(items)
    results: Dict[T, Any] = {}
    if not items:
        return results

    deadline_error: Optional[DeadlineExceeded] = None
    workers = max(1, min(max_workers, len(items)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(fn, item): item for item in items}
        for future in as_completed(futures):
            item = futures[future]
            try:
                results[item] = future.result()
            except DeadlineExceeded as e:
                deadline_error = e
                if deadline is not None:
                    deadline.cancel()
            except Exception as e:
                logger.warning(f"{label} {item!r} failed, skipping: {e}")

    if deadline_error is not None:
        raise DeadlineExceeded(str(deadline_error), partial_results=results) from deadline_error
    return results
