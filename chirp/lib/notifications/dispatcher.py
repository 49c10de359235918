from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

R = TypeVar("R")

logger = logging.getLogger("chirp.dispatch")

DEFAULT_MAX_WORKERS = 8


@dataclass(frozen=True, slots=True)
class DispatchFailure:
    recipient: str
    error: str


@dataclass(frozen=True, slots=True)
class DispatchReport:
    """
    Outcome of one dispatch call.

    ``total_recipients`` only counts sends that completed; sends abandoned
    because the dispatch timed out are reported in ``cancelled``.
    """

    total_recipients: int
    succeeded: int
    failed: int
    cancelled: int = 0
    failures: Tuple[DispatchFailure, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total_recipients,
            "successful": self.succeeded,
            "failed": self.failed,
            "cancelled": self.cancelled,
        }


def _describe(recipient: Any) -> str:
    return str(getattr(recipient, "email", recipient))


class _Tally:
    """Single accumulation point shared by the worker threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._succeeded = 0
        self._failed = 0
        self._failures: List[DispatchFailure] = []

    def record_success(self) -> None:
        with self._lock:
            self._succeeded += 1

    def record_failure(self, recipient: Any, exc: BaseException) -> None:
        with self._lock:
            self._failed += 1
            self._failures.append(DispatchFailure(recipient=_describe(recipient), error=str(exc)))

    def snapshot(self, requested: int) -> DispatchReport:
        with self._lock:
            completed = self._succeeded + self._failed
            return DispatchReport(
                total_recipients=completed,
                succeeded=self._succeeded,
                failed=self._failed,
                cancelled=requested - completed,
                failures=tuple(self._failures),
            )


class BatchDispatcher:
    """
    Deliver one artifact to many recipients on a bounded thread pool.

    ``send`` is called once per recipient and signals failure by raising.
    A failing send is counted and logged; it never cancels or delays the
    others and never propagates out of :meth:`dispatch`. Retries are the
    send capability's concern.
    """

    def __init__(
        self,
        max_workers: int = DEFAULT_MAX_WORKERS,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive when set")
        self._max_workers = max_workers
        self._timeout = timeout

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def dispatch(self, recipients: Iterable[R], send: Callable[[R], Any]) -> DispatchReport:
        targets = list(recipients)
        if not targets:
            return DispatchReport(total_recipients=0, succeeded=0, failed=0)

        tally = _Tally()
        executor = ThreadPoolExecutor(
            max_workers=min(self._max_workers, len(targets)),
            thread_name_prefix="chirp-dispatch",
        )
        try:
            futures = [executor.submit(self._deliver, recipient, send, tally) for recipient in targets]
            _, pending = wait(futures, timeout=self._timeout)
        finally:
            # Queued sends are dropped; sends already running finish on their own.
            executor.shutdown(wait=False, cancel_futures=True)

        report = tally.snapshot(len(targets))
        if pending:
            logger.warning(
                "dispatch.timeout",
                extra={"timeout": self._timeout, "pending": len(pending), "completed": report.total_recipients},
            )
        logger.info(
            "dispatch.complete",
            extra={
                "requested": len(targets),
                "succeeded": report.succeeded,
                "failed": report.failed,
                "cancelled": report.cancelled,
            },
        )
        return report

    @staticmethod
    def _deliver(recipient: R, send: Callable[[R], Any], tally: _Tally) -> None:
        try:
            send(recipient)
        except Exception as exc:  # noqa: BLE001 - one recipient must not affect the others
            tally.record_failure(recipient, exc)
            logger.warning(
                "dispatch.send_failed",
                extra={"recipient": _describe(recipient), "error": str(exc)},
            )
        else:
            tally.record_success()
