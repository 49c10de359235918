from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, Type, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 5.0
    jitter: float = 0.2

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RetryPolicy":
        data = data or {}
        attempts = int(data.get("attempts", 3))
        if attempts < 1:
            raise ValueError("retry.attempts must be at least 1")
        return cls(
            attempts=attempts,
            base_delay=float(data.get("base_delay", 0.5)),
            max_delay=float(data.get("max_delay", 5.0)),
            jitter=float(data.get("jitter", 0.2)),
        )


def with_retry(
    operation: Callable[[], T],
    *,
    policy: RetryPolicy = RetryPolicy(),
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    logger: Optional[logging.Logger] = None,
    description: Optional[str] = None,
    is_retryable: Optional[Callable[[BaseException], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Execute the callable with exponential backoff and jitter.

    Args:
        operation: Callable to execute.
        policy: Attempt count and delay bounds.
        exceptions: Exception types that should trigger retry logic.
        logger: Optional logger for retry warnings.
        description: Human-readable description for logging.
        is_retryable: Optional predicate deciding whether a caught exception
            should be retried. Defaults to the exception's ``retryable``
            attribute when present, otherwise retries.
        sleep: Delay function, replaceable in tests.
    """
    delay = policy.base_delay
    desc = description or getattr(operation, "__name__", "operation")
    attempts = max(1, policy.attempts)

    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except exceptions as exc:  # type: ignore[misc]
            if is_retryable is not None:
                retryable = bool(is_retryable(exc))
            else:
                retryable = bool(getattr(exc, "retryable", True))

            if not retryable or attempt == attempts:
                raise

            if logger is not None:
                logger.warning(
                    "Retrying %s after %s (attempt %s/%s)",
                    desc,
                    exc,
                    attempt,
                    attempts,
                )

            jitter_factor = 1.0
            if policy.jitter > 0:
                jitter_factor = random.uniform(1 - policy.jitter, 1 + policy.jitter)
            sleep(delay * jitter_factor)
            delay = min(policy.max_delay, delay * 2)

    raise RuntimeError(f"Retry loop for {desc} exited unexpectedly")
