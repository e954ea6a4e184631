"""Service for executing API calls with automatic retries.

Implements exponential backoff for transient errors (network failures, 5xx,
malformed responses). Rate-limit errors (429) honour the provider's suggested
retry delay when one is attached to the error, and otherwise climb a steeper
exponential schedule than generic failures.
"""

import asyncio
import logging
import math
import re
import time
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, TypeVar

from clinicscraper.domain.events.api_events import (
    ApiCallFailed, ApiCallSucceeded, DomainEvent, EventListener, RetryScheduled,
)
from clinicscraper.domain.models.common import DEFAULT_RETRY_POLICY, RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_STATUS = 429
RETRY_INFO_TYPE = "google.rpc.RetryInfo"
_SECONDS_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)")

Sleep = Callable[[float], Awaitable[Any]]


# --- Error inspection ---

def _status_of(error: BaseException) -> Optional[int]:
    """Finds an HTTP status on SDK errors (groq/openai), httpx errors or plain objects."""
    for attr in ("status_code", "status"):
        status = getattr(error, attr, None)
        if isinstance(status, int):
            return status
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def is_rate_limit_error(error: BaseException) -> bool:
    """Checks whether the error carries an explicit 'too many requests' status."""
    return _status_of(error) == RATE_LIMIT_STATUS


def _parse_seconds(value: Any) -> Optional[float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        match = _SECONDS_PATTERN.match(value)
        if match:
            return float(match.group(1))
    return None


def _iter_error_details(error: BaseException) -> Iterable[Mapping[str, Any]]:
    """Yields google.rpc-style detail entries attached to the error or its body."""
    candidates = [getattr(error, "error_details", None), getattr(error, "errorDetails", None)]
    body = getattr(error, "body", None)
    if isinstance(body, Mapping):
        nested = body.get("error")
        for container in (body, nested if isinstance(nested, Mapping) else {}):
            candidates.append(container.get("errorDetails"))
            candidates.append(container.get("details"))
    for details in candidates:
        if isinstance(details, list):
            for detail in details:
                if isinstance(detail, Mapping):
                    yield detail


def extract_retry_delay(error: BaseException) -> Optional[float]:
    """Extracts a provider-suggested retry delay, in seconds, from a 429 error.

    Looks first for a ``RetryInfo`` detail (``"retryDelay": "12s"``), then for a
    numeric ``retry-after`` response header. The value is rounded up to the
    next millisecond.

    Returns:
        The delay in seconds, or None when the provider suggested nothing.
    """
    seconds: Optional[float] = None
    for detail in _iter_error_details(error):
        if str(detail.get("@type", "")).endswith(RETRY_INFO_TYPE):
            seconds = _parse_seconds(detail.get("retryDelay"))
            if seconds is not None:
                break

    if seconds is None:
        headers = getattr(getattr(error, "response", None), "headers", None)
        if headers is not None:
            seconds = _parse_seconds(headers.get("retry-after"))

    if seconds is None:
        return None
    return math.ceil(seconds * 1000) / 1000


def compute_backoff_delay(attempt: int, policy: RetryPolicy, error: BaseException) -> float:
    """Returns the wait, in seconds, before the attempt after ``attempt``.

    Generic failures wait ``base * 2**(attempt-1)`` capped at ``max_delay_s``.
    Rate-limited failures wait the suggested delay, or ``base * 2**attempt``
    uncapped when the provider suggested none.
    """
    if is_rate_limit_error(error):
        suggested = extract_retry_delay(error)
        if suggested:
            return suggested
        # Exponent is `attempt`, not `attempt - 1`, and there is no ceiling
        return policy.base_delay_s * (2 ** attempt)
    return min(policy.base_delay_s * (2 ** (attempt - 1)), policy.max_delay_s)


# --- Retry Service ---

class ApiRetryService:
    """Runs async operations under a bounded retry budget with backoff."""

    def __init__(
        self,
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Sleep = asyncio.sleep,
        on_event: EventListener = None,
    ):
        """Initializes the ApiRetryService.

        Args:
            policy: Default retry budget; call sites may pass their own.
            sleep: Awaitable sleep used between attempts (injectable for tests).
            on_event: Optional listener receiving RetryScheduled/ApiCallFailed/
                ApiCallSucceeded events.
        """
        self.policy = policy
        self._sleep = sleep
        self._on_event = on_event

    def _dispatch(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self._on_event is not None:
            self._on_event(event)

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        label: str,
        policy: Optional[RetryPolicy] = None,
        retry_if: Optional[Callable[[BaseException], bool]] = None,
    ) -> T:
        """Executes ``operation`` until it succeeds or the budget is exhausted.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per attempt.
            label: Descriptive label used in logs and events.
            policy: Overrides the service's default policy for this call.
            retry_if: Predicate deciding whether an error is worth retrying.
                Errors it rejects are raised immediately. Defaults to retrying all.

        Returns:
            The operation's result.

        Raises:
            Exception: The last error raised by ``operation`` once
                ``max_attempts`` attempts have failed, or the first
                error ``retry_if`` rejects.
        """
        effective = policy or self.policy

        for attempt in range(1, effective.max_attempts + 1):
            start_time = time.perf_counter()
            try:
                result = await operation()
            except Exception as e:
                if retry_if is not None and not retry_if(e):
                    logger.error(
                        f"[{label}] Attempt {attempt}/{effective.max_attempts} failed with a "
                        f"non-retryable error: {type(e).__name__}: {e}"
                    )
                    self._dispatch(ApiCallFailed(
                        label=label, attempts=attempt,
                        error_type=type(e).__name__, error_message=str(e),
                    ))
                    raise

                if attempt == effective.max_attempts:
                    logger.error(
                        f"[{label}] All {effective.max_attempts} attempts failed. Giving up. "
                        f"Last error: {type(e).__name__}: {e}"
                    )
                    self._dispatch(ApiCallFailed(
                        label=label, attempts=attempt,
                        error_type=type(e).__name__, error_message=str(e),
                    ))
                    raise

                rate_limited = is_rate_limit_error(e)
                delay = compute_backoff_delay(attempt, effective, e)
                if rate_limited:
                    logger.warning(
                        f"[{label}] Rate limited (429). Waiting {delay:.2f}s before retry "
                        f"{attempt + 1}/{effective.max_attempts}..."
                    )
                else:
                    logger.warning(
                        f"[{label}] Attempt {attempt}/{effective.max_attempts} failed "
                        f"({type(e).__name__}: {e}). Retrying in {delay:.2f}s..."
                    )
                self._dispatch(RetryScheduled(
                    label=label, attempt_number=attempt,
                    delay_seconds=delay, rate_limited=rate_limited,
                ))
                await self._sleep(delay)
                continue

            latency_ms = (time.perf_counter() - start_time) * 1000
            self._dispatch(ApiCallSucceeded(label=label, attempt_number=attempt, latency_ms=latency_ms))
            return result

        # Unreachable: the final attempt either returns or re-raises
        raise RuntimeError(f"[{label}] Retry logic exhausted unexpectedly")
