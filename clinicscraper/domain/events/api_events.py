"""Domain Events related to API calls and resilience.

Emitted by the retry executor when a call succeeds, is retried, or fails
definitively. Listeners are plain callables passed in by the caller.
"""

from dataclasses import dataclass, field
import time
from typing import Callable, Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when a wrapped call returns."""
    label: str
    attempt_number: int
    latency_ms: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed call."""
    label: str
    attempt_number: int # The attempt that just failed
    delay_seconds: float
    rate_limited: bool = False
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when a call fails definitively (after retries)."""
    label: str
    attempts: int
    error_type: str
    error_message: str
    timestamp: float = field(default_factory=time.time)


EventListener = Optional[Callable[[DomainEvent], None]]
