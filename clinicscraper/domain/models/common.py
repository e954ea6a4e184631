"""Defines common Value Objects used across different domain contexts.

These objects represent simple values like search queries, phone numbers
and retry configuration, ensuring consistency and type safety.
"""

from dataclasses import dataclass
from typing import NewType, TypedDict

# === Core Value Objects ===

SearchQuery = NewType("SearchQuery", str)      # Free-text listing query, e.g. "Dermatologist in Maadi"
PhoneNumber = NewType("PhoneNumber", str)      # Normalized E.164 number, e.g. "+201012345678"
MessageRole = NewType("MessageRole", str)      # 'system', 'user', 'assistant'
OutputDir = NewType("OutputDir", str)          # Directory that receives leads.csv / leads.json


class TokenUsage(TypedDict):
    """Represents token usage information from an AI call."""
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class RetryPolicy:
    """Value Object representing retry backoff configuration.

    Delays are in seconds. ``max_delay_s`` caps the generic exponential
    schedule only; rate-limited retries are not capped.
    """
    max_attempts: int = 3
    base_delay_s: float = 2.0
    max_delay_s: float = 60.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")


DEFAULT_RETRY_POLICY = RetryPolicy()
# Classification calls run under a larger budget than the listing source
CLASSIFY_RETRY_POLICY = RetryPolicy(max_attempts=5, base_delay_s=3.0)
