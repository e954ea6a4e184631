"""Domain models for classification verdicts, per-item outcomes and leads.

A ``Verdict`` is the LLM's structured judgment about one place. Every place
submitted to the classifier ends in exactly one ``Outcome``: ``Settled`` when
a verdict was produced, ``Failed`` when the retry budget ran out.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Tuple, Union

from .listing import RawPlace


class VerdictParseError(ValueError):
    """Raised when an LLM response does not match the Verdict contract."""


class Confidence(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


# Wire key -> expected Python type
_VERDICT_FIELDS: Dict[str, type] = {
    "isPrivateClinic": bool,
    "confidence": str,
    "doctorName": str,
    "reasoning": str,
}


@dataclass(frozen=True)
class Verdict:
    """The classifier's judgment about a single place."""
    accepted: bool
    confidence: Confidence
    extracted_label: str # Doctor name pulled from the listing, may be empty
    reasoning: str

    @classmethod
    def from_payload(cls, payload: Any) -> "Verdict":
        """Builds a Verdict from the decoded JSON body of an LLM response.

        No coercion is applied: a missing key, a wrong type or an unknown
        confidence tier raises ``VerdictParseError``.

        Args:
            payload: The object returned by ``json.loads`` on the response text.

        Returns:
            The validated Verdict.

        Raises:
            VerdictParseError: If the payload does not match the contract.
        """
        if not isinstance(payload, Mapping):
            raise VerdictParseError(f"Expected a JSON object, got {type(payload).__name__}")

        missing = [key for key in _VERDICT_FIELDS if key not in payload]
        if missing:
            raise VerdictParseError(f"Verdict is missing field(s): {', '.join(missing)}")

        for key, expected in _VERDICT_FIELDS.items():
            value = payload[key]
            if not isinstance(value, expected):
                raise VerdictParseError(
                    f"Verdict field '{key}' must be {expected.__name__}, got {type(value).__name__}"
                )

        try:
            confidence = Confidence(payload["confidence"])
        except ValueError as e:
            raise VerdictParseError(f"Unknown confidence tier: {payload['confidence']!r}") from e

        return cls(
            accepted=payload["isPrivateClinic"],
            confidence=confidence,
            extracted_label=payload["doctorName"],
            reasoning=payload["reasoning"],
        )


@dataclass(frozen=True)
class Settled:
    """A place that received a verdict (accepted or rejected)."""
    index: int
    item: RawPlace
    verdict: Verdict


@dataclass(frozen=True)
class Failed:
    """A place whose classification exhausted its retry budget."""
    index: int
    item: RawPlace
    error: BaseException


Outcome = Union[Settled, Failed]


@dataclass
class AggregateResult:
    """Accepted places in submission order plus rejection/failure counts."""
    accepted: List[Tuple[RawPlace, Verdict]] = field(default_factory=list)
    failed_count: int = 0
    rejected_count: int = 0

    @property
    def total(self) -> int:
        return len(self.accepted) + self.failed_count + self.rejected_count


@dataclass(frozen=True)
class ClassifiedLead:
    """Final lead record written to CSV and JSON."""
    clinic_name: str
    doctor_name: str
    phone_number: str
    address: str
    maps_link: str
    confidence_score: str
