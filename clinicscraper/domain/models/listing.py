"""Domain models for places returned by the listing source."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RawPlace:
    """An unclassified candidate place as scraped from Google Maps.

    Identity is positional: the listing source guarantees no stable ID, so the
    pipeline tracks places by their index in the scraped batch.
    """
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    maps_link: Optional[str] = None
