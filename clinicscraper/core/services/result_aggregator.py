"""Collects settled classification outcomes into the final accepted list."""

import logging
from typing import Iterable

from clinicscraper.domain.models.classification import AggregateResult, Failed, Outcome, Settled

logger = logging.getLogger(__name__)


def aggregate(outcomes: Iterable[Outcome]) -> AggregateResult:
    """Partitions outcomes into accepted, rejected and failed.

    Outcomes are resequenced by submission index first, so the accepted list
    follows the original batch order whatever order the outcomes settled in.

    Args:
        outcomes: One Outcome per submitted place, in any order.

    Returns:
        AggregateResult with accepted (place, verdict) pairs and counts.
    """
    result = AggregateResult()
    for outcome in sorted(outcomes, key=lambda o: o.index):
        if isinstance(outcome, Failed):
            result.failed_count += 1
        elif isinstance(outcome, Settled) and outcome.verdict.accepted:
            result.accepted.append((outcome.item, outcome.verdict))
        else:
            result.rejected_count += 1
    logger.debug(
        f"Aggregated {result.total} outcomes: {len(result.accepted)} accepted, "
        f"{result.rejected_count} rejected, {result.failed_count} failed"
    )
    return result
