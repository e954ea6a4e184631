"""Application Service for classifying scraped places with an LLM.

Fans out one classification call per place under a bounded concurrency
window, wraps every call in the retry executor, and isolates failures so a
single place exhausting its retries never affects its siblings.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from clinicscraper.core.services.result_aggregator import aggregate
from clinicscraper.domain.events.api_events import EventListener
from clinicscraper.domain.interfaces.ai_model import AIModel
from clinicscraper.domain.models.ai import ChatMessage
from clinicscraper.domain.models.classification import (
    AggregateResult, Failed, Outcome, Settled, Verdict,
)
from clinicscraper.domain.models.common import CLASSIFY_RETRY_POLICY, MessageRole, RetryPolicy
from clinicscraper.domain.models.listing import RawPlace
from clinicscraper.infrastructure.resilience.api_retry import ApiRetryService
from clinicscraper.infrastructure.resilience.scheduler import DEFAULT_PACING_DELAY_S, BoundedScheduler

logger = logging.getLogger(__name__)

CLASSIFICATION_TEMPERATURE = 0.1
JSON_RESPONSE_FORMAT = {"type": "json_object"}

CLASSIFICATION_PROMPT = """You are an expert at classifying Egyptian healthcare facilities. Your task is to determine if a given place is a **private clinic (Iyada/عيادة)** or not.

You must REJECT the following types (they are NOT private clinics):
- Hospitals (Mustashfa/مستشفى): large multi-department medical institutions
- Medical Centers (Markaz/مركز): corporate healthcare centers with multiple departments
- Laboratories (Ma3mal/معمل/مختبر): diagnostic labs
- Pharmacies (Saydaliya/صيدلية): drug stores
- Imaging/Radiology Centers (Markaz Asha3a/مركز أشعة)

You must ACCEPT these types (they ARE private clinics):
- Solo doctor practices (عيادة دكتور): "Dr. Ahmed Clinic", "Dr. Sara Eye Clinic"
- Small group practices: a few doctors sharing a clinic space
- Specialized private clinics: "Iyada" or "عيادة" in the name

IMPORTANT DISAMBIGUATION RULES:
- "Dr. [Name] Center" or "مركز دكتور [Name]" is usually a PRIVATE CLINIC disguised as a center. A single doctor running their own center. Mark as ACCEPT with Medium confidence.
- "[Generic Name] Center" (e.g., "The Cairo Center", "Nile Medical Center") is usually a CORPORATE medical center. Mark as REJECT.
- If the name contains a doctor's personal name AND a specialization, it is very likely a private clinic.
- If the name only contains a geographic or generic corporate name, it is likely NOT a private clinic.

Respond ONLY with a valid JSON object, no other text:
{
  "isPrivateClinic": boolean,
  "confidence": "High" | "Medium" | "Low",
  "doctorName": "extracted doctor name or empty string",
  "reasoning": "brief explanation of why"
}"""


def build_user_prompt(place: RawPlace) -> str:
    """Renders the per-place user message (name + address)."""
    return (
        f'Classify this Egyptian place:\nName: "{place.name}"\n'
        f'Address: "{place.address or "N/A"}"\n\n'
        f"Is this a private clinic (Iyada)?"
    )


class ClassificationService:
    """Classifies batches of places as private clinics or not."""

    def __init__(
        self,
        ai_model: AIModel,
        concurrency: int = 2,
        retry_policy: RetryPolicy = CLASSIFY_RETRY_POLICY,
        pacing_delay_s: float = DEFAULT_PACING_DELAY_S,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_event: EventListener = None,
    ):
        """Initializes the ClassificationService.

        Args:
            ai_model: Inference endpoint used for every place.
            concurrency: Maximum number of places classified at once.
            retry_policy: Retry budget for each classification call.
            pacing_delay_s: Delay before each admitted call.
            sleep: Awaitable sleep shared by pacing and backoff (injectable for tests).
            on_event: Optional listener for retry executor events.
        """
        if concurrency < 1:
            raise ValueError(f"Concurrency must be >= 1, got {concurrency}")
        self.ai_model = ai_model
        self.concurrency = concurrency
        self.retry_policy = retry_policy
        self.pacing_delay_s = pacing_delay_s
        self._sleep = sleep
        self.retry_service = ApiRetryService(policy=retry_policy, sleep=sleep, on_event=on_event)
        self.last_scheduler: Optional[BoundedScheduler] = None

    async def classify_single_place(self, place: RawPlace) -> Verdict:
        """Runs one inference call and validates the verdict.

        Raises:
            json.JSONDecodeError: If the response body is not JSON.
            VerdictParseError: If the JSON does not match the Verdict shape.
            Exception: Any provider error from the AI model.
        """
        messages: List[ChatMessage] = [
            {"role": MessageRole("system"), "content": CLASSIFICATION_PROMPT},
            {"role": MessageRole("user"), "content": build_user_prompt(place)},
        ]
        response = await self.ai_model.send_messages(
            messages,
            response_format=JSON_RESPONSE_FORMAT,
            temperature=CLASSIFICATION_TEMPERATURE,
        )
        text = response.content or "{}"
        return Verdict.from_payload(json.loads(text))

    async def _classify_unit(self, scheduler: BoundedScheduler, index: int, place: RawPlace) -> Outcome:
        """One unit of work: paced, retried, and converted to an Outcome."""
        try:
            verdict = await scheduler.run(
                lambda: self.retry_service.execute_with_retry(
                    lambda: self.classify_single_place(place),
                    f"Classify: {place.name}",
                    self.retry_policy,
                )
            )
        except Exception as e:
            logger.error(f'Classification failed for "{place.name}": {type(e).__name__}: {e}')
            return Failed(index=index, item=place, error=e)

        if verdict.accepted:
            logger.info(f'ACCEPTED: "{place.name}" ({verdict.confidence.value}) - {verdict.reasoning}')
        else:
            logger.info(f'REJECTED: "{place.name}" - {verdict.reasoning}')
        return Settled(index=index, item=place, verdict=verdict)

    async def classify(self, places: Sequence[RawPlace]) -> List[Outcome]:
        """Classifies every place and returns exactly one Outcome per place.

        All units run to completion; failures are captured as Failed outcomes
        rather than cancelling siblings.
        """
        scheduler = BoundedScheduler(self.concurrency, self.pacing_delay_s, sleep=self._sleep)
        self.last_scheduler = scheduler

        settled = await asyncio.gather(
            *(self._classify_unit(scheduler, i, place) for i, place in enumerate(places)),
            return_exceptions=True,
        )

        outcomes: List[Outcome] = []
        for index, (place, result) in enumerate(zip(places, settled)):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.error(f'Classification failed for "{place.name}": {result}')
                result = Failed(index=index, item=place, error=result)
            outcomes.append(result)
        return outcomes

    async def classify_places(self, places: Sequence[RawPlace]) -> AggregateResult:
        """Classifies places and returns the accepted ones in submission order."""
        logger.info(
            f"Classifying {len(places)} places with Groq Llama-3 (concurrency={self.concurrency})"
        )
        result = aggregate(await self.classify(places))
        logger.info(
            f"Classification complete: {len(result.accepted)}/{len(places)} accepted as private clinics "
            f"({result.rejected_count} rejected, {result.failed_count} failed)"
        )
        return result
