import asyncio
import json
import logging
import pytest

from clinicscraper.core.services.classification_service import (
    CLASSIFICATION_PROMPT, CLASSIFICATION_TEMPERATURE, JSON_RESPONSE_FORMAT, ClassificationService,
    build_user_prompt,
)
from clinicscraper.domain.events.api_events import ApiCallFailed, RetryScheduled
from clinicscraper.domain.models.classification import Confidence, Failed, Settled, VerdictParseError
from clinicscraper.domain.models.common import RetryPolicy
from clinicscraper.domain.models.listing import RawPlace


@pytest.fixture
def scripts(verdict_json):
    """Two rejections, one transient failure then acceptance, two immediate acceptances."""
    return {
        "Dr. Ahmed Clinic": [verdict_json(True, "High", "Ahmed", "Doctor name in listing")],
        "Nile Hospital": [verdict_json(False, "High", "", "Hospital")],
        "Dr. Sara Eye Clinic": [ConnectionError("connection reset"), verdict_json(True, "High", "Sara", "Eye clinic")],
        "Alpha Lab": [verdict_json(False, "High", "", "Laboratory")],
        "Dr. Omar Center": [verdict_json(True, "Medium", "Omar", "Doctor-run center")],
    }


def make_service(ai_model, sleep, events=None, concurrency=2, policy=None):
    kwargs = {}
    if policy is not None:
        kwargs["retry_policy"] = policy
    return ClassificationService(
        ai_model=ai_model,
        concurrency=concurrency,
        sleep=sleep,
        on_event=events.append if events is not None else None,
        **kwargs,
    )


def test_end_to_end_batch(sample_places, scripts, fake_ai_model, recording_sleep, caplog):
    ai_model = fake_ai_model(scripts)
    events: list = []
    service = make_service(ai_model, recording_sleep, events)

    with caplog.at_level(logging.INFO):
        result = asyncio.run(service.classify_places(sample_places))

    assert result.total == 5
    assert [place.name for place, _ in result.accepted] == [
        "Dr. Ahmed Clinic", "Dr. Sara Eye Clinic", "Dr. Omar Center",
    ]
    assert result.rejected_count == 2
    assert result.failed_count == 0

    retries = [e for e in events if isinstance(e, RetryScheduled)]
    assert len(retries) == 1
    assert retries[0].label == "Classify: Dr. Sara Eye Clinic"
    assert caplog.text.count("Retrying in") == 1
    assert "Classification complete: 3/5 accepted" in caplog.text

    assert service.last_scheduler.peak_in_flight <= 2
    # One pacing delay per place plus one generic backoff of base_delay_s
    assert sorted(recording_sleep.delays) == [1.5, 1.5, 1.5, 1.5, 1.5, 3.0]


def test_classify_returns_one_outcome_per_place(sample_places, scripts, fake_ai_model, recording_sleep):
    service = make_service(fake_ai_model(scripts), recording_sleep)

    outcomes = asyncio.run(service.classify(sample_places))

    assert len(outcomes) == len(sample_places)
    assert [o.index for o in outcomes] == [0, 1, 2, 3, 4]
    assert all(isinstance(o, Settled) for o in outcomes)
    assert outcomes[4].verdict.confidence is Confidence.MEDIUM
    assert outcomes[4].verdict.extracted_label == "Omar"


def test_parse_failures_go_through_retry_path(fake_ai_model, recording_sleep, verdict_json):
    place = RawPlace(name="Dr. Hany Clinic")
    wrong_type = json.dumps({"isPrivateClinic": "yes", "confidence": "High", "doctorName": "", "reasoning": "x"})
    ai_model = fake_ai_model({"Dr. Hany Clinic": ["not json at all", wrong_type, verdict_json(True)]})
    service = make_service(ai_model, recording_sleep)

    outcomes = asyncio.run(service.classify([place]))

    assert isinstance(outcomes[0], Settled)
    assert outcomes[0].verdict.accepted is True
    assert ai_model.calls == ["Dr. Hany Clinic"] * 3


def test_exhausted_item_fails_without_affecting_siblings(sample_places, scripts, fake_ai_model, recording_sleep):
    scripts["Nile Hospital"] = [TimeoutError("upstream timeout")]
    ai_model = fake_ai_model(scripts)
    events: list = []
    service = make_service(ai_model, recording_sleep, events)

    result = asyncio.run(service.classify_places(sample_places))

    assert ai_model.calls.count("Nile Hospital") == 5
    assert result.failed_count == 1
    assert result.rejected_count == 1
    assert len(result.accepted) == 3
    failed = [e for e in events if isinstance(e, ApiCallFailed)]
    assert [e.label for e in failed] == ["Classify: Nile Hospital"]


def test_failed_outcome_carries_last_error(fake_ai_model, recording_sleep):
    place = RawPlace(name="Broken Place")
    ai_model = fake_ai_model({"Broken Place": ["[]"]})
    service = make_service(ai_model, recording_sleep, policy=RetryPolicy(max_attempts=2, base_delay_s=1.0))

    outcomes = asyncio.run(service.classify([place]))

    assert isinstance(outcomes[0], Failed)
    assert isinstance(outcomes[0].error, VerdictParseError)
    assert outcomes[0].item is place
    assert len(ai_model.calls) == 2


def test_empty_response_content_is_a_parse_failure(fake_ai_model, recording_sleep):
    ai_model = fake_ai_model({"Silent": [""]})
    service = make_service(ai_model, recording_sleep, policy=RetryPolicy(max_attempts=1))

    with pytest.raises(VerdictParseError, match="missing field"):
        asyncio.run(service.classify_single_place(RawPlace(name="Silent")))


def test_single_call_sends_prompt_and_json_mode(fake_ai_model, recording_sleep, verdict_json):
    ai_model = fake_ai_model({"Dr. Mona Clinic": [verdict_json(True, "Low", "Mona")]})
    service = make_service(ai_model, recording_sleep)
    place = RawPlace(name="Dr. Mona Clinic", address=None)

    verdict = asyncio.run(service.classify_single_place(place))

    assert verdict.confidence is Confidence.LOW
    assert ai_model.last_kwargs == {
        "response_format": JSON_RESPONSE_FORMAT,
        "temperature": CLASSIFICATION_TEMPERATURE,
    }
    assert ai_model.last_messages[0] == {"role": "system", "content": CLASSIFICATION_PROMPT}
    assert 'Address: "N/A"' in ai_model.last_messages[1]["content"]


def test_build_user_prompt_includes_name_and_address():
    prompt = build_user_prompt(RawPlace(name="Dr. Ali Clinic", address="Maadi"))
    assert 'Name: "Dr. Ali Clinic"' in prompt
    assert 'Address: "Maadi"' in prompt


def test_empty_batch_yields_no_outcomes(fake_ai_model, recording_sleep):
    service = make_service(fake_ai_model({}), recording_sleep)

    result = asyncio.run(service.classify_places([]))

    assert result.total == 0
    assert result.accepted == []


def test_rejects_concurrency_below_one(fake_ai_model):
    with pytest.raises(ValueError, match="Concurrency must be >= 1"):
        ClassificationService(ai_model=fake_ai_model({}), concurrency=0)
