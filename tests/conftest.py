import json
import pytest
from typer.testing import CliRunner
from typing import Any, Dict, List, Optional

from clinicscraper.domain.interfaces.ai_model import AIModel
from clinicscraper.domain.models.ai import ChatMessage, StructuredAIResponse
from clinicscraper.domain.models.listing import RawPlace
from clinicscraper.infrastructure.config import settings


def _verdict_json(accepted: bool, confidence: str = "High", doctor: str = "", reasoning: str = "test") -> str:
    """Renders a classifier response body in the wire format."""
    return json.dumps({
        "isPrivateClinic": accepted,
        "confidence": confidence,
        "doctorName": doctor,
        "reasoning": reasoning,
    })


class FakeAIModel(AIModel):
    """AIModel double that replays a scripted list of results per place name.

    Each script entry is either a response body (str) or an exception to raise.
    The last entry repeats once the script runs out.
    """

    def __init__(self, scripts: Dict[str, List[Any]]):
        self.scripts = {name: list(steps) for name, steps in scripts.items()}
        self.calls: List[str] = []
        self.last_kwargs: Dict[str, Any] = {}
        self.last_messages: List[ChatMessage] = []

    async def send_messages(
        self,
        messages: List[ChatMessage],
        response_format: Optional[Dict[str, Any]] = None,
        temperature: Optional[float] = None,
    ) -> StructuredAIResponse:
        user_content = messages[-1]["content"]
        name = user_content.split('Name: "', 1)[1].split('"', 1)[0]
        self.calls.append(name)
        self.last_messages = messages
        self.last_kwargs = {"response_format": response_format, "temperature": temperature}

        steps = self.scripts[name]
        step = steps.pop(0) if len(steps) > 1 else steps[0]
        if isinstance(step, BaseException):
            raise step
        return StructuredAIResponse(content=step, model_name="fake-model")


class RecordingSleep:
    """Awaitable stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class _FakeResponse:
    def __init__(self, status_code: int, headers: Dict[str, str]):
        self.status_code = status_code
        self.headers = headers


class StatusError(Exception):
    """Exception carrying an HTTP status, shaped like SDK API errors."""

    def __init__(
        self,
        status_code: int,
        message: str = "boom",
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.response = _FakeResponse(status_code, headers or {})


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def verdict_json():
    """Factory for classifier response bodies."""
    return _verdict_json


@pytest.fixture
def fake_ai_model():
    """Factory building a FakeAIModel from per-place scripts."""
    return FakeAIModel


@pytest.fixture
def status_error():
    """The StatusError class, for raising HTTP-shaped failures."""
    return StatusError


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def sample_places() -> List[RawPlace]:
    return [
        RawPlace(name="Dr. Ahmed Clinic", address="Maadi, Cairo", phone="010 1234 5678", maps_link="https://maps/1"),
        RawPlace(name="Nile Hospital", address="Zamalek, Cairo", phone="02 2345 6789", maps_link="https://maps/2"),
        RawPlace(name="Dr. Sara Eye Clinic", address="Heliopolis", phone=None, maps_link="https://maps/3"),
        RawPlace(name="Alpha Lab", address="Nasr City", phone="0111111", maps_link="https://maps/4"),
        RawPlace(name="Dr. Omar Center", address="Dokki, Giza", phone="+20 2 3333 4444", maps_link="https://maps/5"),
    ]


@pytest.fixture(autouse=True)
def isolated_configuration(monkeypatch, tmp_path):
    """Keeps tests away from the developer's real .env, YAML config and keys."""
    for var in ("SERPAPI_API_KEY", "GROQ_API_KEY", "MAX_CONCURRENCY", "LOGGING_LEVEL", "LOGGING_FILE"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(settings, "DEFAULT_CONFIG_FILE", tmp_path / "missing.yaml")
    monkeypatch.chdir(tmp_path)
    settings.reset_configuration()
    settings.clear_test_config()
    yield
    settings.reset_configuration()
    settings.clear_test_config()
