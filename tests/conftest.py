"""
Pytest Configuration and Fixtures

Shared fixtures and fake collaborators for all tests.
"""

import json
import shutil
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from filmflow.analysis.models import Project, Scene
from filmflow.core.config import FilmflowConfig
from filmflow.core.constants import BudgetTier
from filmflow.core.exceptions import AllProvidersFailed, ImageGenerationError
from filmflow.llm.image_backend import ImageBackend
from filmflow.llm.providers import BaseGenerativeBackend, GenerationOptions
from filmflow.storage.memory_store import InMemoryStore


SAMPLE_SCRIPT = """FADE IN:

INT. COFFEE SHOP - DAY

SARAH sits alone at a corner table, laptop open, a cold drink beside her.

SARAH
I told you I'd be here.

JOHN
You always are.

EXT. CITY STREET - NIGHT

An explosion rips through a parked car. JOHN runs through the fire.

JOHN
Go! Now!

INT. COFFEE SHOP - NIGHT

SARAH locks the door and watches the street through the glass.

FADE OUT.
"""


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class ScriptedGenerator:
    """
    Stand-in for ContentGenerator.

    Replies come from `responder(prompt)` when given, otherwise from the
    `responses` queue. An Exception reply is raised instead of returned.
    """

    def __init__(self, responses: Optional[list] = None, responder: Callable[[str], object] = None):
        self.responses = list(responses or [])
        self.responder = responder
        self.prompts: List[str] = []

    async def generate(self, primary, prompt: str, options: GenerationOptions = None) -> str:
        self.prompts.append(prompt)
        if self.responder is not None:
            reply = self.responder(prompt)
        elif self.responses:
            reply = self.responses.pop(0)
        else:
            reply = AllProvidersFailed([primary.value], RuntimeError("no scripted response"))
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeBackend(BaseGenerativeBackend):
    """Generative backend whose replies come from a callable(provider_id, prompt)."""

    def __init__(self, info, api_key, responder):
        self.responder = responder
        self.documents: List[tuple] = []
        super().__init__(info, api_key)

    def _create_client(self):
        return None

    async def generate(self, prompt: str, options: GenerationOptions) -> str:
        reply = self.responder(self.info.id, prompt)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def analyze_document(self, base64_document: str, mime_type: str, prompt: str) -> str:
        self.documents.append((mime_type, base64_document))
        return await self.generate(prompt, GenerationOptions())


def fake_backend_factories(responder) -> dict:
    """backend_factories for ProviderRegistry covering every provider family."""
    def factory(info, api_key):
        return FakeBackend(info, api_key, responder)
    return {family: factory for family in ("google", "openai", "xai", "anthropic")}


class FakeImageBackend(ImageBackend):
    """Image backend that fails for prompts containing any of `fail_on`."""

    name = "fake"

    def __init__(self, fail_on=(), clock=None):
        self.fail_on = tuple(fail_on)
        self.clock = clock
        self.prompts: List[str] = []
        self.call_times: List[float] = []

    async def generate(self, prompt, aspect_ratio="16:9", safety_level="block_medium_and_above") -> str:
        self.prompts.append(prompt)
        if self.clock is not None:
            self.call_times.append(self.clock.now)
        if self.fail_on == ("*",) or any(marker in prompt for marker in self.fail_on):
            raise ImageGenerationError(self.name, "scripted failure")
        return f"https://images.example/{len(self.prompts)}.png"


class RecordingSleep:
    """Awaitable sleep that records delays instead of waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeClock:
    """Virtual clock; sleep() advances time instantly."""

    def __init__(self):
        self.now = 0.0
        self.delays: List[float] = []

    async def sleep(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.now += seconds


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def config() -> FilmflowConfig:
    """Default configuration with a short summary threshold."""
    config = FilmflowConfig()
    config.pipeline.summary_min_length = 50
    return config


@pytest.fixture
def sample_script() -> str:
    return SAMPLE_SCRIPT


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def project(store, sample_script) -> Project:
    """A saved project with the sample screenplay."""
    return store.save_project(Project(
        id="proj1",
        title="Night Shift",
        script_content=sample_script,
        total_budget=Decimal("2500000"),
        budget_tier=BudgetTier.MEDIUM,
        logline="A barista and a courier survive one impossible night.",
    ))


@pytest.fixture
def sample_scenes() -> List[Scene]:
    return [
        Scene(id="scene_1", scene_number=1, location="INT. COFFEE SHOP - DAY", time_of_day="DAY",
              description="Sarah waits", characters=["SARAH", "JOHN"], content="SARAH sits alone."),
        Scene(id="scene_2", scene_number=2, location="EXT. CITY STREET - NIGHT", time_of_day="NIGHT",
              description="Car explosion", characters=["JOHN"], content="An explosion rips through a car."),
        Scene(id="scene_3", scene_number=3, location="INT. COFFEE SHOP - NIGHT", time_of_day="NIGHT",
              description="Sarah locks up", characters=["SARAH"], content="SARAH locks the door."),
    ]


def as_json(value) -> str:
    return json.dumps(value)
