"""
Tests for the Storyboard Visual Batch

Tests for filmflow/storyboard/visual_batch.py
"""

import httpx
import pytest

from filmflow.analysis.models import Scene
from filmflow.core.constants import FALLBACK_COSTUME, RunStatus
from filmflow.core.exceptions import NotFoundError, PipelineAlreadyRunning
from filmflow.llm.image_backend import ReplicateImageBackend
from filmflow.storyboard.visual_batch import (
    VisualBatchGenerator,
    build_scene_prompt,
    characters_in_order,
)

from conftest import FakeImageBackend, RecordingSleep, ScriptedGenerator, as_json


def plain_scenes(count, failing=()):
    """Scenes without characters; those in `failing` carry a FAILME marker."""
    return [
        Scene(
            id=f"scene_{n}", scene_number=n, location=f"INT. ROOM {n} - DAY",
            content=f"Scene {n} action. {'FAILME' if n in failing else ''}",
        )
        for n in range(1, count + 1)
    ]


class CancellingBackend(FakeImageBackend):
    """Requests cancellation after its first image."""

    def __init__(self, batch_ref):
        super().__init__()
        self.batch_ref = batch_ref

    async def generate(self, prompt, aspect_ratio="16:9", safety_level="block_medium_and_above"):
        url = await super().generate(prompt, aspect_ratio, safety_level)
        self.batch_ref[0].cancel("proj1")
        return url


class TestHelpers:
    """Tests for prompt helpers."""

    def test_characters_in_order(self, sample_scenes):
        """Test characters are listed once in first-seen order."""
        sample_scenes[2].characters = ["sarah", "MIKE"]

        assert characters_in_order(sample_scenes) == ["SARAH", "JOHN", "MIKE"]

    def test_scene_prompt_without_characters(self):
        """Test a scene with no characters still gets a prompt."""
        prompt = build_scene_prompt(plain_scenes(1)[0], [])

        assert "No named characters" in prompt
        assert "INT. ROOM 1 - DAY" in prompt


class TestCharacterProfiles:
    """Tests for consistency profiles."""

    @pytest.mark.asyncio
    async def test_profiles_generated_once(self, store, project, config, sample_scenes):
        """Test each character gets one stored profile that is reused."""
        store.save_scenes(project.id, sample_scenes)
        generator = ScriptedGenerator(responder=lambda prompt: as_json({
            "physicalDescription": "Tall, cropped hair",
            "costumeDescription": "Denim jacket",
            "visualStyle": "Neo-noir",
        }))
        batch = VisualBatchGenerator(generator, FakeImageBackend(), store, config, sleep=RecordingSleep())

        first = await batch.ensure_character_profiles(project.id)
        second = await batch.ensure_character_profiles(project.id)

        assert [p.character_name for p in first] == ["SARAH", "JOHN"]
        assert second == first
        assert len(generator.prompts) == 2
        assert "create a detailed visual description" in generator.prompts[0]

    @pytest.mark.asyncio
    async def test_fallback_profile(self, store, project, config, sample_scenes):
        """Test a failed profile call stores the deterministic fallback."""
        store.save_scenes(project.id, sample_scenes)
        batch = VisualBatchGenerator(ScriptedGenerator(), FakeImageBackend(), store, config, sleep=RecordingSleep())

        await batch.ensure_character_profiles(project.id)

        profile = store.get_profile(project.id, "SARAH")
        assert profile.is_fallback
        assert profile.costume_description == FALLBACK_COSTUME
        assert "Night Shift" in profile.physical_description


class TestGenerateBatch:
    """Tests for frame generation."""

    @pytest.mark.asyncio
    async def test_frames_for_every_scene(self, store, project, config, sample_scenes):
        """Test every scene gets a frame carrying its characters' profiles."""
        store.save_scenes(project.id, sample_scenes)
        backend = FakeImageBackend()
        sleep = RecordingSleep()
        batch = VisualBatchGenerator(ScriptedGenerator(), backend, store, config, sleep=sleep)

        result = await batch.generate_batch(project.id)

        assert result.status == RunStatus.COMPLETED
        assert result.generated == ["scene_1", "scene_2", "scene_3"]
        assert store.get_image(project.id, "scene_1").characters_present == ["SARAH", "JOHN"]
        assert "Appropriate costume for the scene" in backend.prompts[0]
        assert sleep.delays == [config.visual.inter_item_delay] * 2
        assert {s["status"] for s in batch.get_status(project.id)} == {"completed"}

    @pytest.mark.asyncio
    async def test_resume_skips_finished_scenes(self, store, project, config, sample_scenes):
        """Test a second run only generates scenes that still lack a frame."""
        store.save_scenes(project.id, sample_scenes)
        generator = ScriptedGenerator()
        failing = FakeImageBackend(fail_on=("explosion",))
        first = await VisualBatchGenerator(
            generator, failing, store, config, sleep=RecordingSleep()
        ).generate_batch(project.id)
        profile_calls = len(generator.prompts)

        working = FakeImageBackend()
        second = await VisualBatchGenerator(
            generator, working, store, config, sleep=RecordingSleep()
        ).generate_batch(project.id)

        assert first.status == RunStatus.PARTIAL
        assert list(first.failed) == ["scene_2"]
        assert second.status == RunStatus.COMPLETED
        assert second.skipped == ["scene_1", "scene_3"]
        assert second.generated == ["scene_2"]
        assert len(working.prompts) == 1
        assert len(generator.prompts) == profile_calls

    @pytest.mark.asyncio
    async def test_failed_scene_retried(self, store, project, config):
        """Test each scene gets max_attempts image calls before it fails."""
        store.save_scenes(project.id, plain_scenes(1, failing={1}))
        backend = FakeImageBackend(fail_on=("FAILME",))
        batch = VisualBatchGenerator(ScriptedGenerator(), backend, store, config, sleep=RecordingSleep())

        result = await batch.generate_batch(project.id)

        assert result.status == RunStatus.FAILED
        assert len(backend.prompts) == config.visual.max_attempts

    @pytest.mark.asyncio
    async def test_circuit_breaker_pauses_batch(self, store, project, config, fake_clock):
        """Test consecutive failures pause the batch for the full cool-down."""
        store.save_scenes(project.id, plain_scenes(5, failing={1, 2, 3}))
        backend = FakeImageBackend(fail_on=("FAILME",), clock=fake_clock)
        batch = VisualBatchGenerator(ScriptedGenerator(), backend, store, config, sleep=fake_clock.sleep)

        result = await batch.generate_batch(project.id)

        attempts = config.visual.max_attempts
        last_failure = backend.call_times[3 * attempts - 1]
        first_after_pause = backend.call_times[3 * attempts]
        assert first_after_pause - last_failure >= config.visual.cooldown_seconds
        assert result.breaker_trips == 1
        assert result.generated == ["scene_4", "scene_5"]
        assert result.status == RunStatus.PARTIAL
        assert fake_clock.delays.count(config.visual.cooldown_seconds) == 1

    @pytest.mark.asyncio
    async def test_cancel_between_scenes(self, store, project, config):
        """Test cancellation leaves remaining scenes pending."""
        store.save_scenes(project.id, plain_scenes(3))
        batch_ref = []
        batch = VisualBatchGenerator(
            ScriptedGenerator(), CancellingBackend(batch_ref), store, config, sleep=RecordingSleep()
        )
        batch_ref.append(batch)

        result = await batch.generate_batch(project.id)

        assert result.status == RunStatus.CANCELLED
        assert result.generated == ["scene_1"]
        assert result.pending == ["scene_2", "scene_3"]
        assert not batch.is_running(project.id)

    def test_duplicate_batch_rejected(self, store, project, config):
        """Test a second batch for the same project is refused."""
        batch = VisualBatchGenerator(ScriptedGenerator(), FakeImageBackend(), store, config)
        batch.begin(project.id)

        with pytest.raises(PipelineAlreadyRunning):
            batch.begin(project.id)

    def test_unknown_project(self, store, config):
        """Test batches for missing projects are refused."""
        batch = VisualBatchGenerator(ScriptedGenerator(), FakeImageBackend(), store, config)

        with pytest.raises(NotFoundError):
            batch.begin("missing")

    def test_status_before_any_batch(self, store, project, config):
        """Test status is derived from stored images when nothing has run."""
        store.save_scenes(project.id, plain_scenes(2))
        batch = VisualBatchGenerator(ScriptedGenerator(), FakeImageBackend(), store, config)

        assert batch.get_status(project.id) == [
            {"scene_id": "scene_1", "status": "pending"},
            {"scene_id": "scene_2", "status": "pending"},
        ]


class TestBatchWithReplicate:
    """Tests for the batch against a Replicate backend on a mock transport."""

    @pytest.mark.asyncio
    async def test_garbled_response_retried_not_fatal(self, store, project, config):
        """Test a non-JSON prediction response is retried instead of aborting the batch."""
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(200, text="<html>gateway</html>")
            return httpx.Response(201, json={"status": "succeeded", "output": [f"https://img/{len(calls)}.png"]})

        backend = ReplicateImageBackend(
            api_key="r8-test", client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
        )
        store.save_scenes(project.id, plain_scenes(3))
        sleep = RecordingSleep()
        batch = VisualBatchGenerator(ScriptedGenerator(), backend, store, config, sleep=sleep)

        result = await batch.generate_batch(project.id)

        assert result.status == RunStatus.COMPLETED
        assert result.generated == ["scene_1", "scene_2", "scene_3"]
        assert len(calls) == 4
        assert store.get_image(project.id, "scene_1").image_url == "https://img/2.png"
        assert {s["status"] for s in batch.get_status(project.id)} == {"completed"}

    @pytest.mark.asyncio
    async def test_unexpected_error_releases_scene(self, store, project, config):
        """Test a backend bug stops the batch without leaving a scene generating."""
        class BrokenBackend(FakeImageBackend):
            async def generate(self, prompt, aspect_ratio="16:9", safety_level="block_medium_and_above"):
                raise KeyError("id")

        store.save_scenes(project.id, plain_scenes(2))
        batch = VisualBatchGenerator(ScriptedGenerator(), BrokenBackend(), store, config, sleep=RecordingSleep())

        with pytest.raises(KeyError):
            await batch.generate_batch(project.id)

        assert batch.get_status(project.id) == [
            {"scene_id": "scene_1", "status": "failed"},
            {"scene_id": "scene_2", "status": "pending"},
        ]
        assert not batch.is_running(project.id)
