"""
Filmflow Storyboard Visual Batch

Generates one storyboard frame per scene in two phases:

1. Consistency profiles: every character that appears in a scene gets a
   stored visual profile before any image references it.
2. Frames: scenes are processed in order, one image call at a time, with
   per-item retry and a circuit breaker that pauses the batch after a run
   of consecutive failures. Scenes that already have an image are skipped,
   so an interrupted batch resumes where it stopped.
"""

import asyncio
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Dict, List, Optional, Set

from filmflow.analysis.helpers import first_present, normalize_name, stage_options, truncate
from filmflow.analysis.models import CharacterProfile, Scene, StoryboardImage
from filmflow.core.config import FilmflowConfig
from filmflow.core.constants import (
    FALLBACK_COSTUME,
    FALLBACK_VISUAL_STYLE,
    RunStatus,
    SceneImageStatus,
)
from filmflow.core.exceptions import (
    AllProvidersFailed,
    ExtractionFailure,
    ImageGenerationError,
    PipelineAlreadyRunning,
    ProviderCallFailure,
)
from filmflow.core.logging_config import get_logger
from filmflow.core.retry import IMAGE_GENERATION_RETRY_CONFIG, CircuitBreaker, RetryConfig, retry_async_call
from filmflow.extraction.json_extractor import Expect, extract_structured
from filmflow.llm.generator import ContentGenerator
from filmflow.llm.image_backend import ImageBackend
from filmflow.storage.base import RelationalStore

logger = get_logger("storyboard.visual_batch")

PROFILE_STAGE = "storyboard"

PROFILE_PROMPT = """Analyze this screenplay content for the character "{name}" in "{title}" and create a detailed visual description that will ensure consistent representation across all storyboard images.

SCENE CONTEXT:
{context}

Create a comprehensive character profile with:
1. PHYSICAL DESCRIPTION: Age range, height, build, facial features, hair, distinctive characteristics
2. COSTUME/CLOTHING: Primary outfit style, colors, accessories, any costume changes noted
3. VISUAL STYLE: Overall aesthetic, personality reflected in appearance, era/setting appropriate details

Respond in JSON format:
{{
  "physicalDescription": "detailed physical appearance",
  "costumeDescription": "clothing and accessories",
  "visualStyle": "overall aesthetic and style notes"
}}
"""

SCENE_PROMPT = """Create a cinematic film storyboard frame for this scene:

SCENE: {heading}
LOCATION: {location}
TIME: {time_of_day}

SCENE CONTENT:
{content}

CHARACTER CONSISTENCY (maintain these exact descriptions):
{characters}

VISUAL REQUIREMENTS:
- Cinematic composition suitable for film storyboard
- Professional cinematography lighting and framing
- Show characters as described above with exact consistency
- Capture the key dramatic moment of the scene
- Appropriate mood and atmosphere for the scene

Style: Professional film storyboard, cinematic lighting, movie production quality"""


@dataclass
class VisualBatchResult:
    """Outcome of one visual batch run."""
    project_id: str
    status: RunStatus
    generated: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    pending: List[str] = field(default_factory=list)
    breaker_trips: int = 0


def fallback_profile(project_id: str, character_name: str, project_title: str) -> CharacterProfile:
    """Deterministic profile stored when generation fails."""
    return CharacterProfile(
        project_id=project_id,
        character_name=character_name,
        physical_description=f"{character_name} - character from {project_title}",
        costume_description=FALLBACK_COSTUME,
        visual_style=FALLBACK_VISUAL_STYLE,
        is_fallback=True,
    )


def characters_in_order(scenes: List[Scene]) -> List[str]:
    """Distinct character names across scenes, first-seen order."""
    seen: Set[str] = set()
    names = []
    for scene in scenes:
        for name in scene.characters:
            key = normalize_name(name)
            if key and key not in seen:
                seen.add(key)
                names.append(name.strip())
    return names


def build_scene_prompt(scene: Scene, profiles: List[CharacterProfile], content_chars: int = 1000) -> str:
    lines = [
        f"{p.character_name}: {p.physical_description}. {p.costume_description}. {p.visual_style}"
        for p in profiles
    ]
    return SCENE_PROMPT.format(
        heading=scene.description or f"Scene {scene.scene_number}",
        location=scene.location,
        time_of_day=scene.time_of_day,
        content=truncate(scene.content, content_chars),
        characters="\n".join(lines) or "No named characters",
    )


class VisualBatchGenerator:
    """
    Sequential storyboard generator with retry and a circuit breaker.

    Features:
    - Character consistency profiles created before the first frame
    - Idempotent resume (scenes with images are skipped)
    - Per-scene status tracking
    - Cooperative cancellation between scenes
    - One active batch per project
    """

    def __init__(
        self,
        generator: ContentGenerator,
        image_backend: ImageBackend,
        store: RelationalStore,
        config: FilmflowConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the batch generator.

        Args:
            generator: Content generator used for consistency profiles
            image_backend: Backend producing image URLs
            store: Persistence collaborator
            config: Application configuration (uses config.visual)
            sleep: Awaitable sleep for delays, backoff and cool-downs
        """
        self.generator = generator
        self.image_backend = image_backend
        self.store = store
        self.config = config
        self.sleep = sleep
        self._statuses: Dict[str, Dict[str, SceneImageStatus]] = {}
        self._active: Set[str] = set()
        self._cancel_requested: Set[str] = set()

    @property
    def retry_config(self) -> RetryConfig:
        visual = self.config.visual
        return replace(
            IMAGE_GENERATION_RETRY_CONFIG,
            max_attempts=visual.max_attempts,
            base_delay=visual.base_delay,
            retryable_exceptions=(ImageGenerationError, ProviderCallFailure),
        )

    def is_running(self, project_id: str) -> bool:
        return project_id in self._active

    def cancel(self, project_id: str) -> bool:
        """Request cancellation; takes effect before the next scene."""
        if project_id not in self._active:
            return False
        self._cancel_requested.add(project_id)
        logger.info(f"Visual batch cancellation requested for project {project_id}")
        return True

    # =========================================================================
    # PHASE A: CONSISTENCY PROFILES
    # =========================================================================

    async def _generate_profile(self, project_id: str, name: str, title: str, scenes: List[Scene]) -> CharacterProfile:
        visual = self.config.visual
        key = normalize_name(name)
        context_scenes = [s for s in scenes if key in {normalize_name(c) for c in s.characters}]
        context = "\n\n".join(s.content for s in context_scenes[:visual.profile_context_scenes])

        primary, options = stage_options(self.config, PROFILE_STAGE)
        prompt = PROFILE_PROMPT.format(
            name=name,
            title=title,
            context=truncate(context, visual.profile_context_chars),
        )
        try:
            text = await self.generator.generate(primary, prompt, options)
            data = extract_structured(text, Expect.OBJECT, required_field="physicalDescription")
        except (AllProvidersFailed, ExtractionFailure) as e:
            logger.warning(f"Profile for {name} fell back to defaults: {e}")
            return fallback_profile(project_id, name, title)

        fallback = fallback_profile(project_id, name, title)
        return CharacterProfile(
            project_id=project_id,
            character_name=name,
            physical_description=str(
                first_present(data, "physicalDescription", default=fallback.physical_description)
            ),
            costume_description=str(first_present(data, "costumeDescription", default=fallback.costume_description)),
            visual_style=str(first_present(data, "visualStyle", default=fallback.visual_style)),
        )

    async def ensure_character_profiles(self, project_id: str) -> List[CharacterProfile]:
        """
        Make sure every character in the project's scenes has a profile.

        Returns:
            Profiles for all characters, in first-seen order
        """
        project = self.store.get_project(project_id)
        scenes = sorted(self.store.get_scenes(project_id), key=lambda s: s.scene_number)
        profiles = []
        created = 0

        for name in characters_in_order(scenes):
            profile = self.store.get_profile(project_id, name)
            if profile is None:
                profile = await self._generate_profile(project_id, name, project.title, scenes)
                self.store.save_profile(profile)
                created += 1
            profiles.append(profile)

        logger.info(f"Character profiles ready for project {project_id}: {len(profiles)} ({created} new)")
        return profiles

    # =========================================================================
    # PHASE B: FRAMES
    # =========================================================================

    def _set_status(self, project_id: str, scene_id: str, status: SceneImageStatus) -> None:
        self._statuses.setdefault(project_id, {})[scene_id] = status

    def begin(self, project_id: str) -> None:
        """
        Mark a batch active for the project.

        Raises:
            PipelineAlreadyRunning: If a batch is already running
            NotFoundError: If the project does not exist
        """
        self.store.get_project(project_id)
        if project_id in self._active:
            raise PipelineAlreadyRunning(project_id, kind="visual batch")
        self._active.add(project_id)
        self._cancel_requested.discard(project_id)

    async def generate_batch(self, project_id: str) -> VisualBatchResult:
        """
        Generate storyboard frames for every scene that lacks one.

        Returns:
            VisualBatchResult with generated, skipped, failed and pending scenes
        """
        self.begin(project_id)
        return await self.execute(project_id)

    async def execute(self, project_id: str) -> VisualBatchResult:
        """Run a batch accepted by begin()."""
        try:
            return await self._run_batch(project_id)
        except BaseException:
            # No scene may stay "generating" once the batch has stopped
            for scene_id, status in self._statuses.get(project_id, {}).items():
                if status == SceneImageStatus.GENERATING:
                    self._set_status(project_id, scene_id, SceneImageStatus.FAILED)
            raise
        finally:
            self._active.discard(project_id)
            self._cancel_requested.discard(project_id)

    async def _run_batch(self, project_id: str) -> VisualBatchResult:
        visual = self.config.visual
        scenes = sorted(self.store.get_scenes(project_id), key=lambda s: s.scene_number)
        self._statuses[project_id] = {s.id: SceneImageStatus.PENDING for s in scenes}
        result = VisualBatchResult(project_id=project_id, status=RunStatus.RUNNING)

        profiles = await self.ensure_character_profiles(project_id)
        profile_by_name = {normalize_name(p.character_name): p for p in profiles}

        breaker = CircuitBreaker(
            failure_threshold=visual.failure_threshold,
            cooldown_seconds=visual.cooldown_seconds,
            sleep=self.sleep,
            name=f"storyboard:{project_id}",
        )
        retry_config = self.retry_config
        made_call = False
        cancelled = False

        logger.info(f"Starting visual batch for project {project_id}: {len(scenes)} scene(s)")

        for scene in scenes:
            if project_id in self._cancel_requested:
                cancelled = True
                break

            if self.store.get_image(project_id, scene.id) is not None:
                self._set_status(project_id, scene.id, SceneImageStatus.SKIPPED)
                result.skipped.append(scene.id)
                continue

            if made_call:
                await self.sleep(visual.inter_item_delay)

            present = [
                profile_by_name[normalize_name(c)]
                for c in scene.characters if normalize_name(c) in profile_by_name
            ]
            prompt = build_scene_prompt(scene, present, visual.scene_content_chars)

            await breaker.wait_if_open()
            self._set_status(project_id, scene.id, SceneImageStatus.GENERATING)
            made_call = True

            try:
                image_url = await retry_async_call(
                    self.image_backend.generate,
                    prompt,
                    visual.aspect_ratio,
                    visual.safety_level,
                    config=retry_config,
                    sleep=self.sleep,
                )
            except (ImageGenerationError, ProviderCallFailure) as e:
                logger.error(f"Storyboard frame failed for {scene.id}: {e}")
                self._set_status(project_id, scene.id, SceneImageStatus.FAILED)
                result.failed[scene.id] = str(e)
                breaker.record_failure()
                continue

            self.store.save_image(project_id, StoryboardImage(
                scene_id=scene.id,
                image_url=image_url,
                prompt=prompt,
                characters_present=[p.character_name for p in present],
            ))
            self._set_status(project_id, scene.id, SceneImageStatus.COMPLETED)
            result.generated.append(scene.id)
            breaker.record_success()

        result.pending = [
            scene_id for scene_id, status in self._statuses[project_id].items()
            if status == SceneImageStatus.PENDING
        ]
        result.breaker_trips = breaker.trips

        if cancelled:
            result.status = RunStatus.CANCELLED
        elif not result.failed:
            result.status = RunStatus.COMPLETED
        elif result.generated or result.skipped:
            result.status = RunStatus.PARTIAL
        else:
            result.status = RunStatus.FAILED

        logger.info(
            f"Visual batch for project {project_id} finished: {result.status.value} "
            f"({len(result.generated)} generated, {len(result.skipped)} skipped, "
            f"{len(result.failed)} failed)"
        )
        return result

    def get_status(self, project_id: str) -> List[Dict[str, str]]:
        """Per-scene status; derived from stored images when no batch has run."""
        tracked = self._statuses.get(project_id)
        if tracked is None:
            return [
                {
                    "scene_id": scene.id,
                    "status": (
                        SceneImageStatus.COMPLETED if self.store.get_image(project_id, scene.id)
                        else SceneImageStatus.PENDING
                    ).value,
                }
                for scene in sorted(self.store.get_scenes(project_id), key=lambda s: s.scene_number)
            ]
        return [{"scene_id": scene_id, "status": status.value} for scene_id, status in tracked.items()]
