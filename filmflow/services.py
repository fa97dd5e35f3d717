"""
Filmflow Services

Application context: one provider registry, generator, store, image backend
and CRM client, built once and shared by reference. Implements the
operations the HTTP layer and other callers use.
"""

import asyncio
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Set

from filmflow.analysis.casting import analyze_single_actor_suggestion
from filmflow.analysis.models import ActorAnalysis, Project
from filmflow.analysis.script_document import UNTITLED_SCRIPT, extract_script_from_document
from filmflow.core.config import FilmflowConfig
from filmflow.core.constants import STAGE_ORDER, BudgetTier
from filmflow.core.env_loader import get_hubspot_api_key
from filmflow.core.logging_config import get_logger
from filmflow.integrations.hubspot import HubSpotCRM, LeadContact, LeadResult, submit_lead_safely
from filmflow.llm.generator import ContentGenerator
from filmflow.llm.image_backend import ImageBackend, create_image_backend
from filmflow.llm.provider_registry import ProviderRegistry
from filmflow.pipelines.analysis_pipeline import AnalysisPipeline, PipelineRunResult, parse_stages
from filmflow.storage.base import RelationalStore
from filmflow.storage.memory_store import InMemoryStore
from filmflow.storyboard.visual_batch import VisualBatchGenerator, VisualBatchResult

logger = get_logger("services")


class FilmflowServices:
    """
    Shared application context.

    Collaborators not passed in are built from the configuration. The image
    backend is created on first use so a missing image credential only
    affects storyboard requests.
    """

    def __init__(
        self,
        config: FilmflowConfig = None,
        registry: ProviderRegistry = None,
        store: RelationalStore = None,
        image_backend: ImageBackend = None,
        crm: Optional[HubSpotCRM] = None,
        sleep=asyncio.sleep,
    ):
        self.config = config or FilmflowConfig()
        self.registry = registry or ProviderRegistry()
        self.generator = ContentGenerator(self.registry)
        self.store = store or InMemoryStore()
        self.crm = crm if crm is not None else self._default_crm()
        self.sleep = sleep
        self._image_backend = image_backend
        self._visual: Optional[VisualBatchGenerator] = None
        self.pipeline = AnalysisPipeline(self.generator, self.store, self.config, sleep=sleep)
        self._tasks: Set[asyncio.Task] = set()

    def _default_crm(self) -> Optional[HubSpotCRM]:
        if not self.config.crm.enabled:
            return None
        if not get_hubspot_api_key():
            logger.warning("HUBSPOT_API_KEY not set, lead sync disabled")
            return None
        return HubSpotCRM(config=self.config.crm)

    @property
    def image_backend(self) -> ImageBackend:
        if self._image_backend is None:
            self._image_backend = create_image_backend(self.config.image_backend)
        return self._image_backend

    @property
    def visual(self) -> VisualBatchGenerator:
        if self._visual is None:
            self._visual = VisualBatchGenerator(
                self.generator, self.image_backend, self.store, self.config, sleep=self.sleep
            )
        return self._visual

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_finished)
        return task

    def _task_finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background task {task.get_name()} failed: {type(error).__name__}: {error}")

    # =========================================================================
    # PROJECTS
    # =========================================================================

    def create_project(
        self,
        title: str,
        script_content: str,
        total_budget: Decimal = Decimal("0"),
        budget_tier: BudgetTier = BudgetTier.MEDIUM,
        logline: str = "",
        synopsis: str = "",
        expected_release_date: str = None,
        project_id: str = "",
    ) -> Project:
        project = Project(
            id=project_id,
            title=title,
            script_content=script_content,
            total_budget=Decimal(str(total_budget)),
            budget_tier=budget_tier,
            logline=logline,
            synopsis=synopsis,
            expected_release_date=expected_release_date,
        )
        return self.store.save_project(project)

    async def create_project_from_document(
        self,
        document: bytes,
        mime_type: str,
        title: str = "",
        **project_fields,
    ) -> Project:
        """
        Create a project whose script is transcribed from a PDF or image.

        The title falls back to one guessed from the script text.

        Raises:
            StageValidationError: For empty or unsupported documents
            AllProvidersFailed: If no document-capable provider succeeded
        """
        script = await extract_script_from_document(self.generator, document, mime_type, self.config)
        return self.create_project(
            title=title or script.title or UNTITLED_SCRIPT,
            script_content=script.content,
            **project_fields,
        )

    # =========================================================================
    # ANALYSIS PIPELINE
    # =========================================================================

    def accept_pipeline(self, project_id: str, stages: Optional[Iterable] = None) -> List[str]:
        """
        Validate and reserve a run; execute_pipeline() must follow.

        Raises:
            PipelineAlreadyRunning: If a run is active
            StageValidationError: For unknown stage names
            NotFoundError: If the project does not exist
        """
        requested = self.pipeline.begin(project_id, stages or list(STAGE_ORDER))
        return [stage.value for stage in requested]

    async def execute_pipeline(self, project_id: str, stages: List[str]) -> PipelineRunResult:
        return await self.pipeline.execute(project_id, parse_stages(stages))

    def start_pipeline(self, project_id: str, stages: Optional[Iterable] = None) -> Dict[str, Any]:
        """
        Schedule an analysis run and return immediately.

        Must be called from a running event loop.
        """
        requested = self.accept_pipeline(project_id, stages)
        self._spawn(self.execute_pipeline(project_id, requested))
        logger.info(f"Analysis scheduled for project {project_id}")
        return {"accepted": True, "project_id": project_id, "stages": requested}

    def cancel_pipeline(self, project_id: str) -> bool:
        return self.pipeline.cancel(project_id)

    def get_progress(self, project_id: str) -> Dict[str, Any]:
        self.store.get_project(project_id)
        progress = self.store.get_progress(project_id)
        records = self.store.get_stage_records(project_id)
        return {
            "project_id": project_id,
            "percent_complete": progress.percent_complete,
            "running": self.pipeline.is_running(project_id),
            "stages": {name: record.status.value for name, record in records.items()},
            "errors": {
                name: {"message": record.error_message, "kind": record.error_kind}
                for name, record in records.items() if record.error_message
            },
        }

    # =========================================================================
    # STORYBOARD
    # =========================================================================

    def accept_visual_batch(self, project_id: str) -> None:
        self.visual.begin(project_id)

    async def execute_visual_batch(self, project_id: str) -> VisualBatchResult:
        return await self.visual.execute(project_id)

    def generate_visual_batch(self, project_id: str) -> Dict[str, Any]:
        """Schedule a storyboard batch and return immediately."""
        self.accept_visual_batch(project_id)
        self._spawn(self.execute_visual_batch(project_id))
        return {"accepted": True, "project_id": project_id}

    def cancel_visual_batch(self, project_id: str) -> bool:
        return self.visual.cancel(project_id)

    def get_visual_batch_status(self, project_id: str) -> List[Dict[str, str]]:
        self.store.get_project(project_id)
        return self.visual.get_status(project_id)

    # =========================================================================
    # CASTING & LEADS
    # =========================================================================

    async def analyze_single_actor_suggestion(
        self,
        character_name: str,
        actor_name: str,
        context: str = "",
    ) -> ActorAnalysis:
        return await analyze_single_actor_suggestion(
            self.generator, character_name, actor_name, context, self.config
        )

    async def submit_lead(self, contact: LeadContact) -> Optional[LeadResult]:
        """Sync a lead to the CRM; never raises for CRM failures."""
        return await submit_lead_safely(self.crm, contact)

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._image_backend is not None:
            await self._image_backend.aclose()
        if self.crm is not None:
            await self.crm.aclose()
