"""
Filmflow Analysis Pipeline

Runs a requested subset of analysis stages in dependency order, recording
a status row per stage. A failing stage never aborts the run: it is
recorded as failed, stages that needed its output are recorded as failed
with a DependencyFailure, and everything else keeps going.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set

from filmflow.analysis.casting import select_significant_characters, suggest_casting
from filmflow.analysis.characters import analyze_characters
from filmflow.analysis.financial import generate_financial_plan
from filmflow.analysis.locations import suggest_locations
from filmflow.analysis.models import (
    CastingResult,
    CharacterAnalysis,
    FinancialBreakdown,
    Project,
    ProjectProgress,
    VfxAnalysisResult,
)
from filmflow.analysis.product_placement import analyze_product_placement
from filmflow.analysis.scenes import extract_scenes
from filmflow.analysis.summary import generate_summary
from filmflow.analysis.vfx import analyze_vfx
from filmflow.core.config import FilmflowConfig
from filmflow.core.constants import (
    SOFT_STAGE_DEPENDENCIES,
    STAGE_DEPENDENCIES,
    STAGE_ORDER,
    RunStatus,
    StageName,
    StageStatus,
)
from filmflow.core.exceptions import (
    DependencyFailure,
    PipelineAlreadyRunning,
    PipelineCancelled,
    PipelineStageError,
    StageValidationError,
)
from filmflow.core.logging_config import get_logger
from filmflow.llm.generator import ContentGenerator
from filmflow.storage.base import RelationalStore

logger = get_logger("pipelines.analysis")


@dataclass
class StageContext:
    """Everything a stage handler needs for one project."""
    project: Project
    generator: ContentGenerator
    store: RelationalStore
    config: FilmflowConfig
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @property
    def project_id(self) -> str:
        return self.project.id

    def artifact(self, stage: StageName) -> Any:
        return self.store.get_artifact(self.project.id, stage.value)


StageHandler = Callable[[StageContext], Awaitable[Any]]


@dataclass
class PipelineRunResult:
    """Outcome of one pipeline run."""
    project_id: str
    status: RunStatus
    completed: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    pending: List[str] = field(default_factory=list)
    percent_complete: float = 0.0
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED


# =============================================================================
# DEFAULT STAGE HANDLERS
# =============================================================================

def _require_scenes(ctx: StageContext) -> list:
    scenes = ctx.store.get_scenes(ctx.project_id)
    if not scenes:
        raise StageValidationError(f"No scenes stored for project {ctx.project_id}")
    return scenes


async def run_scenes_stage(ctx: StageContext):
    scenes = await extract_scenes(ctx.generator, ctx.project.script_content, ctx.config)
    ctx.store.save_scenes(ctx.project_id, scenes)
    return scenes


async def run_characters_stage(ctx: StageContext):
    analysis = await analyze_characters(ctx.generator, _require_scenes(ctx), ctx.config, sleep=ctx.sleep)
    ctx.store.save_character_analysis(ctx.project_id, analysis)
    return analysis


async def run_casting_stage(ctx: StageContext):
    analysis = ctx.store.get_character_analysis(ctx.project_id)
    if analysis is None:
        raise StageValidationError(f"No character analysis stored for project {ctx.project_id}")
    significant = select_significant_characters(analysis.characters)
    logger.info(f"Casting {len(significant)} significant character(s) of {len(analysis.characters)}")
    return await suggest_casting(
        ctx.generator,
        significant,
        analysis.summaries,
        ctx.project.budget_tier,
        ctx.config,
        sleep=ctx.sleep,
    )


async def run_vfx_stage(ctx: StageContext):
    scenes = _require_scenes(ctx)
    result = await analyze_vfx(ctx.generator, scenes, ctx.config, sleep=ctx.sleep)
    ctx.store.save_scenes(ctx.project_id, scenes)
    return result


async def run_product_placement_stage(ctx: StageContext):
    scenes = _require_scenes(ctx)
    brandables = await analyze_product_placement(ctx.generator, scenes, ctx.config)
    ctx.store.save_scenes(ctx.project_id, scenes)
    return brandables


async def run_locations_stage(ctx: StageContext):
    return await suggest_locations(
        ctx.generator,
        ctx.project.script_content,
        _require_scenes(ctx),
        ctx.project.total_budget,
        ctx.config,
    )


async def run_financial_stage(ctx: StageContext):
    return await generate_financial_plan(ctx.generator, ctx.project, ctx.config)


async def run_summary_stage(ctx: StageContext):
    artifacts = dict(ctx.store.get_artifacts(ctx.project_id))
    artifacts[StageName.SCENES.value] = ctx.store.get_scenes(ctx.project_id)
    report = await generate_summary(ctx.generator, ctx.project, artifacts, ctx.config)
    if report is None:
        raise PipelineStageError(StageName.SUMMARY.value, "summary too short or unavailable")
    return report


DEFAULT_STAGE_HANDLERS: Dict[StageName, StageHandler] = {
    StageName.SCENES: run_scenes_stage,
    StageName.CHARACTERS: run_characters_stage,
    StageName.CASTING: run_casting_stage,
    StageName.VFX: run_vfx_stage,
    StageName.PRODUCT_PLACEMENT: run_product_placement_stage,
    StageName.LOCATIONS: run_locations_stage,
    StageName.FINANCIAL_PLAN: run_financial_stage,
    StageName.SUMMARY: run_summary_stage,
}


def summarize_artifact(artifact: Any) -> Dict[str, Any]:
    """Counts recorded as a stage's result_summary."""
    if isinstance(artifact, CharacterAnalysis):
        return {"characters": len(artifact.characters), "relationships": len(artifact.relationships)}
    if isinstance(artifact, CastingResult):
        return {
            "recommendations": len(artifact.recommendations),
            "missing_characters": list(artifact.missing_characters),
        }
    if isinstance(artifact, VfxAnalysisResult):
        return {
            "analyzed": len(artifact.analyses),
            "vfx_scenes": artifact.vfx_scene_count,
            "issues": len(artifact.issues),
        }
    if isinstance(artifact, FinancialBreakdown):
        return {"grand_total": str(artifact.summary_grand_total)}
    if isinstance(artifact, str):
        return {"length": len(artifact)}
    if isinstance(artifact, (list, tuple)):
        return {"count": len(artifact)}
    return {}


# =============================================================================
# ORCHESTRATOR
# =============================================================================

def parse_stages(stages: Iterable) -> List[StageName]:
    """
    Validate stage names.

    Raises:
        StageValidationError: For unknown names or an empty request
    """
    parsed = []
    for stage in stages or []:
        if isinstance(stage, StageName):
            parsed.append(stage)
            continue
        try:
            parsed.append(StageName(str(stage)))
        except ValueError:
            raise StageValidationError(f"Unknown stage: {stage}")
    if not parsed:
        raise StageValidationError("No stages requested")
    return list(dict.fromkeys(parsed))


def execution_order(stages: Iterable[StageName]) -> List[StageName]:
    """Dependency order; canonical order breaks ties."""
    requested = set(stages)
    return [stage for stage in STAGE_ORDER if stage in requested]


def dependencies_for(stage: StageName, requested: Set[StageName]) -> List[StageName]:
    """Hard dependencies, plus soft ones that are part of this run."""
    soft = [s for s in SOFT_STAGE_DEPENDENCIES.get(stage, []) if s in requested]
    return list(STAGE_DEPENDENCIES.get(stage, [])) + soft


class AnalysisPipeline:
    """
    Dependency-ordered runner for analysis stages.

    Features:
    - Per-stage status records that only move forward
    - Partial failure with DependencyFailure for skipped dependents
    - Progress recomputed after every finished stage
    - Cooperative cancellation between stages
    - One active run per project
    """

    def __init__(
        self,
        generator: ContentGenerator,
        store: RelationalStore,
        config: FilmflowConfig,
        stage_handlers: Optional[Dict[StageName, StageHandler]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the pipeline.

        Args:
            generator: Content generator shared by all stages
            store: Persistence collaborator
            config: Application configuration
            stage_handlers: Overrides for the default handler of any stage
            sleep: Awaitable sleep passed to stages with inter-item delays
        """
        self.generator = generator
        self.store = store
        self.config = config
        self.sleep = sleep
        self._handlers: Dict[StageName, StageHandler] = dict(DEFAULT_STAGE_HANDLERS)
        if stage_handlers:
            self._handlers.update(stage_handlers)
        self._active_runs: Set[str] = set()
        self._cancel_requested: Set[str] = set()

    def is_running(self, project_id: str) -> bool:
        if project_id in self._active_runs:
            return True
        records = self.store.get_stage_records(project_id)
        return any(r.status == StageStatus.PROCESSING for r in records.values())

    def cancel(self, project_id: str) -> bool:
        """Request cancellation; takes effect before the next stage starts."""
        if project_id not in self._active_runs:
            return False
        self._cancel_requested.add(project_id)
        logger.info(f"Cancellation requested for project {project_id}")
        return True

    def begin(self, project_id: str, stages: Iterable) -> List[StageName]:
        """
        Accept a run: validate it, reset its stage records and mark it active.

        Must be followed by execute(); run() does both.

        Raises:
            StageValidationError: For unknown stage names
            PipelineAlreadyRunning: If the project has an active run
            NotFoundError: If the project does not exist
        """
        requested = parse_stages(stages)
        self.store.get_project(project_id)
        if self.is_running(project_id):
            raise PipelineAlreadyRunning(project_id)

        for stage in requested:
            self.store.reset_stage(project_id, stage.value)
        self._update_progress(project_id, requested)
        self._active_runs.add(project_id)
        self._cancel_requested.discard(project_id)
        return requested

    async def execute(self, project_id: str, requested: List[StageName]) -> PipelineRunResult:
        """Execute a run accepted by begin()."""
        start_time = datetime.now()
        try:
            return await self._run_stages(project_id, requested, start_time)
        finally:
            self._active_runs.discard(project_id)
            self._cancel_requested.discard(project_id)

    async def run(self, project_id: str, stages: Iterable) -> PipelineRunResult:
        """
        Run the requested stages for a project.

        Args:
            project_id: Project to analyze
            stages: Stage names (StageName or str)

        Returns:
            PipelineRunResult summarizing completed, failed and pending stages
        """
        requested = self.begin(project_id, stages)
        return await self.execute(project_id, requested)

    async def _run_stages(
        self,
        project_id: str,
        requested: List[StageName],
        start_time: datetime,
    ) -> PipelineRunResult:
        project = self.store.get_project(project_id)
        ctx = StageContext(project, self.generator, self.store, self.config, self.sleep)
        requested_set = set(requested)
        result = PipelineRunResult(project_id=project_id, status=RunStatus.RUNNING)
        cancelled = False

        logger.info(f"Starting analysis for project {project_id}: {[s.value for s in requested]}")

        for stage in execution_order(requested):
            if project_id in self._cancel_requested:
                cancelled = True
                break

            unmet = self._unmet_dependencies(project_id, stage, requested_set, result)
            if unmet:
                error = DependencyFailure(stage.value, [s.value for s in unmet])
                logger.warning(str(error))
                self.store.update_stage(
                    project_id, stage.value, StageStatus.FAILED,
                    error_message=str(error), error_kind=type(error).__name__,
                )
                result.failed[stage.value] = str(error)
                self._update_progress(project_id, requested)
                continue

            self.store.update_stage(project_id, stage.value, StageStatus.PROCESSING)
            logger.info(f"Stage {stage.value} started for project {project_id}")

            try:
                artifact = await self._handlers[stage](ctx)
            except asyncio.CancelledError:
                error = PipelineCancelled(project_id)
                logger.warning(f"Stage {stage.value} interrupted for project {project_id}")
                self.store.update_stage(
                    project_id, stage.value, StageStatus.FAILED,
                    error_message=str(error), error_kind=type(error).__name__,
                )
                self._update_progress(project_id, requested)
                raise
            except PipelineCancelled as e:
                self.store.update_stage(
                    project_id, stage.value, StageStatus.FAILED,
                    error_message=str(e), error_kind=type(e).__name__,
                )
                result.failed[stage.value] = str(e)
                cancelled = True
                break
            except Exception as e:
                logger.error(f"Stage {stage.value} failed for project {project_id}: {e}")
                self.store.update_stage(
                    project_id, stage.value, StageStatus.FAILED,
                    error_message=str(e), error_kind=type(e).__name__,
                )
                result.failed[stage.value] = str(e)
                self._update_progress(project_id, requested)
                continue

            self.store.save_artifact(project_id, stage.value, artifact)
            self.store.update_stage(
                project_id, stage.value, StageStatus.COMPLETED,
                result_summary=summarize_artifact(artifact),
            )
            result.completed.append(stage.value)
            logger.info(f"Stage {stage.value} completed for project {project_id}")
            self._update_progress(project_id, requested)

        records = self.store.get_stage_records(project_id)
        result.pending = [
            s.value for s in requested
            if records.get(s.value) is not None and records[s.value].status == StageStatus.PENDING
        ]
        result.percent_complete = self.store.get_progress(project_id).percent_complete
        result.duration_seconds = (datetime.now() - start_time).total_seconds()

        if cancelled:
            result.status = RunStatus.CANCELLED
        elif not result.failed:
            result.status = RunStatus.COMPLETED
        elif result.completed:
            result.status = RunStatus.PARTIAL
        else:
            result.status = RunStatus.FAILED

        logger.info(
            f"Analysis for project {project_id} finished: {result.status.value} "
            f"({len(result.completed)} completed, {len(result.failed)} failed)"
        )
        return result

    def _unmet_dependencies(
        self,
        project_id: str,
        stage: StageName,
        requested: Set[StageName],
        result: PipelineRunResult,
    ) -> List[StageName]:
        unmet = []
        for dependency in dependencies_for(stage, requested):
            if dependency in requested:
                if dependency.value not in result.completed:
                    unmet.append(dependency)
            elif not self.store.has_artifact(project_id, dependency.value):
                unmet.append(dependency)
        return unmet

    def _update_progress(self, project_id: str, requested: List[StageName]) -> ProjectProgress:
        records = self.store.get_stage_records(project_id)
        completed = sum(
            1 for s in requested
            if s.value in records and records[s.value].status == StageStatus.COMPLETED
        )
        total = len(requested)
        progress = ProjectProgress(
            project_id=project_id,
            percent_complete=round(completed / total * 100, 2) if total else 0.0,
            completed=completed,
            total=total,
        )
        self.store.save_progress(progress)
        return progress
