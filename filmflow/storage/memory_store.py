"""
Filmflow In-Memory Store

Process-local RelationalStore used by default and in tests.
"""

import threading
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from filmflow.analysis.models import (
    CharacterAnalysis,
    CharacterProfile,
    Project,
    ProjectProgress,
    Scene,
    StageRecord,
    StoryboardImage,
)
from filmflow.analysis.helpers import normalize_name
from filmflow.core.constants import StageName, StageStatus
from filmflow.core.exceptions import InvalidStageTransition, NotFoundError
from filmflow.core.logging_config import get_logger
from filmflow.storage.base import RelationalStore

logger = get_logger("storage.memory")

# Allowed forward moves; anything else needs reset_stage
_TRANSITIONS = {
    StageStatus.PENDING: {StageStatus.PROCESSING, StageStatus.FAILED},
    StageStatus.PROCESSING: {StageStatus.COMPLETED, StageStatus.FAILED},
    StageStatus.COMPLETED: set(),
    StageStatus.FAILED: set(),
}


class InMemoryStore(RelationalStore):
    """
    Thread-safe dict-backed store.

    The lock guards dict access only; it is never held across an await.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._projects: Dict[str, Project] = {}
        self._scenes: Dict[str, List[Scene]] = {}
        self._characters: Dict[str, CharacterAnalysis] = {}
        self._stages: Dict[str, Dict[str, StageRecord]] = {}
        self._progress: Dict[str, ProjectProgress] = {}
        self._profiles: Dict[Tuple[str, str], CharacterProfile] = {}
        self._images: Dict[str, Dict[str, StoryboardImage]] = {}
        self._artifacts: Dict[Tuple[str, str], Any] = {}

    # =========================================================================
    # PROJECTS
    # =========================================================================

    def save_project(self, project: Project) -> Project:
        with self._lock:
            if not project.id:
                project.id = uuid.uuid4().hex[:12]
            self._projects[project.id] = project
        logger.debug(f"Saved project {project.id}")
        return project

    def get_project(self, project_id: str) -> Project:
        with self._lock:
            project = self._projects.get(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    def list_projects(self) -> List[Project]:
        with self._lock:
            return list(self._projects.values())

    # =========================================================================
    # SCENES & CHARACTERS
    # =========================================================================

    def save_scenes(self, project_id: str, scenes: List[Scene]) -> None:
        with self._lock:
            self._scenes[project_id] = list(scenes)

    def get_scenes(self, project_id: str) -> List[Scene]:
        with self._lock:
            return list(self._scenes.get(project_id, []))

    def save_character_analysis(self, project_id: str, analysis: CharacterAnalysis) -> None:
        with self._lock:
            self._characters[project_id] = analysis

    def get_character_analysis(self, project_id: str) -> Optional[CharacterAnalysis]:
        with self._lock:
            return self._characters.get(project_id)

    def get_characters(self, project_id: str) -> list:
        analysis = self.get_character_analysis(project_id)
        return list(analysis.characters) if analysis else []

    def get_character_summaries(self, project_id: str) -> list:
        analysis = self.get_character_analysis(project_id)
        return list(analysis.summaries) if analysis else []

    def get_relationships(self, project_id: str) -> list:
        analysis = self.get_character_analysis(project_id)
        return list(analysis.relationships) if analysis else []

    # =========================================================================
    # STAGE RECORDS & PROGRESS
    # =========================================================================

    def _record(self, project_id: str, stage_name: str) -> StageRecord:
        records = self._stages.setdefault(project_id, {})
        record = records.get(stage_name)
        if record is None:
            record = StageRecord(project_id=project_id, stage_name=stage_name)
            records[stage_name] = record
        return record

    def get_stage_records(self, project_id: str) -> Dict[str, StageRecord]:
        with self._lock:
            return dict(self._stages.get(project_id, {}))

    def get_stage_record(self, project_id: str, stage_name: str) -> Optional[StageRecord]:
        with self._lock:
            return self._stages.get(project_id, {}).get(stage_name)

    def reset_stage(self, project_id: str, stage_name: str) -> StageRecord:
        """Explicit re-run: put the record back to PENDING and clear its outcome."""
        with self._lock:
            record = self._record(project_id, stage_name)
            record.status = StageStatus.PENDING
            record.result_summary = {}
            record.error_message = None
            record.error_kind = None
            record.started_at = None
            record.completed_at = None
            return record

    def update_stage(self, project_id: str, stage_name: str, status: StageStatus, **fields) -> StageRecord:
        """
        Move a stage record forward.

        Args:
            project_id: Project id
            stage_name: Stage key
            status: Target status
            **fields: result_summary, error_message or error_kind

        Raises:
            InvalidStageTransition: If the move is not forward
        """
        with self._lock:
            record = self._record(project_id, stage_name)
            if status not in _TRANSITIONS[record.status]:
                raise InvalidStageTransition(stage_name, record.status.value, status.value)

            record.status = status
            now = datetime.now()
            if status == StageStatus.PROCESSING:
                record.started_at = now
            if status.is_terminal:
                record.completed_at = now
            for key, value in fields.items():
                if not hasattr(record, key):
                    raise AttributeError(f"StageRecord has no field '{key}'")
                setattr(record, key, value)
            return record

    def save_progress(self, progress: ProjectProgress) -> None:
        with self._lock:
            self._progress[progress.project_id] = progress

    def get_progress(self, project_id: str) -> ProjectProgress:
        with self._lock:
            return self._progress.get(project_id) or ProjectProgress(project_id=project_id)

    # =========================================================================
    # STORYBOARD
    # =========================================================================

    def get_profile(self, project_id: str, character_name: str) -> Optional[CharacterProfile]:
        with self._lock:
            return self._profiles.get((project_id, normalize_name(character_name)))

    def save_profile(self, profile: CharacterProfile) -> None:
        with self._lock:
            self._profiles[(profile.project_id, normalize_name(profile.character_name))] = profile

    def get_profiles(self, project_id: str) -> List[CharacterProfile]:
        with self._lock:
            return [p for (pid, _), p in self._profiles.items() if pid == project_id]

    def get_image(self, project_id: str, scene_id: str) -> Optional[StoryboardImage]:
        with self._lock:
            return self._images.get(project_id, {}).get(scene_id)

    def save_image(self, project_id: str, image: StoryboardImage) -> None:
        with self._lock:
            self._images.setdefault(project_id, {})[image.scene_id] = image

    def get_images(self, project_id: str) -> List[StoryboardImage]:
        with self._lock:
            return list(self._images.get(project_id, {}).values())

    # =========================================================================
    # ARTIFACTS
    # =========================================================================

    def save_artifact(self, project_id: str, stage_name: str, value: Any) -> None:
        key = stage_name.value if isinstance(stage_name, StageName) else stage_name
        with self._lock:
            self._artifacts[(project_id, key)] = value

    def get_artifact(self, project_id: str, stage_name: str) -> Any:
        key = stage_name.value if isinstance(stage_name, StageName) else stage_name
        with self._lock:
            return self._artifacts.get((project_id, key))

    def has_artifact(self, project_id: str, stage_name: str) -> bool:
        key = stage_name.value if isinstance(stage_name, StageName) else stage_name
        with self._lock:
            return (project_id, key) in self._artifacts

    def get_artifacts(self, project_id: str) -> Dict[str, Any]:
        with self._lock:
            return {stage: v for (pid, stage), v in self._artifacts.items() if pid == project_id}
