"""
Filmflow Relational Store Interface

The persistence collaborator used by the pipeline and visual batches.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from filmflow.analysis.models import (
    CharacterAnalysis,
    CharacterProfile,
    Project,
    ProjectProgress,
    Scene,
    StageRecord,
    StoryboardImage,
)
from filmflow.core.constants import StageStatus


class RelationalStore(ABC):
    """Create/read/update by key and filter by project id."""

    # Projects

    @abstractmethod
    def save_project(self, project: Project) -> Project:
        pass

    @abstractmethod
    def get_project(self, project_id: str) -> Project:
        pass

    # Scenes and characters

    @abstractmethod
    def save_scenes(self, project_id: str, scenes: List[Scene]) -> None:
        pass

    @abstractmethod
    def get_scenes(self, project_id: str) -> List[Scene]:
        pass

    @abstractmethod
    def save_character_analysis(self, project_id: str, analysis: CharacterAnalysis) -> None:
        pass

    @abstractmethod
    def get_character_analysis(self, project_id: str) -> Optional[CharacterAnalysis]:
        pass

    # Stage records and progress

    @abstractmethod
    def get_stage_records(self, project_id: str) -> Dict[str, StageRecord]:
        pass

    @abstractmethod
    def reset_stage(self, project_id: str, stage_name: str) -> StageRecord:
        pass

    @abstractmethod
    def update_stage(self, project_id: str, stage_name: str, status: StageStatus, **fields) -> StageRecord:
        pass

    @abstractmethod
    def save_progress(self, progress: ProjectProgress) -> None:
        pass

    @abstractmethod
    def get_progress(self, project_id: str) -> ProjectProgress:
        pass

    # Storyboard

    @abstractmethod
    def get_profile(self, project_id: str, character_name: str) -> Optional[CharacterProfile]:
        pass

    @abstractmethod
    def save_profile(self, profile: CharacterProfile) -> None:
        pass

    @abstractmethod
    def get_image(self, project_id: str, scene_id: str) -> Optional[StoryboardImage]:
        pass

    @abstractmethod
    def save_image(self, project_id: str, image: StoryboardImage) -> None:
        pass

    # Generic stage artifacts

    @abstractmethod
    def save_artifact(self, project_id: str, stage_name: str, value: Any) -> None:
        pass

    @abstractmethod
    def get_artifact(self, project_id: str, stage_name: str) -> Any:
        pass

    @abstractmethod
    def has_artifact(self, project_id: str, stage_name: str) -> bool:
        pass
