"""
Filmflow pipelines.
"""

from .analysis_pipeline import (
    AnalysisPipeline,
    PipelineRunResult,
    StageContext,
    DEFAULT_STAGE_HANDLERS,
    execution_order,
    parse_stages,
)

__all__ = [
    'AnalysisPipeline',
    'PipelineRunResult',
    'StageContext',
    'DEFAULT_STAGE_HANDLERS',
    'execution_order',
    'parse_stages',
]
