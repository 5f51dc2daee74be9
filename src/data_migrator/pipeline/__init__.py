"""Pipeline orchestration layer: stage sequencing and the run-scoped context."""

from .context import PipelineContext
from .run import MigrationPipeline, build_pipeline, run_pipeline

__all__ = ["MigrationPipeline", "PipelineContext", "build_pipeline", "run_pipeline"]
