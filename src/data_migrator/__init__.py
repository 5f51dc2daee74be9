"""Stage a remote resource in S3 via Lambda and bulk-load it into DynamoDB."""

from .errors import (
    BatchWriteError,
    ConfigError,
    DecodeError,
    InvocationError,
    MigrationError,
    NotFoundError,
    StageError,
    TransportError,
    WriteError,
)
from .models import RunOptions, RunResult, RunState
from .pipeline import MigrationPipeline, PipelineContext, run_pipeline

__all__ = [
    "BatchWriteError",
    "ConfigError",
    "DecodeError",
    "InvocationError",
    "MigrationError",
    "MigrationPipeline",
    "NotFoundError",
    "PipelineContext",
    "RunOptions",
    "RunResult",
    "RunState",
    "StageError",
    "TransportError",
    "WriteError",
    "run_pipeline",
]
