from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, NoReturn, Optional

from ..clients import BlobStore, RemoteInvoker, TableStore
from ..clients.aws import dynamodb_client, lambda_client, s3_client
from ..config import Settings
from ..errors import StageError
from ..models import ResolvedResources, RunOptions, RunResult, RunState
from ..resources import load_manifest, resolve_resources
from .context import PipelineContext
from .stages import (
    STAGE_FETCH,
    STAGE_INVOKE,
    STAGE_WRITE,
    DocumentSource,
    Invoker,
    ItemSink,
    fetch_stage,
    invoke_stage,
    write_stage,
)

logger = logging.getLogger(__name__)

# Each state has exactly one successor; FAILED is reachable from any non-terminal state.
_NEXT: dict[RunState, RunState] = {
    RunState.IDLE: RunState.AWAITING_INVOCATION,
    RunState.AWAITING_INVOCATION: RunState.AWAITING_BLOB,
    RunState.AWAITING_BLOB: RunState.WRITING_ITEMS,
    RunState.WRITING_ITEMS: RunState.DONE,
}


@dataclass
class _StateTracker:
    run_id: str
    state: RunState = RunState.IDLE
    history: list[RunState] = field(default_factory=lambda: [RunState.IDLE])

    def advance(self, target: RunState) -> None:
        expected = _NEXT.get(self.state)
        if target is not expected:
            raise RuntimeError(f"illegal transition {self.state.value} -> {target.value}")
        logger.info(
            "run.transition run_id=%s from=%s to=%s",
            self.run_id,
            self.state.value,
            target.value,
            extra={"run_id": self.run_id, "state": target.value},
        )
        self.state = target
        self.history.append(target)

    def fail(self, stage: str, cause: BaseException) -> NoReturn:
        logger.error(
            "run.failed run_id=%s stage=%s state=%s error=%s: %s",
            self.run_id,
            stage,
            self.state.value,
            type(cause).__name__,
            cause,
            extra={"run_id": self.run_id, "stage": stage, "state": RunState.FAILED.value},
        )
        self.state = RunState.FAILED
        self.history.append(RunState.FAILED)
        raise StageError(stage, cause, [s.value for s in self.history]) from cause


@dataclass
class MigrationPipeline:
    """Sequences invoke -> fetch -> write for one run at a time.

    Every call to `run` starts fresh at IDLE with an empty context; there is no
    resume from an intermediate stage.
    """

    invoker: Invoker
    blob_store: DocumentSource
    table_store: ItemSink
    write_concurrency: int = 8
    write_timeout: Optional[float] = None

    def run(self, options: RunOptions, resources: ResolvedResources, *, run_id: str | None = None) -> RunResult:
        """
        Execute one run.

        Returns a RunResult in state DONE. Any stage failure raises StageError
        carrying the stage name, the cause and the state history.
        """
        ctx = PipelineContext.create(run_id=run_id)
        tracker = _StateTracker(ctx.run_id)
        started = time.monotonic()
        logger.info("run.start run_id=%s url=%s object=%s", ctx.run_id, options.source_url, options.object_name)

        tracker.advance(RunState.AWAITING_INVOCATION)
        try:
            receipt = invoke_stage(ctx, options=options, resources=resources, invoker=self.invoker)
        except Exception as e:
            tracker.fail(STAGE_INVOKE, e)

        tracker.advance(RunState.AWAITING_BLOB)
        try:
            staged = fetch_stage(
                ctx, options=options, resources=resources, blob_store=self.blob_store, receipt=receipt
            )
        except Exception as e:
            tracker.fail(STAGE_FETCH, e)

        tracker.advance(RunState.WRITING_ITEMS)
        try:
            written = write_stage(
                ctx,
                resources=resources,
                table_store=self.table_store,
                concurrency=self.write_concurrency,
                timeout=self.write_timeout,
            )
        except Exception as e:
            tracker.fail(STAGE_WRITE, e)

        tracker.advance(RunState.DONE)
        elapsed = time.monotonic() - started
        logger.info(
            "run.done run_id=%s items=%s table=%s elapsed=%.2fs", ctx.run_id, written, resources.table_name, elapsed
        )
        return RunResult(
            state=tracker.state,
            transitions=list(tracker.history),
            resources=resources,
            receipt=receipt,
            documents_staged=staged,
            items_written=written,
            elapsed_seconds=elapsed,
        )


def build_pipeline(settings: Settings, *, session: Any = None) -> MigrationPipeline:
    """Wire the AWS adapters from settings."""
    return MigrationPipeline(
        invoker=RemoteInvoker(lambda_client(settings, session)),
        blob_store=BlobStore(s3_client(settings, session)),
        table_store=TableStore(dynamodb_client(settings, session)),
        write_concurrency=settings.write_concurrency,
        write_timeout=settings.write_timeout,
    )


def run_pipeline(
    options: RunOptions,
    *,
    settings: Settings,
    manifest: Mapping[str, Any] | None = None,
    pipeline: MigrationPipeline | None = None,
) -> RunResult:
    """Pipeline entrypoint.

    Resolves resource refs once (ConfigError surfaces before any stage runs),
    then executes the run.
    """
    if manifest is None:
        manifest = load_manifest(settings.manifest_path)
    resources = resolve_resources(manifest, options)
    pipeline = pipeline or build_pipeline(settings)
    return pipeline.run(options, resources)
