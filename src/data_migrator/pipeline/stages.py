"""The three migration stages.

Each stage receives the run's PipelineContext plus the static inputs it needs
and either returns normally or raises; the sequencer in run.py maps raised
exceptions onto Failed(stage, cause).
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Iterable, Optional, Protocol, Sequence

from ..errors import BatchWriteError, MigrationError, StageTimeoutError, WriteError
from ..models import InvocationPayload, InvocationReceipt, ResolvedResources, RunOptions
from .context import PipelineContext

logger = logging.getLogger(__name__)

STAGE_INVOKE = "invoke"
STAGE_FETCH = "fetch"
STAGE_WRITE = "write"


class Invoker(Protocol):
    def invoke(self, function_name: str, payload: InvocationPayload) -> InvocationReceipt: ...


class DocumentSource(Protocol):
    def documents(
        self, bucket: str, keys: Sequence[str], *, etags: Optional[Sequence[Optional[str]]] = None
    ) -> Iterable[Any]: ...


class ItemSink(Protocol):
    def put_item(self, table: str, item: Any) -> None: ...


def invoke_stage(
    ctx: PipelineContext,
    *,
    options: RunOptions,
    resources: ResolvedResources,
    invoker: Invoker,
) -> InvocationReceipt:
    """Ask the remote function to fetch source_url and stage it as object_name."""
    payload = InvocationPayload.from_options(options)
    receipt = invoker.invoke(resources.function_name, payload)
    logger.info(
        "stage.invoke.ok run_id=%s function=%s object=%s",
        ctx.run_id,
        resources.function_name,
        options.object_name,
    )
    return receipt


def fetch_stage(
    ctx: PipelineContext,
    *,
    options: RunOptions,
    resources: ResolvedResources,
    blob_store: DocumentSource,
    receipt: Optional[InvocationReceipt] = None,
) -> int:
    """Read the staged object(s) into the context, then seal it."""
    etag = receipt.etag if receipt is not None else None
    documents = blob_store.documents(resources.bucket_name, [options.object_name], etags=[etag])
    count = 0
    for doc in documents:
        ctx.stage(doc)
        count += 1
    ctx.seal()
    logger.info("stage.fetch.ok run_id=%s bucket=%s documents=%s", ctx.run_id, resources.bucket_name, count)
    return count


def staged_items(documents: Sequence[Any]) -> list[Any]:
    """Flatten staged documents into table items: a top-level array yields one item per element."""
    items: list[Any] = []
    for doc in documents:
        if isinstance(doc, list):
            items.extend(doc)
        else:
            items.append(doc)
    return items


def write_stage(
    ctx: PipelineContext,
    *,
    resources: ResolvedResources,
    table_store: ItemSink,
    concurrency: int = 8,
    timeout: Optional[float] = None,
) -> int:
    """
    Upsert every top-level staged item concurrently and join.

    Succeeds only if every write succeeds. Otherwise raises BatchWriteError with
    all failures in submission order. When `timeout` elapses before the join
    completes, queued writes are cancelled and each unfinished write is
    reported as a StageTimeoutError.
    """
    documents = staged_items(ctx.staged_objects)
    table = resources.table_name
    if not documents:
        logger.info("stage.write.ok run_id=%s table=%s items=0", ctx.run_id, table)
        return 0

    cancelled = threading.Event()

    def _put(item: Any) -> None:
        if cancelled.is_set():
            raise StageTimeoutError("write cancelled after the stage deadline elapsed")
        table_store.put_item(table, item)

    executor = ThreadPoolExecutor(
        max_workers=max(1, min(concurrency, len(documents))),
        thread_name_prefix="migrate-write",
    )
    futures: list[Future[None]] = []
    not_done: set[Future[None]] = set()
    try:
        futures = [executor.submit(_put, doc) for doc in documents]
        _, not_done = wait(futures, timeout=timeout)
        if not_done:
            cancelled.set()
            for f in not_done:
                f.cancel()
            logger.error(
                "stage.write.deadline run_id=%s table=%s unfinished=%s timeout=%ss",
                ctx.run_id,
                table,
                len(not_done),
                timeout,
            )
    finally:
        # In-flight calls are bounded by the client read timeout.
        executor.shutdown(wait=False, cancel_futures=True)

    errors: list[MigrationError] = []
    for index, (future, item) in enumerate(zip(futures, documents)):
        if future in not_done:
            errors.append(StageTimeoutError(f"item {index} did not complete within {timeout}s"))
            continue
        exc = future.exception()
        if exc is None:
            continue
        if isinstance(exc, MigrationError):
            errors.append(exc)
        else:
            errors.append(WriteError(f"Write to {table} failed: {exc}", table=table, item=item, cause=exc))

    if errors:
        logger.error(
            "stage.write.failed run_id=%s table=%s failed=%s attempted=%s",
            ctx.run_id,
            table,
            len(errors),
            len(documents),
        )
        raise BatchWriteError(errors, table=table, attempted=len(documents))

    logger.info("stage.write.ok run_id=%s table=%s items=%s", ctx.run_id, table, len(documents))
    return len(documents)
