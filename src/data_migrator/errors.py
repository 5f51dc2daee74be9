from __future__ import annotations

from typing import Any


class MigrationError(Exception):
    """Base class for every failure raised by data-migrator."""


class ConfigError(MigrationError, ValueError):
    """Raised when a required option, manifest entry or env var is missing or invalid."""


class InvocationError(MigrationError):
    """Raised when the remote function call fails.

    `payload` holds the decoded error document returned by the function (or the
    transport error details) so callers can surface it verbatim.
    """

    def __init__(self, message: str, *, function_name: str, payload: Any = None) -> None:
        super().__init__(message)
        self.function_name = function_name
        self.payload = payload


class BlobStoreError(MigrationError):
    """Raised when a blob cannot be read or parsed."""

    def __init__(self, message: str, *, bucket: str, key: str) -> None:
        super().__init__(message)
        self.bucket = bucket
        self.key = key


class NotFoundError(BlobStoreError):
    """The object is missing, or does not match the acknowledged ETag."""


class TransportError(BlobStoreError):
    """The object store failed for a reason other than a missing key."""


class DecodeError(BlobStoreError):
    """The object body is not UTF-8 text holding a single JSON document."""


class WriteError(MigrationError):
    """A single table upsert failed. Carries the item and the underlying cause."""

    def __init__(self, message: str, *, table: str, item: Any, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.table = table
        self.item = item
        self.cause = cause


class StageTimeoutError(MigrationError):
    """A stage did not finish before its deadline."""


class BatchWriteError(WriteError):
    """One or more item writes failed during the write stage.

    `errors` lists every failure in submission order, not completion order.
    `item` is None since the failure spans the whole stage.
    """

    def __init__(self, errors: list[MigrationError], *, table: str, attempted: int) -> None:
        self.errors = list(errors)
        self.attempted = attempted
        first = self.errors[0] if self.errors else None
        super().__init__(
            f"{len(self.errors)} of {attempted} item write(s) failed"
            + (f"; first: {first}" if first is not None else ""),
            table=table,
            item=None,
            cause=first,
        )


class StageError(MigrationError):
    """Terminal failure of a pipeline run.

    `stage` is one of "invoke", "fetch" or "write"; `cause` is the exception the
    stage raised; `transitions` is the ordered state history of the run.
    """

    def __init__(self, stage: str, cause: BaseException, transitions: list[str] | None = None) -> None:
        super().__init__(f"Stage '{stage}' failed: {type(cause).__name__}: {cause}")
        self.stage = stage
        self.cause = cause
        self.transitions = list(transitions or [])

    @property
    def partially_migrated(self) -> bool:
        # Only the write stage touches the table store.
        return self.stage == "write"


class RelayError(MigrationError):
    """The relay function could not fetch the source URL."""

    def __init__(self, message: str, *, url: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
