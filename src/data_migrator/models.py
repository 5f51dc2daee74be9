from __future__ import annotations

from enum import Enum
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError


class RunState(str, Enum):
    """
    Lifecycle of a single migration run.

    - IDLE -> AWAITING_INVOCATION -> AWAITING_BLOB -> WRITING_ITEMS -> DONE
    - FAILED is terminal and reachable from any non-terminal state
    """
    IDLE = "idle"
    AWAITING_INVOCATION = "awaiting_invocation"
    AWAITING_BLOB = "awaiting_blob"
    WRITING_ITEMS = "writing_items"
    DONE = "done"
    FAILED = "failed"


class RunOptions(BaseModel):
    """
    Immutable per-invocation options.

    function_ref / bucket_ref / table_ref: logical names resolved through the service manifest
    source_url: URL the remote function fetches
    object_name: key of the staged object (and the relay's S3 key)
    """
    model_config = ConfigDict(frozen=True)

    function_ref: str
    bucket_ref: str
    table_ref: str
    source_url: str
    object_name: str

    @field_validator("function_ref", "bucket_ref", "table_ref", "object_name", "source_url")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("source_url")
    @classmethod
    def _http_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("must be an http(s) URL")
        return v


def build_run_options(**values: Any) -> RunOptions:
    """Validate raw option values, reporting problems as ConfigError."""
    try:
        return RunOptions(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'options'}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid run options: {problems}") from e


class ResolvedResources(BaseModel):
    """Concrete AWS resource names for one run. Resolved once, before stage 1."""
    model_config = ConfigDict(frozen=True)

    function_name: str
    bucket_name: str
    table_name: str


class InvocationPayload(BaseModel):
    """
    Event sent to the relay function.

    Serialized with the wire names the relay reads (postUrl / postName).
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source_url: str = Field(alias="postUrl")
    object_name: str = Field(alias="postName")

    @classmethod
    def from_options(cls, options: RunOptions) -> "InvocationPayload":
        return cls(source_url=options.source_url, object_name=options.object_name)

    def to_wire(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


class InvocationReceipt(BaseModel):
    """
    Acknowledgement of a successful remote invocation.

    etag / version_id identify the object the function staged, when it reports them.
    The fetch stage pins its read to etag so a stale or missing object is detected
    instead of assumed.
    """
    model_config = ConfigDict(frozen=True)

    function_name: str
    status_code: int
    executed_version: Optional[str] = None
    request_id: Optional[str] = None
    etag: Optional[str] = None
    version_id: Optional[str] = None
    response: Any = None


class RunResult(BaseModel):
    """Summary of a completed run."""
    state: RunState
    transitions: list[RunState]
    resources: ResolvedResources
    receipt: Optional[InvocationReceipt] = None
    documents_staged: int = 0
    items_written: int = 0
    elapsed_seconds: float = 0.0
