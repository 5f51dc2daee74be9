from __future__ import annotations

import json
import threading
from typing import Any, Optional, Sequence

import pytest

from data_migrator.clients.blob_store import BlobDocuments, parse_document
from data_migrator.errors import InvocationError, NotFoundError, WriteError
from data_migrator.models import InvocationPayload, InvocationReceipt, ResolvedResources, RunOptions


class FakeInvoker:
    def __init__(self, *, fail: bool = False, etag: Optional[str] = '"etag-1"') -> None:
        self.fail = fail
        self.etag = etag
        self.calls: list[tuple[str, dict[str, str]]] = []

    def invoke(self, function_name: str, payload: InvocationPayload) -> InvocationReceipt:
        self.calls.append((function_name, payload.to_wire()))
        if self.fail:
            raise InvocationError(
                f"{function_name} failed (Unhandled): Failed to fetch",
                function_name=function_name,
                payload={"errorMessage": "Failed to fetch"},
            )
        return InvocationReceipt(function_name=function_name, status_code=200, etag=self.etag)


class FakeBlobStore:
    """In-memory blob store; bodies are raw bytes so decoding runs for real."""

    def __init__(self, objects: Optional[dict[str, bytes]] = None) -> None:
        self.objects = dict(objects or {})
        self.gets: list[tuple[str, str, Optional[str]]] = []

    def get(self, bucket: str, key: str, *, etag: Optional[str] = None) -> Any:
        self.gets.append((bucket, key, etag))
        if key not in self.objects:
            raise NotFoundError(f"s3://{bucket}/{key} does not exist", bucket=bucket, key=key)
        return parse_document(self.objects[key], bucket=bucket, key=key)

    def documents(
        self, bucket: str, keys: Sequence[str], *, etags: Optional[Sequence[Optional[str]]] = None
    ) -> BlobDocuments:
        return BlobDocuments(self, bucket, keys, etags=etags)  # type: ignore[arg-type]


class MultiDocumentSource:
    """Stands in for a multi-object fetch: yields every given document."""

    def __init__(self, docs: list[Any]) -> None:
        self.docs = docs

    def documents(self, bucket: str, keys: Sequence[str], *, etags: Any = None) -> list[Any]:
        return list(self.docs)


class FakeTableStore:
    def __init__(
        self,
        *,
        fail_ids: Sequence[str] = (),
        barrier: Optional[threading.Barrier] = None,
        block: Optional[threading.Event] = None,
    ) -> None:
        self.fail_ids = set(fail_ids)
        self.barrier = barrier
        self.block = block
        self.items: list[tuple[str, Any]] = []
        self.attempts = 0
        self._lock = threading.Lock()

    def put_item(self, table: str, item: Any) -> None:
        with self._lock:
            self.attempts += 1
        if self.barrier is not None:
            # Only passes when every writer is in flight at the same time.
            self.barrier.wait()
        if self.block is not None:
            self.block.wait(timeout=10)
        if item.get("id") in self.fail_ids:
            raise WriteError(f"Write to {table} failed", table=table, item=item)
        with self._lock:
            self.items.append((table, item))


@pytest.fixture
def options() -> RunOptions:
    return RunOptions(
        function_ref="upload",
        bucket_ref="PostsBucket",
        table_ref="PostsTable",
        source_url="https://example.com/posts/p1.json",
        object_name="p1.json",
    )


@pytest.fixture
def resources() -> ResolvedResources:
    return ResolvedResources(function_name="posts-dev-upload", bucket_name="posts-raw", table_name="posts")


@pytest.fixture
def manifest() -> dict[str, Any]:
    return {
        "service": "posts",
        "provider": {"stage": "dev", "region": "us-east-1"},
        "functions": {
            "upload": {"handler": "data_migrator.relay.handler", "name": "posts-dev-upload"},
            "unnamed": {"handler": "data_migrator.relay.handler"},
        },
        "resources": {
            "Resources": {
                "PostsBucket": {"Type": "AWS::S3::Bucket", "Properties": {"BucketName": "posts-raw"}},
                "PostsTable": {"Type": "AWS::DynamoDB::Table", "Properties": {"TableName": "posts"}},
                "LegacyBucket": {"Type": "AWS::S3::Bucket", "Properties": {"TableName": "legacy-raw"}},
            }
        },
    }


def json_bytes(obj: Any) -> bytes:
    return json.dumps(obj).encode("utf-8")
