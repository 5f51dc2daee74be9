"""Relay Lambda: fetch an external URL and stage its body in S3.

Deployed as the function the migration pipeline invokes. The return value is
the S3 put result (Bucket, Key, ETag, VersionId), which the invoker turns into
the receipt the fetch stage verifies against.
"""

from __future__ import annotations

import io
import logging
from typing import Any, Iterator, Mapping, Optional

import httpx

from .clients.aws import s3_client
from .clients.blob_store import BlobStore
from .config import load_settings
from .errors import ConfigError, RelayError

logger = logging.getLogger(__name__)


class _IterStream(io.RawIOBase):
    """Readable file object over an iterator of byte chunks."""

    def __init__(self, chunks: Iterator[bytes]) -> None:
        self._chunks = chunks
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
        n = min(len(buffer), len(self._pending))
        buffer[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n


def relay(
    url: str,
    key: str,
    *,
    bucket: str,
    store: BlobStore,
    http: httpx.Client,
) -> dict[str, Optional[str]]:
    """Stream `url` into s3://bucket/key. Non-2xx responses raise RelayError."""
    logger.info("relay.start url=%s bucket=%s key=%s", url, bucket, key)
    try:
        with http.stream("GET", url) as response:
            if not response.is_success:
                raise RelayError(
                    f"Failed to fetch {response.url}: {response.status_code} {response.reason_phrase}",
                    url=str(response.url),
                    status_code=response.status_code,
                )
            stream = io.BufferedReader(_IterStream(response.iter_bytes()))
            stored = store.upload(bucket, key, stream)
    except httpx.HTTPError as e:
        raise RelayError(f"Failed to fetch {url}: {e}", url=url) from e
    logger.info("relay.done bucket=%s key=%s etag=%s", bucket, key, stored.get("ETag"))
    return {"Bucket": bucket, "Key": key, **stored}


def handler(event: Mapping[str, Any], context: Any = None) -> dict[str, Optional[str]]:
    """Lambda entry point. Event: {"postUrl": ..., "postName": ...}; env: BUCKET."""
    url = event.get("postUrl")
    key = event.get("postName")
    if not url or not key:
        raise ConfigError("Event must include postUrl and postName.")
    settings = load_settings(dotenv=False)
    bucket = settings.relay_bucket
    if not bucket:
        raise ConfigError("BUCKET environment variable is not set.")

    store = BlobStore(s3_client(settings))
    with httpx.Client(follow_redirects=True, timeout=settings.fetch_timeout) as http:
        return relay(url, key, bucket=bucket, store=store, http=http)
