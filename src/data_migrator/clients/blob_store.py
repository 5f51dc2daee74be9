from __future__ import annotations

import json
import logging
from typing import Any, BinaryIO, Iterator, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from ..errors import DecodeError, NotFoundError, TransportError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "NoSuchBucket", "404", "NotFound"}
_STALE_CODES = {"PreconditionFailed", "412"}


def parse_document(body: bytes, *, bucket: str, key: str) -> Any:
    """Decode a blob body as UTF-8 and parse exactly one JSON document."""
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"s3://{bucket}/{key} is not valid UTF-8: {e}", bucket=bucket, key=key) from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"s3://{bucket}/{key} is not valid JSON: {e}", bucket=bucket, key=key) from e


class BlobStore:
    """Single-object put/get against S3. No listing or pagination."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def _translate(self, e: Exception, *, bucket: str, key: str, etag: Optional[str] = None) -> Exception:
        if isinstance(e, ClientError):
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                return NotFoundError(f"s3://{bucket}/{key} does not exist", bucket=bucket, key=key)
            if code in _STALE_CODES:
                return NotFoundError(
                    f"s3://{bucket}/{key} does not match acknowledged ETag {etag}", bucket=bucket, key=key
                )
            message = e.response.get("Error", {}).get("Message") or str(e)
            return TransportError(f"s3://{bucket}/{key}: {code}: {message}", bucket=bucket, key=key)
        return TransportError(f"s3://{bucket}/{key}: {e}", bucket=bucket, key=key)

    def get(self, bucket: str, key: str, *, etag: Optional[str] = None) -> Any:
        """
        Read s3://bucket/key and parse its body as one JSON document.

        When `etag` is given the read is conditional on it; a mismatch is reported
        as NotFoundError since the acknowledged object is not there.
        """
        params: dict[str, Any] = {"Bucket": bucket, "Key": key}
        if etag:
            params["IfMatch"] = etag
        try:
            resp = self._client.get_object(**params)
            body = resp["Body"].read()
        except (ClientError, BotoCoreError) as e:
            err = self._translate(e, bucket=bucket, key=key, etag=etag)
            logger.error("blob.get_failed bucket=%s key=%s error=%s", bucket, key, err)
            raise err from e
        logger.info("blob.get bucket=%s key=%s bytes=%s", bucket, key, len(body))
        return parse_document(body, bucket=bucket, key=key)

    def documents(
        self, bucket: str, keys: Sequence[str], *, etags: Optional[Sequence[Optional[str]]] = None
    ) -> "BlobDocuments":
        return BlobDocuments(self, bucket, keys, etags=etags)

    def head(self, bucket: str, key: str) -> dict[str, Optional[str]]:
        try:
            resp = self._client.head_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, bucket=bucket, key=key) from e
        return {"ETag": resp.get("ETag"), "VersionId": resp.get("VersionId")}

    def upload(self, bucket: str, key: str, stream: BinaryIO) -> dict[str, Optional[str]]:
        """Stream `stream` into s3://bucket/key and return its ETag / VersionId."""
        try:
            self._client.upload_fileobj(stream, bucket, key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, bucket=bucket, key=key) from e
        logger.info("blob.put bucket=%s key=%s", bucket, key)
        return self.head(bucket, key)


class BlobDocuments:
    """
    Lazy, restartable sequence of JSON documents read from one bucket.

    Nothing is read until iteration; every new iteration re-reads the objects.
    """

    def __init__(
        self,
        store: BlobStore,
        bucket: str,
        keys: Sequence[str],
        *,
        etags: Optional[Sequence[Optional[str]]] = None,
    ) -> None:
        if etags is not None and len(etags) != len(keys):
            raise ValueError("etags must align with keys")
        self._store = store
        self.bucket = bucket
        self.keys = tuple(keys)
        self._etags = tuple(etags) if etags is not None else (None,) * len(self.keys)

    def __iter__(self) -> Iterator[Any]:
        for key, etag in zip(self.keys, self._etags):
            yield self._store.get(self.bucket, key, etag=etag)

    def __len__(self) -> int:
        return len(self.keys)
