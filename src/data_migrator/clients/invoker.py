from __future__ import annotations

import json
import logging
from typing import Any, Mapping

from botocore.exceptions import BotoCoreError, ClientError

from ..errors import InvocationError
from ..models import InvocationPayload, InvocationReceipt

logger = logging.getLogger(__name__)


def _decode_payload(raw: Any) -> Any:
    """Decode a Lambda response payload. Non-JSON bodies are returned as text."""
    if raw is None:
        return None
    body = raw.read() if hasattr(raw, "read") else raw
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")
    if not body:
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        return body


def _lookup(doc: Any, *names: str) -> Any:
    if not isinstance(doc, Mapping):
        return None
    for name in names:
        value = doc.get(name)
        if value is not None:
            return value
    return None


class RemoteInvoker:
    """Synchronous request/response calls to a named Lambda function."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def invoke(self, function_name: str, payload: InvocationPayload) -> InvocationReceipt:
        """
        Invoke `function_name` with `payload` and wait for the response.

        Raises InvocationError on transport failures and when the function itself
        reports an error; the decoded error document is attached as `payload`.
        """
        body = json.dumps(payload.to_wire())
        logger.info("invoke.start function=%s", function_name)
        try:
            resp = self._client.invoke(
                FunctionName=function_name,
                InvocationType="RequestResponse",
                Payload=body,
            )
        except ClientError as e:
            err = e.response.get("Error", {})
            logger.error("invoke.transport_error function=%s code=%s", function_name, err.get("Code"))
            raise InvocationError(
                f"Error invoking {function_name}: {err.get('Code')}: {err.get('Message')}",
                function_name=function_name,
                payload=err,
            ) from e
        except BotoCoreError as e:
            logger.error("invoke.transport_error function=%s error=%s", function_name, e)
            raise InvocationError(
                f"Error invoking {function_name}: {e}",
                function_name=function_name,
                payload={"error": str(e)},
            ) from e

        decoded = _decode_payload(resp.get("Payload"))
        status = int(resp.get("StatusCode", 0))
        function_error = resp.get("FunctionError")
        if function_error or not 200 <= status < 300:
            message = _lookup(decoded, "errorMessage") or decoded
            logger.error(
                "invoke.function_error function=%s status=%s kind=%s", function_name, status, function_error
            )
            raise InvocationError(
                f"{function_name} failed ({function_error or status}): {message}",
                function_name=function_name,
                payload=decoded,
            )

        receipt = InvocationReceipt(
            function_name=function_name,
            status_code=status,
            executed_version=resp.get("ExecutedVersion"),
            request_id=(resp.get("ResponseMetadata") or {}).get("RequestId"),
            etag=_lookup(decoded, "ETag", "etag"),
            version_id=_lookup(decoded, "VersionId", "versionId", "version_id"),
            response=decoded,
        )
        logger.info(
            "invoke.done function=%s status=%s etag=%s", function_name, status, receipt.etag
        )
        return receipt
