from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Mapping

from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import WriteError

logger = logging.getLogger(__name__)


def _to_dynamo_value(value: Any) -> Any:
    # DynamoDB numbers must be Decimal; floats are rejected by the serializer.
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, Mapping):
        return {k: _to_dynamo_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_dynamo_value(v) for v in value]
    return value


class TableStore:
    """Per-item upserts into DynamoDB. Callers fan out for bulk writes."""

    def __init__(self, client: Any) -> None:
        self._client = client
        self._serializer = TypeSerializer()

    def marshal(self, item: Any) -> dict[str, Any]:
        """Convert a plain JSON object into DynamoDB attribute values."""
        if not isinstance(item, Mapping):
            raise TypeError(f"item must be a JSON object, got {type(item).__name__}")
        return {str(k): self._serializer.serialize(_to_dynamo_value(v)) for k, v in item.items()}

    def put_item(self, table: str, item: Any) -> None:
        """Upsert `item` into `table`. Same key overwrites. Raises WriteError."""
        try:
            attributes = self.marshal(item)
        except (TypeError, ValueError) as e:
            raise WriteError(f"Cannot write item to {table}: {e}", table=table, item=item, cause=e) from e
        try:
            self._client.put_item(TableName=table, Item=attributes)
        except (ClientError, BotoCoreError) as e:
            if isinstance(e, ClientError):
                err = e.response.get("Error", {})
                detail = f"{err.get('Code')}: {err.get('Message')}"
            else:
                detail = str(e)
            raise WriteError(f"Write to {table} failed: {detail}", table=table, item=item, cause=e) from e
        logger.debug("table.put table=%s", table)
