"""AWS adapters used by the migration pipeline."""

from .blob_store import BlobDocuments, BlobStore, parse_document
from .invoker import RemoteInvoker
from .table_store import TableStore

__all__ = ["BlobDocuments", "BlobStore", "RemoteInvoker", "TableStore", "parse_document"]
