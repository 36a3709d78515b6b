"""Infrastructure layer exports."""

from .blobs import BlobStore, InMemoryBlobStore, LocalBlobStore, StorageError
from .extraction import (
    BackendUnavailable,
    ExtractionBackend,
    JobStatus,
    configure_extraction_backend,
    get_extraction_backend,
)
from .records import InMemoryRecordStore, NotFoundError, RecordStore

__all__ = [
    "BackendUnavailable",
    "BlobStore",
    "ExtractionBackend",
    "InMemoryBlobStore",
    "InMemoryRecordStore",
    "JobStatus",
    "LocalBlobStore",
    "NotFoundError",
    "RecordStore",
    "StorageError",
    "configure_extraction_backend",
    "get_extraction_backend",
]
