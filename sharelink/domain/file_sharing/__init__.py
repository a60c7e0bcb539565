"""
File Sharing Domain

File records, identifiers, password gate, backend interfaces, the metadata
store and the lifecycle coordinator.
"""

from .backend_selector import BackendSelector
from .blob_store import IBlobStore
from .document_store import IDocumentStore
from .entities import FileRecord, format_timestamp, parse_timestamp, utc_now
from .lifecycle import LifecycleCoordinator, SweepResult
from .passwords import PasswordGuard
from .services import COLLECTION, MetadataStore
from .value_objects import (
    HashedPassword,
    LegacyPlaintextPassword,
    build_storage_filename,
    generate_file_id,
    generate_session_id,
    generate_unique_file_id,
)

__all__ = [
    "BackendSelector",
    "COLLECTION",
    "FileRecord",
    "HashedPassword",
    "IBlobStore",
    "IDocumentStore",
    "LegacyPlaintextPassword",
    "LifecycleCoordinator",
    "MetadataStore",
    "PasswordGuard",
    "SweepResult",
    "build_storage_filename",
    "format_timestamp",
    "generate_file_id",
    "generate_session_id",
    "generate_unique_file_id",
    "parse_timestamp",
    "utc_now",
]
