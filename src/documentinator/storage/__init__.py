"""Object storage for document bytes."""

from .object_store import LocalObjectStore, canonical_document_path, sanitize_filename
from .migration import migrate_legacy_paths, MigrationReport, PathMigration

__all__ = [
    "LocalObjectStore",
    "canonical_document_path",
    "sanitize_filename",
    "migrate_legacy_paths",
    "MigrationReport",
    "PathMigration",
]
