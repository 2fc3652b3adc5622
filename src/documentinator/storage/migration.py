"""One-time migration of legacy storage paths to canonical paths."""

from dataclasses import dataclass, field
from typing import List, Optional

from ..database import DocumentRepository
from ..logging import get_logger
from .object_store import LEGACY_PREFIX, LocalObjectStore, canonical_document_path

logger = get_logger(__name__)


@dataclass
class PathMigration:
    """Outcome for one document."""

    document_id: str
    old_path: str
    new_path: str
    moved: bool
    error: Optional[str] = None


@dataclass
class MigrationReport:
    """Outcome of a migration run."""

    migrated: List[PathMigration] = field(default_factory=list)
    missing: List[PathMigration] = field(default_factory=list)
    already_canonical: int = 0

    @property
    def total(self) -> int:
        return len(self.migrated) + len(self.missing) + self.already_canonical


def _legacy_candidates(path: str) -> List[str]:
    """Locations a legacy record may point to."""
    candidates = [path]
    if path.startswith(LEGACY_PREFIX):
        candidates.append(path[len(LEGACY_PREFIX):])
    return candidates


def migrate_legacy_paths(
    repository: DocumentRepository,
    store: LocalObjectStore,
    dry_run: bool = False,
) -> MigrationReport:
    """Move every document's bytes to its canonical path and update the record.

    Runs once, offline. Request-time code never looks beyond the recorded path.
    """
    report = MigrationReport()

    for doc in repository.get_documents():
        canonical = canonical_document_path(doc.workspace_id, doc.id, doc.title)
        if doc.storage_path == canonical:
            report.already_canonical += 1
            continue

        source = next((p for p in _legacy_candidates(doc.storage_path) if store.exists(p)), None)
        if source is None:
            logger.warning(f"No stored object for document {doc.id}")
            report.missing.append(PathMigration(
                document_id=doc.id,
                old_path=doc.storage_path,
                new_path=canonical,
                moved=False,
                error="object not found",
            ))
            continue

        if not dry_run:
            store.move(source, canonical)
            repository.update_storage_path(doc.id, canonical)

        report.migrated.append(PathMigration(
            document_id=doc.id,
            old_path=doc.storage_path,
            new_path=canonical,
            moved=not dry_run,
        ))

    logger.info(
        f"Path migration: {len(report.migrated)} migrated, "
        f"{len(report.missing)} missing, {report.already_canonical} already canonical"
    )
    return report
