"""Object storage for uploaded document bytes.

A document record and its bytes are joined only by the storage path, so
every path is built by canonical_document_path().
"""

import os
import re
import threading
from pathlib import Path, PurePosixPath
from typing import List

from ..errors import StorageError
from ..logging import get_logger, anonymize_path

logger = get_logger(__name__)

LEGACY_PREFIX = "documents/"

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]+')


def sanitize_filename(filename: str) -> str:
    """Reduce a filename to a safe single path segment."""
    name = PurePosixPath(filename.replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or "document"


def canonical_document_path(workspace_id: str, document_id: str, filename: str) -> str:
    """Build the one storage path for a document.

    Returns:
        "<workspace_id>/<document_id>/<sanitized filename>"
    """
    if not workspace_id or not document_id:
        raise ValueError("workspace_id and document_id are required")
    return f"{workspace_id}/{document_id}/{sanitize_filename(filename)}"


class LocalObjectStore:
    """Filesystem-backed object store.

    Keys are POSIX-style relative paths below the root directory.
    """

    DEFAULT_ROOT = "/data/storage"

    def __init__(self, root: str = None):
        self.root = Path(root or os.getenv("STORAGE_ROOT", self.DEFAULT_ROOT))
        self.root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _resolve(self, path: str) -> Path:
        if not path:
            raise StorageError("Empty storage path")
        full = (self.root / path).resolve()
        root = self.root.resolve()
        if full != root and root not in full.parents:
            raise StorageError(f"Storage path escapes root: {path}")
        return full

    def get(self, path: str) -> bytes:
        """Read an object."""
        full = self._resolve(path)
        try:
            return full.read_bytes()
        except FileNotFoundError:
            raise StorageError(f"Object not found: {path}")
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}")

    def put(self, path: str, data: bytes) -> None:
        """Write an object, replacing any existing one."""
        full = self._resolve(path)
        try:
            with self._lock:
                full.parent.mkdir(parents=True, exist_ok=True)
                full.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}")
        logger.debug(f"Stored object {anonymize_path(path)} ({len(data)} bytes)")

    def delete(self, path: str) -> bool:
        """Delete an object.

        Returns:
            True if deleted, False if not found
        """
        full = self._resolve(path)
        try:
            full.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}")

    def exists(self, path: str) -> bool:
        """Check whether an object exists."""
        return self._resolve(path).is_file()

    def list(self, prefix: str = "") -> List[str]:
        """List object paths starting with prefix, sorted."""
        root = self.root.resolve()
        paths = []
        for file_path in root.rglob("*"):
            if file_path.is_file():
                key = file_path.relative_to(root).as_posix()
                if key.startswith(prefix):
                    paths.append(key)
        return sorted(paths)

    def move(self, source: str, destination: str) -> None:
        """Move an object to a new path."""
        src = self._resolve(source)
        dst = self._resolve(destination)
        if not src.is_file():
            raise StorageError(f"Object not found: {source}")
        try:
            with self._lock:
                dst.parent.mkdir(parents=True, exist_ok=True)
                src.replace(dst)
        except OSError as e:
            raise StorageError(f"Failed to move {source}: {e}")
