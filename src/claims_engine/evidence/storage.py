"""Opaque blob storage for evidence files."""

from pathlib import Path
from typing import Protocol

from claims_engine.config.settings import get_blob_root
from claims_engine.exceptions import StorageError


class BlobStore(Protocol):
    """Minimal blob store contract used by evidence upload."""

    def put(self, path: str, data: bytes, content_type: str | None = None) -> None: ...

    def delete(self, path: str) -> None: ...

    def exists(self, path: str) -> bool: ...


class LocalBlobStore:
    """Filesystem-backed BlobStore rooted at CLAIMS_BLOB_ROOT."""

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or get_blob_root())

    def _resolve(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if self._root.resolve() not in target.parents:
            raise StorageError(f"Blob path escapes storage root: {path}")
        return target

    def put(self, path: str, data: bytes, content_type: str | None = None) -> None:
        """Write data at path. Refuses to overwrite an existing blob."""
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "xb") as f:
                f.write(data)
        except FileExistsError as e:
            raise StorageError(f"Blob already exists: {path}") from e
        except OSError as e:
            raise StorageError(f"Failed to store blob {path}: {e}") from e

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete blob {path}: {e}") from e

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()
