"""Store snapshot persistence adapter.

The pipeline itself performs pure in-memory transformations. This module is
the reference persistence collaborator: it writes the full store as one JSON
blob with an atomic replace, and reads it back with integrity verification.
"""

import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from core.errors import StoreUnavailable
from core.models.canonical import CanonicalStore, utc_now
from core.models.refs import DataReference


def _compute_sha256(data: bytes) -> str:
    """Compute SHA256 hash of bytes."""
    return hashlib.sha256(data).hexdigest()


def save_store_snapshot(store: CanonicalStore, path: Path, ensure_parent: bool = True) -> DataReference:
    """Write the full store to `path`, replacing any previous snapshot atomically.

    The blob is written to a temporary file in the same directory and moved
    into place with os.replace, so readers only ever see a complete snapshot.

    Args:
        store: Store to persist
        path: Destination file path
        ensure_parent: Create parent directories if they don't exist

    Returns:
        DataReference with snapshot metadata for retrieval

    Raises:
        StoreUnavailable: If the snapshot cannot be written
    """
    path = Path(path)
    if ensure_parent:
        path.parent.mkdir(parents=True, exist_ok=True)

    json_bytes = json.dumps(store.to_snapshot(), indent=2, default=str).encode("utf-8")

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(json_bytes)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise StoreUnavailable(f"Cannot write snapshot {path}: {e}", {"path": str(path)}) from e

    return DataReference(
        storage_uri=str(path.absolute()),
        content_hash=_compute_sha256(json_bytes),
        content_type="application/json",
        size_bytes=len(json_bytes),
        stored_at=utc_now(),
    )


def load_store_snapshot(
    source: Union[Path, str, DataReference],
    validate_hash: bool = True,
    missing_ok: bool = False,
) -> CanonicalStore:
    """Read a snapshot back into a CanonicalStore.

    Args:
        source: Snapshot path, or a DataReference returned by save_store_snapshot
        validate_hash: Verify content hash when a DataReference is given
        missing_ok: Return an empty store instead of failing when the file is absent

    Returns:
        The rebuilt CanonicalStore

    Raises:
        StoreUnavailable: If the snapshot is missing, unreadable, corrupt
            or fails hash verification
    """
    ref: Optional[DataReference] = source if isinstance(source, DataReference) else None
    path = Path(ref.storage_uri) if ref else Path(source)

    if not path.exists():
        if missing_ok:
            return CanonicalStore()
        raise StoreUnavailable(f"Snapshot not found: {path}", {"path": str(path)})

    try:
        json_bytes = path.read_bytes()
    except OSError as e:
        raise StoreUnavailable(f"Cannot read snapshot {path}: {e}", {"path": str(path)}) from e

    if ref and validate_hash:
        actual_hash = _compute_sha256(json_bytes)
        if actual_hash != ref.content_hash:
            raise StoreUnavailable(
                f"Hash mismatch for {path}: expected {ref.content_hash}, got {actual_hash}",
                {"path": str(path)},
            )

    try:
        data = json.loads(json_bytes.decode("utf-8"))
        return CanonicalStore.from_snapshot(data)
    except (UnicodeDecodeError, json.JSONDecodeError, ValidationError, KeyError, TypeError, ValueError) as e:
        raise StoreUnavailable(f"Corrupt snapshot {path}: {e}", {"path": str(path)}) from e
