"""
Cheap source identity for export caching.

The default fingerprint is name + size + modification time. Two distinct
files with identical metadata collide; callers that cannot accept that
can opt into a SHA-256 content fingerprint.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path

HASH_CHUNK_BYTES = 1024 * 1024


@dataclass(frozen=True)
class SourceFingerprint:
    """Identity of one source file.

    Attributes:
        name: File name without directories
        size: Size in bytes
        modified_ns: Modification time in nanoseconds
        content_hash: SHA-256 hex digest when content hashing was requested
    """

    name: str
    size: int
    modified_ns: int
    content_hash: str | None = None

    @property
    def key(self) -> str:
        """Stable string form used in cache keys."""
        if self.content_hash is not None:
            return f"sha256:{self.content_hash}"
        return f"{self.name}:{self.size}:{self.modified_ns}"


def fingerprint_source(path: Path, content_hash: bool = False) -> SourceFingerprint:
    """Fingerprint the file at path.

    Args:
        path: Source media file
        content_hash: Also hash the full content (slow for large media)

    Raises:
        OSError: If the file cannot be read
    """
    stat = path.stat()
    digest = _sha256(path) if content_hash else None
    return SourceFingerprint(
        name=path.name,
        size=stat.st_size,
        modified_ns=stat.st_mtime_ns,
        content_hash=digest,
    )


def _sha256(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_BYTES), b""):
            h.update(chunk)
    return h.hexdigest()
