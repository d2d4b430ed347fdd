"""Deterministic ingest-key computation.

:func:`compute_ingest_key` hashes the source file in fixed-size blocks, so
keying a large document costs constant memory.  Identical content, source
URI, and parser version always yield the same :pyattr:`IngestKey.key`.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from ingestkit_bpmn.models import IngestKey

_HASH_BLOCK_SIZE = 1024 * 1024


def compute_ingest_key(
    file_path: str,
    parser_version: str,
    source_uri: str | None = None,
) -> IngestKey:
    """Compute a deterministic ingest key for *file_path*.

    Parameters
    ----------
    file_path:
        Path to the file to hash.
    parser_version:
        Parser version string (e.g. ``"ingestkit_bpmn:1.0.0"``).
    source_uri:
        Optional override for the source URI stored in the key.  When
        *None*, the canonical absolute POSIX path of *file_path* is used.

    Raises
    ------
    FileNotFoundError
        If *file_path* does not exist.
    OSError
        If the file cannot be read.
    """
    digest = hashlib.sha256()
    with open(file_path, "rb") as fh:
        for block in iter(lambda: fh.read(_HASH_BLOCK_SIZE), b""):
            digest.update(block)

    if source_uri is None:
        source_uri = Path(file_path).resolve().as_posix()

    return IngestKey(
        content_hash=digest.hexdigest(),
        source_uri=source_uri,
        parser_version=parser_version,
    )
