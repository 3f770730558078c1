"""
Index persistence for zipseek.

The whole index is written as one gzip-compressed JSON document:

    {"format": "zipseek-index", "version": 1, "entries": [{...}, ...]}

Invariants:
    - save/load are whole-index; there are no partial updates
    - load(save(index)) reproduces the same entries in the same order
    - A malformed blob raises IndexDecodeError, never a bare exception

How to change safely:
    - Format changes require a version bump
    - Keep load accepting every version still in the field
"""

from __future__ import annotations

import gzip
import json
import logging
import os
import zlib
from pathlib import Path
from typing import Any, Dict, Union

from ..errors import IndexDecodeError, IndexFileNotFoundError, StorageIOError
from .entry import ArchiveIndex, Entry

logger = logging.getLogger(__name__)

INDEX_FORMAT = "zipseek-index"
INDEX_VERSION = 1

PathLike = Union[str, "os.PathLike[str]"]


def serialize_index(index: ArchiveIndex) -> bytes:
    """Serialize an index to the compressed blob format."""
    document = {
        "format": INDEX_FORMAT,
        "version": INDEX_VERSION,
        "entries": [e.to_dict() for e in index],
    }
    content = json.dumps(document, separators=(",", ":")).encode("utf-8")
    # mtime=0 keeps the blob byte-identical across saves of the same index
    return gzip.compress(content, mtime=0)


def deserialize_index(blob: bytes, source: str | None = None) -> ArchiveIndex:
    """Deserialize a blob produced by serialize_index.

    Raises:
        IndexDecodeError: If the blob is not a valid index document.
    """
    try:
        document = json.loads(gzip.decompress(blob).decode("utf-8"))
    except (OSError, EOFError, zlib.error, UnicodeDecodeError, ValueError) as e:
        raise IndexDecodeError(f"Index blob is not valid gzip+JSON: {e}", path=source) from e

    _check_header(document, source)

    entries = document.get("entries")
    if not isinstance(entries, list):
        raise IndexDecodeError("Index document has no entry list", path=source)

    try:
        return ArchiveIndex(Entry.from_dict(item) for item in entries)
    except ValueError as e:
        raise IndexDecodeError(f"Invalid index entry: {e}", path=source) from e


def _check_header(document: Any, source: str | None) -> None:
    if not isinstance(document, dict):
        raise IndexDecodeError("Index document must be a JSON object", path=source)
    if document.get("format") != INDEX_FORMAT:
        raise IndexDecodeError(
            f"Unexpected index format {document.get('format')!r}", path=source
        )
    if document.get("version") != INDEX_VERSION:
        raise IndexDecodeError(
            f"Unsupported index version {document.get('version')!r}", path=source
        )


def save_index(index: ArchiveIndex, path: PathLike) -> None:
    """Persist `index` at `path`, overwriting any existing file.

    Raises:
        StorageIOError: If the file cannot be written.
    """
    target = Path(path)
    blob = serialize_index(index)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(blob)
    except OSError as e:
        raise StorageIOError(f"Failed to write index {target}: {e}", path=str(target)) from e

    logger.debug(
        f"Saved index to {target}",
        extra={"path": str(target), "entries": len(index), "size_bytes": len(blob)},
    )


def load_index(path: PathLike) -> ArchiveIndex:
    """Load an index persisted by save_index.

    Raises:
        IndexFileNotFoundError: If `path` does not exist
        StorageIOError: If the file cannot be read
        IndexDecodeError: If the blob is malformed
    """
    source = Path(path)
    try:
        blob = source.read_bytes()
    except FileNotFoundError:
        raise IndexFileNotFoundError(str(source)) from None
    except OSError as e:
        raise StorageIOError(f"Failed to read index {source}: {e}", path=str(source)) from e

    index = deserialize_index(blob, source=str(source))
    logger.debug(f"Loaded index from {source}", extra={"path": str(source), "entries": len(index)})
    return index


def index_summary(index: ArchiveIndex) -> Dict[str, Any]:
    """Describe an index for logs and the CLI."""
    return {"format": INDEX_FORMAT, "version": INDEX_VERSION, **index.stats}
