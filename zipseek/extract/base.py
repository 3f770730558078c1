"""
Shared plumbing for local and remote extraction.

Both extractors resolve a target the same way before touching any byte
source: look the name up in the index, refuse unsafe names and
unsupported compression methods, then derive the output path as
output_dir / (output_prefix + entry name).

Invariants:
    - Nothing is created on disk until every pre-check has passed
    - The output path is a pure function of (output_dir, prefix, name)
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Optional, Tuple, Union

from ..errors import StorageIOError, UnsafeEntryNameError, UnsupportedCompressionError
from ..index.entry import ArchiveIndex, Entry

DEFAULT_OUTPUT_PREFIX = "extracted_"


@dataclass
class ExtractResult:
    """Result of one extraction.

    Attributes:
        name: Entry name that was extracted
        output_path: File (or directory) written
        source: Archive path or s3:// URL the bytes came from
        bytes_in: Compressed bytes consumed
        bytes_out: Decompressed bytes written
        duration_ms: Wall time of the extraction
        is_directory: True if only a directory was created
    """

    name: str
    output_path: Path
    source: str
    bytes_in: int
    bytes_out: int
    duration_ms: int
    is_directory: bool = False


def is_safe_entry_name(name: str) -> bool:
    """True if `name` stays inside the output directory once joined."""
    if not name or name.startswith(("/", "\\")):
        return False
    if len(name) >= 2 and name[1] == ":" and name[0].isalpha():
        return False
    norm = posixpath.normpath(name.replace("\\", "/"))
    if norm == ".." or norm.startswith("../"):
        return False
    return True


def derive_output_path(
    name: str,
    output_prefix: str = DEFAULT_OUTPUT_PREFIX,
    output_dir: Union[str, Path] = ".",
) -> Path:
    """Output location for entry `name`.

    Raises:
        UnsafeEntryNameError: If the name is absolute or escapes output_dir.
    """
    if not is_safe_entry_name(name):
        raise UnsafeEntryNameError(name)
    return Path(output_dir) / f"{output_prefix}{name}"


class ExtractorBase:
    """Target resolution and output handling common to both extractors.

    Attributes:
        index: Loaded archive index
        output_prefix: Prefix prepended to every entry name
        output_dir: Base directory for extracted files
        chunk_size: Read size for the bounded payload stream
    """

    def __init__(
        self,
        index: ArchiveIndex,
        output_prefix: str = DEFAULT_OUTPUT_PREFIX,
        output_dir: Union[str, Path] = ".",
        chunk_size: int = 64 * 1024,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.index = index
        self.output_prefix = output_prefix
        self.output_dir = Path(output_dir)
        self.chunk_size = chunk_size
        self.log = logger or logging.getLogger(self.__class__.__module__)

    def resolve_target(self, name: str) -> Tuple[Entry, Path]:
        """Look up `name` and derive its output path.

        Raises:
            EntryNotFoundError: If the index has no such entry
            UnsafeEntryNameError: If the name would escape output_dir
            UnsupportedCompressionError: If the entry cannot be decoded
        """
        entry = self.index.lookup(name)
        output_path = derive_output_path(entry.name, self.output_prefix, self.output_dir)
        if not entry.is_directory and not entry.is_supported:
            raise UnsupportedCompressionError(entry.compression_method, entry.name)

        self.log.debug(
            f"Found metadata for entry {entry.name!r}",
            extra={
                "entry_name": entry.name,
                "data_offset": entry.data_offset,
                "compressed_size": entry.compressed_size,
                "uncompressed_size": entry.uncompressed_size,
            },
        )
        return entry, output_path

    def make_directory(self, output_path: Path) -> None:
        """Create the output location of a directory entry."""
        try:
            output_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(
                f"Failed to create output directory {output_path}: {e}",
                path=str(output_path),
            ) from e

    def open_output(self, output_path: Path) -> IO[bytes]:
        """Create (or truncate) the output file, creating parent directories."""
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(
                f"Failed to create output directory {output_path.parent}: {e}",
                path=str(output_path.parent),
            ) from e
        try:
            return open(output_path, "wb")
        except OSError as e:
            raise StorageIOError(
                f"Failed to create output file {output_path}: {e}",
                path=str(output_path),
            ) from e

    def directory_result(self, entry: Entry, output_path: Path, source: str) -> ExtractResult:
        self.make_directory(output_path)
        self.log.info(
            f"Created directory for entry {entry.name!r}",
            extra={"entry_name": entry.name, "output_path": str(output_path)},
        )
        return ExtractResult(
            name=entry.name,
            output_path=output_path,
            source=source,
            bytes_in=0,
            bytes_out=0,
            duration_ms=0,
            is_directory=True,
        )
