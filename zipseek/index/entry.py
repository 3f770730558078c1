"""
Entry record and ordered archive index.

An ArchiveIndex is built once from an archive snapshot and consumed
read-only any number of times afterwards.

Invariants:
    - Entry order is archive (central directory) order
    - data_offset points at the first payload byte, never at the local header
    - For non-directory entries, data_offset + compressed_size <= archive length
    - Name lookup returns the first entry carrying that name

How to change safely:
    - New Entry fields need a default in from_dict and a store version bump
    - Never reorder entries; equality depends on order
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from ..errors import EntryNotFoundError

logger = logging.getLogger(__name__)

ZIP_STORED = 0
ZIP_DEFLATED = 8

SUPPORTED_METHODS = frozenset({ZIP_STORED, ZIP_DEFLATED})


@dataclass(frozen=True)
class Entry:
    """One archive member with its resolved payload offset.

    Attributes:
        name: Archive-relative path
        uncompressed_size: Payload size after decompression
        compressed_size: Payload size as stored in the archive
        is_directory: Directory entries carry no payload
        data_offset: Absolute offset of the first compressed payload byte
        compression_method: ZIP compression method id (0 stored, 8 deflate)
    """

    name: str
    uncompressed_size: int
    compressed_size: int
    is_directory: bool
    data_offset: int
    compression_method: int = ZIP_DEFLATED

    @property
    def payload_end(self) -> int:
        """Offset one past the last compressed payload byte."""
        return self.data_offset + self.compressed_size

    @property
    def is_supported(self) -> bool:
        return self.compression_method in SUPPORTED_METHODS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "uncompressed_size": self.uncompressed_size,
            "compressed_size": self.compressed_size,
            "is_directory": self.is_directory,
            "data_offset": self.data_offset,
            "compression_method": self.compression_method,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Entry:
        """Create from dictionary.

        Raises:
            ValueError: If a field is missing, mistyped or negative.
        """
        if not isinstance(data, dict):
            raise ValueError(f"entry must be an object, got {type(data).__name__}")

        try:
            name = data["name"]
            is_directory = data["is_directory"]
            ints = {
                key: data[key]
                for key in ("uncompressed_size", "compressed_size", "data_offset")
            }
        except KeyError as e:
            raise ValueError(f"entry is missing field {e.args[0]!r}") from None
        ints["compression_method"] = data.get("compression_method", ZIP_DEFLATED)

        if not isinstance(name, str):
            raise ValueError("entry name must be a string")
        if not isinstance(is_directory, bool):
            raise ValueError(f"is_directory must be a boolean for {name!r}")
        for key, value in ints.items():
            # bool is an int subclass, reject it explicitly
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"{key} must be a non-negative integer for {name!r}")

        return cls(name=name, is_directory=is_directory, **ints)


class ArchiveIndex:
    """Ordered, immutable sequence of Entry records with name lookup.

    Example:
        >>> index = build_index("a.zip")
        >>> entry = index.lookup("dir/file.txt")
        >>> entry.data_offset, entry.compressed_size
    """

    def __init__(self, entries: Iterable[Entry] = ()) -> None:
        self._entries: Tuple[Entry, ...] = tuple(entries)
        self._by_name: Dict[str, Entry] = {}

        for entry in self._entries:
            if entry.name in self._by_name:
                logger.warning(
                    f"Duplicate entry name {entry.name!r}, keeping first occurrence",
                    extra={"entry_name": entry.name},
                )
                continue
            self._by_name[entry.name] = entry

    @property
    def entries(self) -> Tuple[Entry, ...]:
        return self._entries

    def names(self) -> List[str]:
        return [e.name for e in self._entries]

    def get(self, name: str) -> Optional[Entry]:
        """Return the first entry called `name`, or None."""
        return self._by_name.get(name)

    def lookup(self, name: str) -> Entry:
        """Return the first entry called `name`.

        Raises:
            EntryNotFoundError: If no entry has that name.
        """
        entry = self._by_name.get(name)
        if entry is None:
            raise EntryNotFoundError(name)
        return entry

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ArchiveIndex):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"ArchiveIndex({len(self._entries)} entries)"

    @property
    def stats(self) -> Dict[str, Any]:
        """Get index statistics."""
        files = [e for e in self._entries if not e.is_directory]
        return {
            "entries": len(self._entries),
            "files": len(files),
            "directories": len(self._entries) - len(files),
            "compressed_bytes": sum(e.compressed_size for e in files),
            "uncompressed_bytes": sum(e.uncompressed_size for e in files),
        }
