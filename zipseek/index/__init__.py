"""
Archive index for zipseek.

This module turns a ZIP archive into a compact, persistable index of
its members, each carrying the absolute offset of its compressed payload:
- IndexBuilder / build_index: parse central directory and local headers
- save_index / load_index: persist the whole index as one blob
- ArchiveIndex / Entry: ordered entries with first-match name lookup

Invariants:
    - An index is immutable once built or loaded
    - An index silently goes stale if its archive changes afterwards
"""

from .builder import (
    LOCAL_HEADER_SIZE,
    DirectoryRecord,
    EndRecord,
    IndexBuilder,
    LocalHeader,
    build_and_save,
    build_index,
    read_central_directory,
    read_end_record,
    read_local_header,
)
from .entry import ZIP_DEFLATED, ZIP_STORED, ArchiveIndex, Entry
from .store import index_summary, load_index, save_index

__all__ = [
    # Types
    "ArchiveIndex",
    "Entry",
    "LocalHeader",
    "EndRecord",
    "DirectoryRecord",
    "ZIP_DEFLATED",
    "ZIP_STORED",
    "LOCAL_HEADER_SIZE",
    # Building
    "IndexBuilder",
    "build_index",
    "build_and_save",
    "read_end_record",
    "read_central_directory",
    "read_local_header",
    # Persistence
    "save_index",
    "load_index",
    "index_summary",
]
