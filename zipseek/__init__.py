"""
zipseek - single-entry extraction from ZIP archives without reading them whole.

The package builds a compact index of an archive's members, resolving the
absolute byte offset where each member's compressed payload starts, and
later uses it to pull one member's bytes from a local file (seek) or from
S3 (one byte-range GET) and inflate just that slice.

Architecture:
    ┌──────────┐   build    ┌──────────────┐   save/load   ┌──────────┐
    │ ZIP file │───────────▶│ IndexBuilder │──────────────▶│  Index   │
    └──────────┘            └──────────────┘               │  Store   │
                                                           └────┬─────┘
                                  ┌─────────────────────────────┤
                                  ▼                             ▼
                         ┌────────────────┐            ┌────────────────┐
                         │ LocalExtractor │            │RemoteExtractor │
                         │   (seek+read)  │            │  (range GET)   │
                         └───────┬────────┘            └───────┬────────┘
                                 └──────────────┬──────────────┘
                                                ▼
                                       ┌────────────────┐
                                       │    Inflater    │──▶ output file
                                       └────────────────┘

Invariants:
    - data_offset is the payload start, past the local header, name and extra field
    - An index goes stale silently if its archive changes after the build
    - Every extraction is all-or-nothing from the caller's point of view

Version: see _version.py.
"""

from ._version import __version__
from .errors import (
    ArchiveParseError,
    DecompressionError,
    EntryNotFoundError,
    IndexDecodeError,
    NetworkError,
    NotFoundError,
    StorageIOError,
    ZipSeekError,
)
from .extract import ExtractResult, LocalExtractor, RemoteExtractor
from .index import ArchiveIndex, Entry, build_index, load_index, save_index

__all__ = [
    "__version__",
    # Index
    "ArchiveIndex",
    "Entry",
    "build_index",
    "save_index",
    "load_index",
    # Extraction
    "ExtractResult",
    "LocalExtractor",
    "RemoteExtractor",
    # Errors
    "ZipSeekError",
    "ArchiveParseError",
    "NotFoundError",
    "EntryNotFoundError",
    "StorageIOError",
    "NetworkError",
    "IndexDecodeError",
    "DecompressionError",
]
