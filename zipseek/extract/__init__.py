"""
Partial extraction for zipseek.

Two peer extractors share the same decompression stage:
- LocalExtractor: seek into a local archive file
- RemoteExtractor: one byte-range GET against S3

Invariants:
    - Only the entry's compressed_size bytes reach the decoder
    - Local and remote extraction of the same bytes produce identical output
    - A missing entry never creates an output file
"""

from .base import (
    DEFAULT_OUTPUT_PREFIX,
    ExtractorBase,
    ExtractResult,
    derive_output_path,
    is_safe_entry_name,
)
from .inflate import Inflater, ainflate_stream, inflate_stream, iter_file_range
from .local import LocalExtractor, extract_local
from .remote import RemoteExtractor, byte_range_for, extract_remote

__all__ = [
    # Results and helpers
    "ExtractResult",
    "ExtractorBase",
    "DEFAULT_OUTPUT_PREFIX",
    "derive_output_path",
    "is_safe_entry_name",
    # Decompression stage
    "Inflater",
    "inflate_stream",
    "ainflate_stream",
    "iter_file_range",
    # Extractors
    "LocalExtractor",
    "RemoteExtractor",
    "extract_local",
    "extract_remote",
    "byte_range_for",
]
