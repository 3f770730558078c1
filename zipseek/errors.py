"""
Error types for zipseek.

This module defines all exception types raised by the package:
- ZipSeekError: Base exception
- ArchiveParseError: Archive directory structure unreadable
- NotFoundError: Entry, index file or remote object missing
- StorageIOError: Local filesystem failure
- NetworkError: Remote fetch failure
- IndexDecodeError: Persisted index blob malformed
- DecompressionError: Invalid or truncated compressed stream
- UnsafeEntryNameError: Entry name would escape the output directory

Caller mistakes (missing configuration, using an extractor outside its
context manager) raise ValueError or RuntimeError, as AppConfig.validate
does; they are not part of this hierarchy.

Invariants:
    - All errors inherit from ZipSeekError
    - Errors include context for debugging
    - Error messages are actionable
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ZipSeekError(Exception):
    """Base exception for all zipseek errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "ZIPSEEK_ERROR"
        self.details = details or {}


class ArchiveParseError(ZipSeekError):
    """The archive's central directory could not be located or parsed.

    Per-entry failures never raise this; the builder drops those entries.
    """

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(message, code="PARSE_ERROR", details={"source": source})
        self.source = source


class NotFoundError(ZipSeekError):
    """Something that was asked for does not exist."""

    def __init__(
        self,
        message: str,
        code: str = "NOT_FOUND",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code, details=details)


class EntryNotFoundError(NotFoundError):
    """Entry name is absent from the index."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Entry not found in index: {name!r}",
            code="ENTRY_NOT_FOUND",
            details={"name": name},
        )
        self.name = name


class IndexFileNotFoundError(NotFoundError):
    """Persisted index file does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Index file not found: {path}",
            code="INDEX_NOT_FOUND",
            details={"path": path},
        )
        self.path = path


class ObjectNotFoundError(NotFoundError):
    """Remote object is missing, or the requested range is not satisfiable."""

    def __init__(self, bucket: str, key: str, reason: Optional[str] = None) -> None:
        super().__init__(
            f"Object not found: s3://{bucket}/{key}" + (f" ({reason})" if reason else ""),
            code="OBJECT_NOT_FOUND",
            details={"bucket": bucket, "key": key, "reason": reason},
        )
        self.bucket = bucket
        self.key = key
        self.reason = reason


class StorageIOError(ZipSeekError):
    """Local filesystem operation failed.

    Raised when:
    - Archive cannot be opened, seeked or read
    - Output file or its parent directory cannot be created
    - Index file cannot be written or read
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message, code="IO_ERROR", details={"path": path})
        self.path = path


class NetworkError(ZipSeekError):
    """Remote range fetch failed at the transport or request level."""

    def __init__(
        self,
        message: str,
        bucket: Optional[str] = None,
        key: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="NETWORK_ERROR",
            details={"bucket": bucket, "key": key},
        )
        self.bucket = bucket
        self.key = key


class IndexDecodeError(ZipSeekError):
    """Persisted index blob is malformed."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message, code="DECODE_ERROR", details={"path": path})
        self.path = path


class DecompressionError(ZipSeekError):
    """Compressed payload is invalid or truncated."""

    def __init__(
        self,
        message: str,
        code: str = "DECOMPRESSION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code, details=details)


class UnsupportedCompressionError(DecompressionError):
    """Entry uses a compression method other than stored or deflate."""

    def __init__(self, method: int, name: Optional[str] = None) -> None:
        super().__init__(
            f"Unsupported compression method {method}" + (f" for {name!r}" if name else ""),
            code="UNSUPPORTED_COMPRESSION",
            details={"method": method, "name": name},
        )
        self.method = method
        self.name = name


class UnsafeEntryNameError(ZipSeekError):
    """Entry name is absolute or escapes the output directory."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Refusing to extract unsafe entry name: {name!r}",
            code="UNSAFE_ENTRY_NAME",
            details={"name": name},
        )
        self.name = name
