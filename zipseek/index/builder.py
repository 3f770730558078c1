"""
Archive index builder for zipseek.

The builder turns a ZIP archive into an ArchiveIndex whose entries carry
the absolute offset of each member's compressed payload. The central
directory only records where each member's *local header* starts; the
payload begins after that header's variable-length name and extra field,
so every member's local header is read to resolve the real offset:

    data_offset = header_offset + 30 + name_length + extra_length

End of central directory record (little endian):
    Offset  Bytes  Description
    0       4      Signature = 0x06054b50 ("PK\\x05\\x06")
    4       2      Number of this disk
    6       2      Disk where central directory starts
    8       2      Number of central directory records on this disk
    10      2      Total number of central directory records
    12      4      Size of central directory (bytes)
    16      4      Offset of start of central directory
    20      2      Comment length (n)

Central directory file header (little endian):
    Offset  Bytes  Description
    0       4      Signature = 0x02014b50 ("PK\\x01\\x02")
    4       2      Version made by
    6       2      Version needed to extract
    8       2      General purpose bit flag
    10      2      Compression method
    12      4      Last mod time / date
    16      4      CRC-32
    20      4      Compressed size
    24      4      Uncompressed size
    28      2      File name length (n)
    30      2      Extra field length (m)
    32      2      File comment length (k)
    34      2      Disk number start
    36      2      Internal file attributes
    38      4      External file attributes
    42      4      Relative offset of local file header
    46      n+m+k  File name, extra field, file comment

Local file header layout (little endian):
    Offset  Bytes  Description
    0       4      Signature = 0x04034b50 ("PK\\x03\\x04")
    4       2      Version needed to extract
    6       2      General purpose bit flag
    8       2      Compression method
    10      2      Last mod time
    12      2      Last mod date
    14      4      CRC-32
    18      4      Compressed size
    22      4      Uncompressed size
    26      2      File name length (n)
    28      2      Extra field length (m)
    30      n      File name
    30+n    m      Extra field

Invariants:
    - A missing end record or unwalkable central directory aborts the build
    - A member whose directory record or local header cannot be resolved is
      dropped, never fatal
    - Building twice from an unmodified archive yields equal indexes

How to change safely:
    - Keep header parsing in the read_* functions so tests can re-parse offsets
    - Any new drop condition must log the member name and reason
"""

from __future__ import annotations

import io
import logging
import os
import struct
import time
from dataclasses import dataclass
from typing import IO, List, Optional, Union

from ..errors import ArchiveParseError, StorageIOError
from .entry import ArchiveIndex, Entry
from .store import save_index

logger = logging.getLogger(__name__)

END_RECORD_SIGNATURE = b"PK\x05\x06"
END_RECORD_STRUCT = struct.Struct("<4sHHHHLLH")
END_RECORD_SIZE = END_RECORD_STRUCT.size  # 22
MAX_COMMENT_LENGTH = 0xFFFF

CENTRAL_HEADER_SIGNATURE = b"PK\x01\x02"
CENTRAL_HEADER_STRUCT = struct.Struct("<4sHHHHHHLLLHHHHHLL")
CENTRAL_HEADER_SIZE = CENTRAL_HEADER_STRUCT.size  # 46

LOCAL_HEADER_SIGNATURE = b"PK\x03\x04"
LOCAL_HEADER_STRUCT = struct.Struct("<4sHHHHHLLLHH")
LOCAL_HEADER_SIZE = LOCAL_HEADER_STRUCT.size  # 30

FLAG_ENCRYPTED = 0x0001
FLAG_UTF8_NAME = 0x0800

# Highest "version needed to extract" the format revisions we read define (6.3)
MAX_EXTRACT_VERSION = 63
ZIP64_MARKER = 0xFFFFFFFF

ArchiveSource = Union[str, "os.PathLike[str]", IO[bytes]]


def decode_name(raw_name: bytes, flags: int) -> str:
    """Decode a member name: UTF-8 when flag bit 11 is set, else cp437.

    Raises:
        UnicodeDecodeError: If a UTF-8 flagged name is not valid UTF-8.
    """
    return raw_name.decode("utf-8" if flags & FLAG_UTF8_NAME else "cp437")


@dataclass(frozen=True)
class EndRecord:
    """Location of the central directory, from the end record."""

    offset: int
    entry_count: int
    directory_size: int
    directory_offset: int


@dataclass(frozen=True)
class DirectoryRecord:
    """One undecoded central directory file header."""

    record_offset: int
    version_needed: int
    flags: int
    compression_method: int
    compressed_size: int
    uncompressed_size: int
    header_offset: int
    raw_name: bytes

    @property
    def display_name(self) -> str:
        """Best-effort name for diagnostics, even when undecodable."""
        encoding = "utf-8" if self.flags & FLAG_UTF8_NAME else "cp437"
        return self.raw_name.decode(encoding, errors="replace")


@dataclass(frozen=True)
class LocalHeader:
    """Parsed local file header.

    Sizes may be zero when the member uses a trailing data descriptor
    (flag bit 3); the central directory sizes are authoritative.
    """

    header_offset: int
    flags: int
    compression_method: int
    compressed_size: int
    uncompressed_size: int
    name_length: int
    extra_length: int
    name: str

    @property
    def data_offset(self) -> int:
        return self.header_offset + LOCAL_HEADER_SIZE + self.name_length + self.extra_length


def read_end_record(fp: IO[bytes], archive_size: int) -> EndRecord:
    """Find the end of central directory record in the archive tail.

    Raises:
        ArchiveParseError: If no end record exists, it describes a
            multi-disk or ZIP64 archive, or its directory region is impossible
    """
    tail_size = min(archive_size, END_RECORD_SIZE + MAX_COMMENT_LENGTH)
    fp.seek(archive_size - tail_size)
    tail = fp.read(tail_size)

    pos = tail.rfind(END_RECORD_SIGNATURE)
    while pos != -1 and pos + END_RECORD_SIZE > len(tail):
        pos = tail.rfind(END_RECORD_SIGNATURE, 0, pos)
    if pos == -1:
        raise ArchiveParseError("End of central directory record not found")

    (
        _signature,
        disk,
        directory_disk,
        _disk_entries,
        entry_count,
        directory_size,
        directory_offset,
        _comment_length,
    ) = END_RECORD_STRUCT.unpack_from(tail, pos)
    offset = archive_size - tail_size + pos

    if disk != 0 or directory_disk != 0:
        raise ArchiveParseError("Multi-disk archives are not supported")
    if ZIP64_MARKER in (directory_size, directory_offset):
        raise ArchiveParseError("ZIP64 archives are not supported")
    if directory_offset + directory_size > offset:
        raise ArchiveParseError(
            f"Central directory ({directory_size} bytes at offset {directory_offset}) "
            f"runs past the end record at offset {offset}"
        )

    return EndRecord(
        offset=offset,
        entry_count=entry_count,
        directory_size=directory_size,
        directory_offset=directory_offset,
    )


def read_central_directory(fp: IO[bytes], end: EndRecord) -> List[DirectoryRecord]:
    """Walk the central directory described by `end`.

    Records are split but not interpreted, so one bad record can be
    dropped later without losing the others.

    Raises:
        ArchiveParseError: If the record chain itself is broken (truncated
            region or bad signature), since later records cannot be located
    """
    fp.seek(end.directory_offset)
    data = fp.read(end.directory_size)
    if len(data) != end.directory_size:
        raise ArchiveParseError(f"Truncated central directory at offset {end.directory_offset}")

    records: List[DirectoryRecord] = []
    pos = 0
    for _ in range(end.entry_count):
        record_offset = end.directory_offset + pos
        if pos + CENTRAL_HEADER_SIZE > len(data):
            raise ArchiveParseError(
                f"Central directory ends after {len(records)} of {end.entry_count} records"
            )

        (
            signature,
            _version_made,
            version_needed,
            flags,
            method,
            _mtime,
            _mdate,
            _crc,
            compressed_size,
            uncompressed_size,
            name_length,
            extra_length,
            comment_length,
            _disk_start,
            _internal_attr,
            _external_attr,
            header_offset,
        ) = CENTRAL_HEADER_STRUCT.unpack_from(data, pos)

        if signature != CENTRAL_HEADER_SIGNATURE:
            raise ArchiveParseError(f"Bad central directory signature at offset {record_offset}")

        name_start = pos + CENTRAL_HEADER_SIZE
        record_end = name_start + name_length + extra_length + comment_length
        if record_end > len(data):
            raise ArchiveParseError(f"Truncated central directory record at offset {record_offset}")

        records.append(
            DirectoryRecord(
                record_offset=record_offset,
                version_needed=version_needed,
                flags=flags,
                compression_method=method,
                compressed_size=compressed_size,
                uncompressed_size=uncompressed_size,
                header_offset=header_offset,
                raw_name=bytes(data[name_start : name_start + name_length]),
            )
        )
        pos = record_end

    return records


def read_local_header(fp: IO[bytes], header_offset: int) -> LocalHeader:
    """Parse the local file header starting at `header_offset`.

    Args:
        fp: Seekable binary file positioned anywhere
        header_offset: Absolute offset of the header signature

    Returns:
        LocalHeader including the decoded member name

    Raises:
        ArchiveParseError: If the header is truncated or has a bad signature
    """
    fp.seek(header_offset)
    raw = fp.read(LOCAL_HEADER_SIZE)
    if len(raw) != LOCAL_HEADER_SIZE:
        raise ArchiveParseError(f"Truncated local header at offset {header_offset}")

    (
        signature,
        _version,
        flags,
        method,
        _mtime,
        _mdate,
        _crc,
        compressed_size,
        uncompressed_size,
        name_length,
        extra_length,
    ) = LOCAL_HEADER_STRUCT.unpack(raw)

    if signature != LOCAL_HEADER_SIGNATURE:
        raise ArchiveParseError(f"Bad local header signature at offset {header_offset}")

    raw_name = fp.read(name_length)
    if len(raw_name) != name_length:
        raise ArchiveParseError(f"Truncated member name at offset {header_offset}")

    try:
        name = decode_name(raw_name, flags)
    except UnicodeDecodeError as e:
        raise ArchiveParseError(f"Undecodable member name at offset {header_offset}: {e}") from e

    return LocalHeader(
        header_offset=header_offset,
        flags=flags,
        compression_method=method,
        compressed_size=compressed_size,
        uncompressed_size=uncompressed_size,
        name_length=name_length,
        extra_length=extra_length,
        name=name,
    )


class IndexBuilder:
    """Builds ArchiveIndex instances from ZIP archives.

    The build process:
    1. Locate the end-of-central-directory record and split the directory
       into records
    2. Decode each record and read its local header to resolve the
       payload offset
    3. Drop members that cannot be resolved, keep the rest in archive order

    Attributes:
        dropped: Names of members dropped by the last build

    Example:
        >>> builder = IndexBuilder()
        >>> index = builder.build("a.zip")
        >>> builder.dropped
        []
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        """Initialize the builder.

        Args:
            logger: Logger for diagnostics (defaults to the module logger)
        """
        self.log = logger or logging.getLogger(__name__)
        self.dropped: List[str] = []

    def build(self, source: ArchiveSource) -> ArchiveIndex:
        """Build an index from a path or a seekable binary file.

        Raises:
            StorageIOError: If the archive cannot be opened or read
            ArchiveParseError: If the central directory cannot be located
        """
        if isinstance(source, (str, os.PathLike)):
            path = os.fspath(source)
            try:
                with open(path, "rb") as fp:
                    return self._build(fp, path)
            except OSError as e:
                raise StorageIOError(f"Failed to read archive {path}: {e}", path=path) from e

        label = getattr(source, "name", None)
        try:
            return self._build(source, label)
        except OSError as e:
            raise StorageIOError(f"Failed to read archive: {e}", path=label) from e

    def _build(self, fp: IO[bytes], label: Optional[str]) -> ArchiveIndex:
        start_time = time.time()
        self.dropped = []

        archive_size = fp.seek(0, io.SEEK_END)
        try:
            records = read_central_directory(fp, read_end_record(fp, archive_size))
        except ArchiveParseError as e:
            raise ArchiveParseError(
                f"Cannot read central directory of {label or 'archive'}: {e.message}",
                source=label,
            ) from e

        entries = []
        for record in records:
            entry = self._resolve_entry(fp, record, archive_size)
            if entry is not None:
                entries.append(entry)

        index = ArchiveIndex(entries)
        self.log.info(
            f"Indexed {len(entries)} of {len(records)} members",
            extra={
                "archive": label,
                "entries": len(entries),
                "dropped": len(self.dropped),
                "duration_ms": int((time.time() - start_time) * 1000),
            },
        )
        return index

    def _resolve_entry(
        self,
        fp: IO[bytes],
        record: DirectoryRecord,
        archive_size: int,
    ) -> Entry | None:
        """Resolve one central directory record into an Entry, or None to drop it."""
        try:
            name = decode_name(record.raw_name, record.flags)
        except UnicodeDecodeError as e:
            self._drop(record, f"undecodable name: {e}")
            return None

        if record.version_needed > MAX_EXTRACT_VERSION:
            version = record.version_needed
            self._drop(record, f"needs ZIP version {version // 10}.{version % 10} to extract")
            return None

        if record.flags & FLAG_ENCRYPTED:
            self._drop(record, "encrypted members are not supported")
            return None

        if ZIP64_MARKER in (record.compressed_size, record.uncompressed_size, record.header_offset):
            self._drop(record, "ZIP64 members are not supported")
            return None

        try:
            header = read_local_header(fp, record.header_offset)
        except ArchiveParseError as e:
            self._drop(record, e.message)
            return None

        if header.name != name:
            self._drop(record, f"local header names {header.name!r}")
            return None

        is_directory = name.endswith("/")
        if not is_directory and header.data_offset + record.compressed_size > archive_size:
            self._drop(record, "payload extends past end of archive")
            return None

        return Entry(
            name=name,
            uncompressed_size=record.uncompressed_size,
            compressed_size=record.compressed_size,
            is_directory=is_directory,
            data_offset=header.data_offset,
            compression_method=record.compression_method,
        )

    def _drop(self, record: DirectoryRecord, reason: str) -> None:
        name = record.display_name
        self.dropped.append(name)
        self.log.warning(
            f"Dropping member {name!r}: {reason}",
            extra={
                "entry_name": name,
                "record_offset": record.record_offset,
                "header_offset": record.header_offset,
            },
        )


def build_index(source: ArchiveSource, logger: Optional[logging.Logger] = None) -> ArchiveIndex:
    """Build an index from a path or seekable binary file."""
    return IndexBuilder(logger=logger).build(source)


def build_and_save(
    archive_path: Union[str, "os.PathLike[str]"],
    index_path: Union[str, "os.PathLike[str]"],
    logger: Optional[logging.Logger] = None,
) -> ArchiveIndex:
    """Build the index of `archive_path` and persist it at `index_path`."""
    log = logger or logging.getLogger(__name__)
    index = build_index(archive_path, logger=log)
    save_index(index, index_path)
    log.info(
        f"Index with offsets saved to {os.fspath(index_path)}",
        extra={"archive": os.fspath(archive_path), "entries": len(index)},
    )
    return index
