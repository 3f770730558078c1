"""
Local extraction: seek into an archive file and decode one entry.

Only the entry's compressed_size bytes starting at data_offset are read;
the rest of the archive is never touched.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Optional, Union

from ..errors import StorageIOError
from ..index.entry import ArchiveIndex
from ..index.store import load_index
from .base import DEFAULT_OUTPUT_PREFIX, ExtractorBase, ExtractResult
from .inflate import Inflater, inflate_stream, iter_file_range


class LocalExtractor(ExtractorBase):
    """Extracts single entries from a local archive file using an index.

    Example:
        >>> extractor = LocalExtractor(load_index("a.idx"))
        >>> result = extractor.extract("a.zip", "dir/file.txt")
        >>> result.output_path
        PosixPath('extracted_dir/file.txt')
    """

    def extract(self, archive_path: Union[str, "os.PathLike[str]"], name: str) -> ExtractResult:
        """Extract entry `name` from the archive at `archive_path`.

        Raises:
            EntryNotFoundError: If the entry is not in the index (no file created)
            StorageIOError: On open, seek, read, create or write failure
            DecompressionError: If the payload is not a valid stream
        """
        start_time = time.time()
        entry, output_path = self.resolve_target(name)
        source = os.fspath(archive_path)

        if entry.is_directory:
            return self.directory_result(entry, output_path, source)

        inflater = Inflater(entry.compression_method, entry.compressed_size, name=entry.name)

        try:
            archive = open(source, "rb")
        except OSError as e:
            raise StorageIOError(f"Failed to open archive {source}: {e}", path=source) from e

        with archive:
            try:
                archive.seek(entry.data_offset)
            except OSError as e:
                raise StorageIOError(
                    f"Failed to seek to offset {entry.data_offset} in {source}: {e}",
                    path=source,
                ) from e

            with self.open_output(output_path) as sink:
                try:
                    bytes_out = inflate_stream(
                        iter_file_range(archive, entry.compressed_size, self.chunk_size),
                        sink,
                        inflater,
                    )
                except OSError as e:
                    raise StorageIOError(
                        f"Failed to extract {entry.name!r} to {output_path}: {e}",
                        path=str(output_path),
                    ) from e

        result = ExtractResult(
            name=entry.name,
            output_path=output_path,
            source=source,
            bytes_in=inflater.bytes_in,
            bytes_out=bytes_out,
            duration_ms=int((time.time() - start_time) * 1000),
        )
        self.log.info(
            f"Extracted {entry.name!r} from {source}",
            extra={
                "entry_name": entry.name,
                "output_path": str(output_path),
                "bytes_in": result.bytes_in,
                "bytes_out": result.bytes_out,
                "duration_ms": result.duration_ms,
            },
        )
        return result


def extract_local(
    archive_path: Union[str, "os.PathLike[str]"],
    name: str,
    index: Union[ArchiveIndex, str, "os.PathLike[str]"],
    output_prefix: str = DEFAULT_OUTPUT_PREFIX,
    output_dir: Union[str, Path] = ".",
    logger: Optional[logging.Logger] = None,
) -> ExtractResult:
    """Extract one entry, loading the index from disk if given a path."""
    if not isinstance(index, ArchiveIndex):
        index = load_index(index)
    extractor = LocalExtractor(
        index,
        output_prefix=output_prefix,
        output_dir=output_dir,
        logger=logger,
    )
    return extractor.extract(archive_path, name)
