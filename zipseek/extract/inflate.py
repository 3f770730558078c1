"""
Decompression stage shared by local and remote extraction.

The stage consumes a byte stream already positioned at an entry's
payload, truncates it to exactly the entry's compressed_size and writes
the decoded bytes to a sink chunk by chunk. It does not care whether the
chunks came from a local file or an HTTP response body.

Invariants:
    - No byte past compressed_size is ever decoded
    - The whole output is never buffered in memory
    - A short or corrupt stream raises DecompressionError
"""

from __future__ import annotations

import zlib
from typing import IO, AsyncIterable, Iterable, Iterator, Optional

from ..errors import DecompressionError, UnsupportedCompressionError
from ..index.entry import ZIP_DEFLATED, ZIP_STORED

DEFAULT_CHUNK_SIZE = 64 * 1024


class Inflater:
    """Incremental decoder for one entry payload.

    Method 8 (deflate) is inflated as a raw stream without zlib header;
    method 0 (stored) is passed through unchanged.

    Example:
        >>> inflater = Inflater(ZIP_DEFLATED, entry.compressed_size)
        >>> out = inflater.feed(chunk) + inflater.finish()
    """

    def __init__(
        self,
        compression_method: int,
        compressed_size: int,
        name: Optional[str] = None,
    ) -> None:
        if compression_method == ZIP_DEFLATED:
            self._decompressor = zlib.decompressobj(-zlib.MAX_WBITS)
        elif compression_method == ZIP_STORED:
            self._decompressor = None
        else:
            raise UnsupportedCompressionError(compression_method, name)

        self.compression_method = compression_method
        self.compressed_size = compressed_size
        self.name = name
        self.bytes_in = 0
        self.bytes_out = 0

    @property
    def remaining(self) -> int:
        """Compressed bytes still expected."""
        return self.compressed_size - self.bytes_in

    def feed(self, chunk: bytes) -> bytes:
        """Decode the next chunk, ignoring anything past compressed_size."""
        if len(chunk) > self.remaining:
            chunk = chunk[: self.remaining]
        if not chunk:
            return b""
        self.bytes_in += len(chunk)

        if self._decompressor is None:
            out = bytes(chunk)
        else:
            try:
                out = self._decompressor.decompress(chunk)
            except zlib.error as e:
                raise DecompressionError(
                    f"Invalid deflate stream for {self.name or 'entry'}: {e}",
                    details={"name": self.name, "bytes_in": self.bytes_in},
                ) from e

        self.bytes_out += len(out)
        return out

    def finish(self) -> bytes:
        """Flush remaining output and check the stream was complete."""
        if self.remaining > 0:
            raise DecompressionError(
                f"Truncated payload for {self.name or 'entry'}: "
                f"got {self.bytes_in} of {self.compressed_size} bytes",
                details={"name": self.name, "bytes_in": self.bytes_in},
            )
        if self._decompressor is None:
            return b""

        try:
            out = self._decompressor.flush()
        except zlib.error as e:
            raise DecompressionError(f"Invalid deflate stream for {self.name or 'entry'}: {e}") from e
        if not self._decompressor.eof:
            raise DecompressionError(
                f"Deflate stream for {self.name or 'entry'} ended before its final block",
                details={"name": self.name, "bytes_in": self.bytes_in},
            )

        self.bytes_out += len(out)
        return out


def iter_file_range(
    fp: IO[bytes],
    size: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[bytes]:
    """Yield at most `size` bytes from the current position of `fp`.

    Stops early at end of file; the Inflater reports the shortfall.
    """
    remaining = size
    while remaining > 0:
        chunk = fp.read(min(chunk_size, remaining))
        if not chunk:
            return
        remaining -= len(chunk)
        yield chunk


def inflate_stream(chunks: Iterable[bytes], sink: IO[bytes], inflater: Inflater) -> int:
    """Decode `chunks` into `sink`; returns the number of bytes written."""
    for chunk in chunks:
        sink.write(inflater.feed(chunk))
        if inflater.remaining == 0:
            break
    sink.write(inflater.finish())
    return inflater.bytes_out


async def ainflate_stream(
    chunks: AsyncIterable[bytes],
    sink: IO[bytes],
    inflater: Inflater,
) -> int:
    """Async variant of inflate_stream for network bodies."""
    async for chunk in chunks:
        sink.write(inflater.feed(chunk))
        if inflater.remaining == 0:
            break
    sink.write(inflater.finish())
    return inflater.bytes_out
