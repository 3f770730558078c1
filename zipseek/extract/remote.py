"""
Remote extraction: fetch one entry's bytes from S3 with a single range GET.

The extractor computes the inclusive range
    bytes=<data_offset>-<data_offset + compressed_size>
issues exactly one GetObject for it, and pulls the response body
incrementally through the decompression stage, so the range is never
held in memory as a whole.

Invariants:
    - Exactly one GetObject request per extraction
    - The output file is created only after the request succeeded
    - Given the same bytes, output equals LocalExtractor output

How to change safely:
    - Retries/timeouts belong in the AioConfig passed to the client
    - Keep error mapping in _map_client_error so callers see one taxonomy
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Optional, Union

import aiohttp
from aiobotocore.config import AioConfig
from aiobotocore.session import get_session
from botocore.exceptions import BotoCoreError, ClientError

from ..config import S3Config
from ..errors import NetworkError, ObjectNotFoundError, StorageIOError, ZipSeekError
from ..index.entry import ArchiveIndex, Entry
from .base import DEFAULT_OUTPUT_PREFIX, ExtractorBase, ExtractResult
from .inflate import Inflater, ainflate_stream

NOT_FOUND_CODES = frozenset({"NoSuchKey", "NoSuchBucket", "NotFound", "404", "InvalidRange", "416"})

# Transport-level failures, raised by the request or while pulling the body
NETWORK_ERRORS = (BotoCoreError, aiohttp.ClientError, asyncio.TimeoutError)


def byte_range_for(entry: Entry) -> str:
    """HTTP Range header value covering the entry payload."""
    return f"bytes={entry.data_offset}-{entry.data_offset + entry.compressed_size}"


def _map_client_error(e: ClientError, bucket: str, key: str) -> ZipSeekError:
    error = e.response.get("Error", {})
    code = str(error.get("Code", ""))
    status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    if code in NOT_FOUND_CODES or status in (404, 416):
        return ObjectNotFoundError(bucket, key, reason=code or str(status))
    return NetworkError(f"GetObject s3://{bucket}/{key} failed: {e}", bucket=bucket, key=key)


class RemoteExtractor(ExtractorBase):
    """Extracts single entries from an archive stored in S3.

    The extractor owns its aiobotocore client unless one is injected.

    Attributes:
        s3_config: S3 configuration (bucket, region, endpoint, addressing)

    Example:
        >>> async with RemoteExtractor(index, s3_config) as extractor:
        ...     result = await extractor.extract("test.zip", "dir/file.txt")
    """

    def __init__(
        self,
        index: ArchiveIndex,
        s3_config: S3Config,
        output_prefix: str = DEFAULT_OUTPUT_PREFIX,
        output_dir: Union[str, Path] = ".",
        chunk_size: int = 64 * 1024,
        client: Any = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """Initialize the extractor.

        Args:
            index: Loaded archive index
            s3_config: S3Config instance
            output_prefix: Prefix prepended to entry names for output paths
            output_dir: Base directory for extracted files
            chunk_size: Body read size
            client: Pre-built S3 client (tests, shared sessions)
            logger: Logger for diagnostics
        """
        super().__init__(
            index,
            output_prefix=output_prefix,
            output_dir=output_dir,
            chunk_size=chunk_size,
            logger=logger,
        )
        self.s3_config = s3_config
        self._s3_client = client
        self._s3_ctx = None
        self._session = None

    async def __aenter__(self) -> RemoteExtractor:
        await self._init_s3_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._close_s3_client()

    async def _init_s3_client(self) -> None:
        """Initialize S3 client."""
        if self._s3_client is not None:
            return

        self._session = get_session()

        client_kwargs = {
            "region_name": self.s3_config.region,
        }

        if self.s3_config.endpoint_url:
            client_kwargs["endpoint_url"] = self.s3_config.endpoint_url

        if self.s3_config.access_key_id:
            client_kwargs["aws_access_key_id"] = self.s3_config.access_key_id
            client_kwargs["aws_secret_access_key"] = self.s3_config.secret_access_key

        if self.s3_config.force_path_style:
            client_kwargs["config"] = AioConfig(s3={"addressing_style": "path"})

        self._s3_ctx = self._session.create_client("s3", **client_kwargs)
        self._s3_client = await self._s3_ctx.__aenter__()

    async def _close_s3_client(self) -> None:
        """Close S3 client if this extractor created it."""
        if self._s3_ctx is not None:
            await self._s3_ctx.__aexit__(None, None, None)
            self._s3_ctx = None
            self._s3_client = None

    async def extract(self, key: str, name: str, bucket: Optional[str] = None) -> ExtractResult:
        """Extract entry `name` from the archive object `key`.

        Args:
            key: Object key of the archive
            name: Entry name to extract
            bucket: Bucket name (defaults to s3_config.bucket)

        Raises:
            EntryNotFoundError: If the entry is not in the index (no file created)
            ObjectNotFoundError: If the object is missing or the range is invalid
            NetworkError: On transport or request failure
            StorageIOError: If the output cannot be created or written
            DecompressionError: If the payload is not a valid stream
            ValueError: If no bucket is given and s3_config has none (caller error)
            RuntimeError: If called outside 'async with' (caller error)
        """
        start_time = time.time()
        bucket = bucket or self.s3_config.bucket
        if not bucket:
            raise ValueError("bucket is required for remote extraction")

        entry, output_path = self.resolve_target(name)
        source = f"s3://{bucket}/{key}"

        if entry.is_directory:
            return self.directory_result(entry, output_path, source)

        if self._s3_client is None:
            raise RuntimeError("RemoteExtractor must be entered with 'async with' before use")

        inflater = Inflater(entry.compression_method, entry.compressed_size, name=entry.name)
        byte_range = byte_range_for(entry)
        response = await self._get_range(bucket, key, byte_range)
        body = response["Body"]

        async with body:
            with self.open_output(output_path) as sink:
                try:
                    bytes_out = await ainflate_stream(
                        body.iter_chunks(self.chunk_size), sink, inflater
                    )
                except ClientError as e:
                    raise _map_client_error(e, bucket, key) from e
                except NETWORK_ERRORS as e:
                    raise NetworkError(
                        f"Reading s3://{bucket}/{key} range {byte_range} failed: {e}",
                        bucket=bucket,
                        key=key,
                    ) from e
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
                "bucket": bucket,
                "key": key,
                "range": byte_range,
                "output_path": str(output_path),
                "bytes_in": result.bytes_in,
                "bytes_out": result.bytes_out,
                "duration_ms": result.duration_ms,
            },
        )
        return result

    async def _get_range(self, bucket: str, key: str, byte_range: str) -> dict[str, Any]:
        """Issue the single range GET; returns once headers have arrived."""
        try:
            return await self._s3_client.get_object(Bucket=bucket, Key=key, Range=byte_range)
        except ClientError as e:
            raise _map_client_error(e, bucket, key) from e
        except NETWORK_ERRORS as e:
            raise NetworkError(
                f"GetObject s3://{bucket}/{key} failed: {e}", bucket=bucket, key=key
            ) from e


async def extract_remote(
    key: str,
    name: str,
    index: ArchiveIndex,
    s3_config: S3Config,
    bucket: Optional[str] = None,
    output_prefix: str = DEFAULT_OUTPUT_PREFIX,
    output_dir: Union[str, Path] = ".",
    client: Any = None,
    logger: Optional[logging.Logger] = None,
) -> ExtractResult:
    """Extract one entry from S3 with a short-lived extractor."""
    async with RemoteExtractor(
        index,
        s3_config,
        output_prefix=output_prefix,
        output_dir=output_dir,
        client=client,
        logger=logger,
    ) as extractor:
        return await extractor.extract(key, name, bucket=bucket)
