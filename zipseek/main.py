"""
zipseek - top-level operations wired to configuration.

This module connects configuration to the core components:
- setup_logging: root logger configuration
- index_archive: build and persist an index
- extract_from_file: local seek-based extraction
- extract_from_s3: remote range-based extraction

Every operation receives its configuration explicitly; nothing here
reads hardcoded paths, buckets or keys.

Invariants:
    - An index is built and saved before any extraction uses it
    - Any ZipSeekError aborts the operation and reaches the caller
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

import json_log_formatter

from .config import AppConfig, ObservabilityConfig
from .extract import ExtractResult, LocalExtractor, RemoteExtractor
from .index import ArchiveIndex, build_and_save, load_index

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def setup_logging(config: ObservabilityConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Observability configuration
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    if config.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)


def index_archive(archive_path: PathLike, index_path: PathLike) -> ArchiveIndex:
    """Build the index of a local archive and persist it."""
    return build_and_save(archive_path, index_path)


def extract_from_file(
    config: AppConfig,
    archive_path: PathLike,
    name: str,
    index_path: PathLike,
) -> ExtractResult:
    """Extract `name` from a local archive using the index at `index_path`."""
    config.validate()
    index = load_index(index_path)
    extractor = LocalExtractor(
        index,
        output_prefix=config.extract.output_prefix,
        output_dir=config.extract.output_dir,
        chunk_size=config.extract.chunk_size,
    )
    return extractor.extract(archive_path, name)


async def extract_from_s3(
    config: AppConfig,
    key: str,
    name: str,
    index_path: PathLike,
    bucket: Optional[str] = None,
    client=None,
) -> ExtractResult:
    """Extract `name` from the S3 object `key` using the index at `index_path`.

    Args:
        config: Application configuration
        key: Object key of the archive
        name: Entry to extract
        index_path: Persisted index built from the same archive bytes
        bucket: Overrides config.s3.bucket
        client: Pre-built S3 client; a new one is created when omitted
    """
    if bucket is None:
        config.validate(remote=True)
    else:
        config.validate()

    index = load_index(index_path)
    async with RemoteExtractor(
        index,
        config.s3,
        output_prefix=config.extract.output_prefix,
        output_dir=config.extract.output_dir,
        chunk_size=config.extract.chunk_size,
        client=client,
    ) as extractor:
        return await extractor.extract(key, name, bucket=bucket)
