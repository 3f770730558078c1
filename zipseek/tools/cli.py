"""
Command line interface for zipseek.

Usage:
    zipseek index ARCHIVE INDEX
    zipseek list INDEX
    zipseek extract ARCHIVE NAME --index INDEX [--prefix P] [--output-dir D]
    zipseek extract-s3 KEY NAME --index INDEX [--bucket B] [--endpoint URL]
                                               [--region R] [--path-style]

Settings not given as flags are read from the environment
(S3_BUCKET, S3_REGION, S3_ENDPOINT, S3_FORCE_PATH_STYLE,
EXTRACT_OUTPUT_PREFIX, EXTRACT_OUTPUT_DIR, EXTRACT_CHUNK_SIZE,
LOG_LEVEL, LOG_FORMAT).

Exit codes:
    0  success
    1  operation failed (message printed)
    2  invalid arguments or configuration
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from typing import List, Optional

from ..config import AppConfig
from ..errors import ZipSeekError
from ..extract import ExtractResult
from ..index import index_summary, load_index
from ..main import extract_from_file, extract_from_s3, index_archive, setup_logging

logger = logging.getLogger(__name__)

ENV_HELP = """\
environment:
  S3_BUCKET, S3_REGION, S3_ENDPOINT, S3_FORCE_PATH_STYLE
  AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY
  EXTRACT_OUTPUT_PREFIX, EXTRACT_OUTPUT_DIR, EXTRACT_CHUNK_SIZE
  LOG_LEVEL, LOG_FORMAT
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zipseek",
        description="Index ZIP archives and extract single entries without reading them whole",
        epilog=ENV_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    sub = parser.add_subparsers(dest="command", required=True)

    p_index = sub.add_parser("index", help="Build and save the index of a local archive")
    p_index.add_argument("archive", help="Path to the ZIP archive")
    p_index.add_argument("index", help="Where to write the index")

    p_list = sub.add_parser("list", help="List the entries of a saved index")
    p_list.add_argument("index", help="Path to a saved index")

    p_local = sub.add_parser("extract", help="Extract one entry from a local archive")
    p_local.add_argument("archive", help="Path to the ZIP archive")
    p_local.add_argument("name", help="Entry name inside the archive")
    _add_extract_options(p_local)

    p_remote = sub.add_parser("extract-s3", help="Extract one entry from an archive in S3")
    p_remote.add_argument("key", help="Object key of the ZIP archive")
    p_remote.add_argument("name", help="Entry name inside the archive")
    _add_extract_options(p_remote)
    p_remote.add_argument("--bucket", help="S3 bucket name")
    p_remote.add_argument("--endpoint", help="S3 endpoint URL (for MinIO)")
    p_remote.add_argument("--region", help="AWS region")
    p_remote.add_argument(
        "--path-style", action="store_true", default=None, help="Use path-style addressing"
    )

    return parser


def _add_extract_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--index", required=True, help="Index built from the same archive")
    parser.add_argument("--prefix", help="Output path prefix (default: extracted_)")
    parser.add_argument("--output-dir", help="Base directory for extracted files")


def _apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    extract_changes = {
        field: value
        for field, value in (
            ("output_prefix", getattr(args, "prefix", None)),
            ("output_dir", getattr(args, "output_dir", None)),
        )
        if value is not None
    }
    s3_changes = {
        field: value
        for field, value in (
            ("bucket", getattr(args, "bucket", None)),
            ("endpoint_url", getattr(args, "endpoint", None)),
            ("region", getattr(args, "region", None)),
            ("force_path_style", getattr(args, "path_style", None)),
        )
        if value is not None
    }
    return AppConfig(
        s3=dataclasses.replace(config.s3, **s3_changes),
        extract=dataclasses.replace(config.extract, **extract_changes),
        observability=config.observability,
    )


def _print_result(result: ExtractResult) -> None:
    if result.is_directory:
        print(f"Created directory {result.output_path}")
        return
    print(f"Extracted {result.name}")
    print(f"  Source: {result.source}")
    print(f"  Output: {result.output_path}")
    print(f"  Bytes: {result.bytes_in} compressed, {result.bytes_out} written")
    print(f"  Duration: {result.duration_ms}ms")


def run(args: argparse.Namespace, config: AppConfig) -> int:
    if args.command == "index":
        index = index_archive(args.archive, args.index)
        print(f"Indexed {len(index)} entries into {args.index}")
        return 0

    if args.command == "list":
        index = load_index(args.index)
        for entry in index:
            kind = "d" if entry.is_directory else "-"
            print(
                f"{kind} {entry.uncompressed_size:>12} {entry.compressed_size:>12} "
                f"{entry.data_offset:>12}  {entry.name}"
            )
        summary = index_summary(index)
        print(f"{summary['files']} files, {summary['directories']} directories")
        return 0

    if args.command == "extract":
        result = extract_from_file(config, args.archive, args.name, args.index)
        _print_result(result)
        return 0

    if args.command == "extract-s3":
        result = asyncio.run(extract_from_s3(config, args.key, args.name, args.index))
        _print_result(result)
        return 0

    raise ValueError(f"Unknown command {args.command!r}")


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = _apply_overrides(AppConfig.from_env(), args)
        config.validate(remote=args.command == "extract-s3")
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    if args.verbose:
        config = dataclasses.replace(
            config,
            observability=dataclasses.replace(config.observability, log_level="DEBUG"),
        )
    setup_logging(config.observability)

    try:
        return run(args, config)
    except ZipSeekError as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        print(f"{args.command} failed: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
