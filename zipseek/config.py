"""
Configuration management for zipseek.

All configuration comes from environment variables, optionally overridden
by explicit values (for example CLI flags). Nothing is read from
process-wide mutable state after construction.

Invariants:
    - All settings have sensible defaults for local development
    - Configuration is validated before any component uses it
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Mention new environment variables in the CLI epilog
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

LOG_FORMATS = ("text", "json")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class S3Config:
    """S3 configuration for remote extraction.

    Attributes:
        bucket: S3 bucket holding archives
        region: AWS region
        endpoint_url: Custom endpoint URL (for MinIO)
        force_path_style: Use path-style addressing (bucket in the URL path)
        access_key_id: AWS access key ID (optional, uses AWS credential chain)
        secret_access_key: AWS secret access key (optional)
    """

    bucket: str = ""
    region: str = "us-east-1"
    endpoint_url: str | None = None
    force_path_style: bool = False
    access_key_id: str | None = None
    secret_access_key: str | None = None

    @classmethod
    def from_env(cls) -> S3Config:
        """Load configuration from environment variables."""
        return cls(
            bucket=os.getenv("S3_BUCKET", ""),
            region=os.getenv("S3_REGION", os.getenv("AWS_REGION", "us-east-1")),
            endpoint_url=os.getenv("S3_ENDPOINT"),
            force_path_style=_env_flag("S3_FORCE_PATH_STYLE", "false"),
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )


@dataclass(frozen=True)
class ExtractConfig:
    """Extraction output configuration.

    Attributes:
        output_prefix: Prefix prepended to entry names to form output paths
        output_dir: Base directory for extracted files
        chunk_size: Read size for payload streams in bytes
    """

    output_prefix: str = "extracted_"
    output_dir: str = "."
    chunk_size: int = 64 * 1024

    @classmethod
    def from_env(cls) -> ExtractConfig:
        """Load configuration from environment variables."""
        return cls(
            output_prefix=os.getenv("EXTRACT_OUTPUT_PREFIX", "extracted_"),
            output_dir=os.getenv("EXTRACT_OUTPUT_DIR", "."),
            chunk_size=int(os.getenv("EXTRACT_CHUNK_SIZE", str(64 * 1024))),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (text, json)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class AppConfig:
    """Complete zipseek configuration.

    Attributes:
        s3: S3 configuration
        extract: Extraction output configuration
        observability: Logging configuration
    """

    s3: S3Config = field(default_factory=S3Config)
    extract: ExtractConfig = field(default_factory=ExtractConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is invalid.
        """
        try:
            extract = ExtractConfig.from_env()
        except ValueError:
            raise ValueError(
                f"Invalid EXTRACT_CHUNK_SIZE {os.getenv('EXTRACT_CHUNK_SIZE')!r}"
            ) from None

        config = cls(
            s3=S3Config.from_env(),
            extract=extract,
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self, remote: bool = False) -> None:
        """Validate configuration consistency.

        Args:
            remote: Also require the settings remote extraction needs

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.extract.chunk_size <= 0:
            raise ValueError("EXTRACT_CHUNK_SIZE must be positive")

        if self.observability.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. "
                f"Must be one of: {', '.join(LOG_FORMATS)}"
            )

        if remote and not self.s3.bucket:
            raise ValueError("S3_BUCKET is required for remote extraction")

        if self.s3.access_key_id and not self.s3.secret_access_key:
            raise ValueError("AWS_SECRET_ACCESS_KEY is required when AWS_ACCESS_KEY_ID is set")

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Configuration loaded",
            extra={
                "s3_bucket": self.s3.bucket,
                "s3_region": self.s3.region,
                "s3_endpoint": self.s3.endpoint_url,
                "s3_force_path_style": self.s3.force_path_style,
                "s3_static_credentials": bool(self.s3.access_key_id),
                "output_prefix": self.extract.output_prefix,
                "output_dir": self.extract.output_dir,
                "chunk_size": self.extract.chunk_size,
                "log_level": self.observability.log_level,
            },
        )
