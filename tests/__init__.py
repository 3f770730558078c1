"""
zipseek Test Suite.

This package contains:
- unit/: Unit tests (index, store, decompression, config, errors)
- integration/: Integration tests (local files, fake S3 client, CLI)
"""
