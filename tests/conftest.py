"""
Shared fixtures for zipseek tests.
"""

import random
import struct
import zipfile

import pytest

from tests.archives import HELLO, FakeS3Client, write_archive


@pytest.fixture
def hello_archive(tmp_path):
    """a.zip: a directory entry followed by a deflated 'hello world' file."""
    return write_archive(
        tmp_path / "a.zip",
        [
            ("dir/", b"", zipfile.ZIP_STORED),
            ("dir/file.txt", HELLO, zipfile.ZIP_DEFLATED),
        ],
    )


@pytest.fixture
def mixed_archive(tmp_path):
    """Archive mixing stored, deflated, empty, extra-field and large members."""
    rng = random.Random(1234)
    with_extra = zipfile.ZipInfo("extra/with_extra.bin", date_time=(2024, 3, 28, 12, 0, 0))
    with_extra.extra = struct.pack("<HH", 0xCAFE, 6) + b"zipsek"

    text = b"".join(b"line %06d of a fairly compressible text body\n" % i for i in range(20000))

    return write_archive(
        tmp_path / "mixed.zip",
        [
            ("docs/", b"", zipfile.ZIP_STORED),
            ("docs/readme.txt", b"read me first\n" * 50, zipfile.ZIP_DEFLATED),
            ("docs/stored.txt", b"kept as is, no compression", zipfile.ZIP_STORED),
            ("empty.txt", b"", zipfile.ZIP_DEFLATED),
            ("empty_stored.txt", b"", zipfile.ZIP_STORED),
            (with_extra, rng.randbytes(4096), zipfile.ZIP_DEFLATED),
            ("data/random.bin", rng.randbytes(200_000), zipfile.ZIP_DEFLATED),
            ("data/big.txt", text, zipfile.ZIP_DEFLATED),
            ("unicode/naïve café.txt", "ünïcødé".encode("utf-8"), zipfile.ZIP_DEFLATED),
        ],
        comment=b"archive comment",
    )


@pytest.fixture
def fake_s3(hello_archive, mixed_archive):
    """Fake S3 holding both sample archives in bucket 'my_bucket'."""
    return FakeS3Client(
        {
            ("my_bucket", "a.zip"): hello_archive.read_bytes(),
            ("my_bucket", "mixed.zip"): mixed_archive.read_bytes(),
        }
    )
