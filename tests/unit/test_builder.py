"""
Unit tests for the archive index builder.

Tests cover:
- Entry order, sizes and directory flags
- Payload offset resolution from local headers
- Per-member drop policy on corruption
- Fatal errors for unreadable archives
"""

import io
import logging
import zipfile

import pytest

from tests.archives import HELLO, patch_central_record, write_archive
from zipseek.errors import ArchiveParseError, StorageIOError
from zipseek.index import (
    LOCAL_HEADER_SIZE,
    ZIP_DEFLATED,
    ZIP_STORED,
    IndexBuilder,
    build_index,
    read_central_directory,
    read_end_record,
    read_local_header,
)


@pytest.fixture
def two_member_archive(tmp_path):
    """badname followed by good.txt, both deflated."""
    return write_archive(
        tmp_path / "two.zip",
        [
            ("badname", b"soon to be unreadable", zipfile.ZIP_DEFLATED),
            ("good.txt", b"good member", zipfile.ZIP_DEFLATED),
        ],
    )


class TestBuildIndex:
    """Tests for build_index on well-formed archives."""

    def test_hello_archive_entries(self, hello_archive):
        """Directory and file entries come back in archive order."""
        index = build_index(hello_archive)

        assert index.names() == ["dir/", "dir/file.txt"]

        directory, file_entry = index.entries
        assert directory.is_directory
        assert directory.compressed_size == 0
        assert directory.uncompressed_size == 0

        assert not file_entry.is_directory
        assert file_entry.uncompressed_size == len(HELLO)
        assert file_entry.compression_method == ZIP_DEFLATED

    def test_data_offset_points_past_local_header(self, hello_archive):
        """data_offset skips the fixed header, the name and the extra field."""
        index = build_index(hello_archive)
        entry = index.lookup("dir/file.txt")

        with zipfile.ZipFile(hello_archive) as zf:
            header_offset = zf.getinfo("dir/file.txt").header_offset

        assert entry.data_offset == header_offset + LOCAL_HEADER_SIZE + len("dir/file.txt")
        assert entry.data_offset != header_offset

    def test_offsets_reparse_to_same_member(self, mixed_archive):
        """Every file entry's local header re-parses to the same name."""
        index = build_index(mixed_archive)

        with zipfile.ZipFile(mixed_archive) as zf, open(mixed_archive, "rb") as fp:
            for entry in index:
                if entry.is_directory:
                    continue
                info = zf.getinfo(entry.name)
                header = read_local_header(fp, info.header_offset)

                start = entry.data_offset - (
                    header.name_length + header.extra_length + LOCAL_HEADER_SIZE
                )
                assert start == info.header_offset
                assert header.name == entry.name
                assert header.compression_method == entry.compression_method
                assert info.compress_size == entry.compressed_size
                assert info.file_size == entry.uncompressed_size

    def test_extra_field_is_accounted_for(self, mixed_archive):
        """The local extra field shifts the payload start."""
        index = build_index(mixed_archive)
        entry = index.lookup("extra/with_extra.bin")

        with open(mixed_archive, "rb") as fp:
            header = read_local_header(fp, entry.data_offset - LOCAL_HEADER_SIZE - 20 - 10)

        assert header.extra_length == 10
        assert header.data_offset == entry.data_offset

    def test_payload_bytes_match_reference(self, mixed_archive):
        """The compressed_size bytes at data_offset are the member's payload."""
        index = build_index(mixed_archive)
        entry = index.lookup("docs/stored.txt")

        assert entry.compression_method == ZIP_STORED
        with open(mixed_archive, "rb") as fp:
            fp.seek(entry.data_offset)
            assert fp.read(entry.compressed_size) == b"kept as is, no compression"

    def test_payloads_stay_inside_archive(self, mixed_archive):
        """data_offset + compressed_size never exceeds the archive length."""
        size = mixed_archive.stat().st_size
        for entry in build_index(mixed_archive):
            assert entry.payload_end <= size

    def test_build_is_idempotent(self, mixed_archive):
        """Rebuilding an unmodified archive yields an equal index."""
        assert build_index(mixed_archive) == build_index(mixed_archive)

    def test_build_from_file_object(self, mixed_archive):
        """A seekable binary file object works like a path."""
        from_bytes = build_index(io.BytesIO(mixed_archive.read_bytes()))
        assert from_bytes == build_index(mixed_archive)

    def test_unicode_names(self, mixed_archive):
        """UTF-8 flagged names decode the same in both headers."""
        index = build_index(mixed_archive)
        assert "unicode/naïve café.txt" in index

    def test_unsupported_method_is_kept(self, tmp_path):
        """Members with other compression methods stay in the index."""
        path = write_archive(
            tmp_path / "bz.zip",
            [("bz.txt", b"bzip2 payload" * 10, zipfile.ZIP_BZIP2)],
        )
        entry = build_index(path).lookup("bz.txt")
        assert entry.compression_method == zipfile.ZIP_BZIP2
        assert not entry.is_supported

    def test_empty_archive(self, tmp_path):
        """An archive without members yields an empty index."""
        path = write_archive(tmp_path / "empty.zip", [])
        assert len(build_index(path)) == 0


class TestDropPolicy:
    """Tests for per-member failure handling."""

    def test_bad_local_signature_drops_member(self, mixed_archive, caplog):
        """A corrupt local header drops that member only."""
        with zipfile.ZipFile(mixed_archive) as zf:
            offset = zf.getinfo("docs/readme.txt").header_offset
            total = len(zf.infolist())

        with open(mixed_archive, "r+b") as fp:
            fp.seek(offset)
            fp.write(b"XXXX")

        builder = IndexBuilder()
        index = builder.build(mixed_archive)

        assert "docs/readme.txt" not in index
        assert builder.dropped == ["docs/readme.txt"]
        assert len(index) == total - 1
        assert "Dropping member 'docs/readme.txt'" in caplog.text

    def test_name_mismatch_drops_member(self, hello_archive):
        """A local header naming a different member is rejected."""
        with zipfile.ZipFile(hello_archive) as zf:
            offset = zf.getinfo("dir/file.txt").header_offset

        with open(hello_archive, "r+b") as fp:
            fp.seek(offset + LOCAL_HEADER_SIZE)
            fp.write(b"D")

        index = build_index(hello_archive)
        assert index.names() == ["dir/"]

    def test_encrypted_member_dropped(self, hello_archive):
        """Encrypted members are left out of the index."""
        patch_central_record(hello_archive, "dir/file.txt", flags=0x0001)

        builder = IndexBuilder()
        index = builder.build(hello_archive)

        assert index.names() == ["dir/"]
        assert builder.dropped == ["dir/file.txt"]

    def test_undecodable_directory_name_drops_member(self, two_member_archive, caplog):
        """A UTF-8 flagged directory name that is not UTF-8 drops that record only."""
        patch_central_record(
            two_member_archive, "badname", flags=0x0800, raw_name=b"bad\xff\xfeme"
        )

        builder = IndexBuilder()
        index = builder.build(two_member_archive)

        assert index.names() == ["good.txt"]
        assert len(builder.dropped) == 1
        assert "undecodable name" in caplog.text

    def test_unsupported_version_drops_member(self, two_member_archive, caplog):
        """A record needing a newer ZIP version is dropped, never raised."""
        patch_central_record(two_member_archive, "badname", version_needed=99)

        builder = IndexBuilder()
        index = builder.build(two_member_archive)

        assert index.names() == ["good.txt"]
        assert builder.dropped == ["badname"]
        assert "needs ZIP version 9.9" in caplog.text

    def test_payload_past_archive_end_drops_member(self, two_member_archive):
        """A record whose sizes overrun the archive is dropped."""
        with open(two_member_archive, "rb") as fp:
            size = fp.seek(0, io.SEEK_END)
            end = read_end_record(fp, size)
            records = read_central_directory(fp, end)
        blob = bytearray(two_member_archive.read_bytes())
        bad = records[0].record_offset
        blob[bad + 20 : bad + 24] = (size * 2).to_bytes(4, "little")
        two_member_archive.write_bytes(bytes(blob))

        assert build_index(two_member_archive).names() == ["good.txt"]

    def test_injected_logger_receives_diagnostics(self, mixed_archive, caplog):
        """Diagnostics go to the logger the caller provides."""
        custom = logging.getLogger("test.builder.custom")
        with caplog.at_level(logging.INFO, logger="test.builder.custom"):
            IndexBuilder(logger=custom).build(mixed_archive)

        assert any(r.name == "test.builder.custom" for r in caplog.records)


class TestFatalErrors:
    """Tests for archive-level failures."""

    def test_not_a_zip(self, tmp_path):
        """Garbage bytes raise ArchiveParseError."""
        path = tmp_path / "garbage.zip"
        path.write_bytes(b"this is not a zip archive at all" * 10)

        with pytest.raises(ArchiveParseError):
            build_index(path)

    def test_truncated_trailer(self, hello_archive):
        """An archive cut before its central directory cannot be indexed."""
        data = hello_archive.read_bytes()
        hello_archive.write_bytes(data[: len(data) // 2])

        with pytest.raises(ArchiveParseError):
            build_index(hello_archive)

    def test_missing_archive(self, tmp_path):
        """A missing path raises StorageIOError."""
        with pytest.raises(StorageIOError):
            build_index(tmp_path / "missing.zip")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "zero.zip"
        path.write_bytes(b"")

        with pytest.raises(ArchiveParseError):
            build_index(path)

    def test_broken_record_chain(self, two_member_archive):
        """A bad directory signature hides every later record, so it is fatal."""
        blob = bytearray(two_member_archive.read_bytes())
        pos = blob.rfind(b"PK\x01\x02")
        blob[pos : pos + 4] = b"PK\x01\x09"
        two_member_archive.write_bytes(bytes(blob))

        with pytest.raises(ArchiveParseError, match="central directory"):
            build_index(two_member_archive)

    def test_directory_offset_past_end_record(self, two_member_archive):
        blob = bytearray(two_member_archive.read_bytes())
        pos = blob.rfind(b"PK\x05\x06")
        blob[pos + 16 : pos + 20] = len(blob).to_bytes(4, "little")
        two_member_archive.write_bytes(bytes(blob))

        with pytest.raises(ArchiveParseError):
            build_index(two_member_archive)


class TestReadCentralDirectory:
    """Tests for read_end_record / read_central_directory."""

    def test_end_record_behind_comment(self, mixed_archive):
        with zipfile.ZipFile(mixed_archive) as zf:
            infos = zf.infolist()

        with open(mixed_archive, "rb") as fp:
            size = fp.seek(0, io.SEEK_END)
            end = read_end_record(fp, size)
            records = read_central_directory(fp, end)

        assert end.entry_count == len(infos)
        assert end.offset + 22 + len(b"archive comment") == size
        assert [r.header_offset for r in records] == [i.header_offset for i in infos]
        assert [r.compressed_size for r in records] == [i.compress_size for i in infos]


class TestReadLocalHeader:
    """Tests for read_local_header."""

    def test_parses_header(self, hello_archive):
        with open(hello_archive, "rb") as fp:
            header = read_local_header(fp, 0)

        assert header.name == "dir/"
        assert header.name_length == 4
        assert header.data_offset == LOCAL_HEADER_SIZE + 4

    def test_truncated_header(self):
        with pytest.raises(ArchiveParseError):
            read_local_header(io.BytesIO(b"PK\x03\x04short"), 0)

    def test_bad_signature(self):
        with pytest.raises(ArchiveParseError):
            read_local_header(io.BytesIO(b"\x00" * 64), 0)
