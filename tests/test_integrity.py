"""Tests for the version gate and password canary."""

import shutil
from unittest.mock import MagicMock

import pytest

from cbackup.android.shell import ToolLocator
from cbackup.backup.codecs import ArchiveCodec
from cbackup.backup.integrity import (
    BACKUP_VERSION,
    CANARY_PLAINTEXT,
    check_version,
    verify_canary,
    write_canary,
    write_version,
)
from cbackup.backup.layout import BackupSet
from cbackup.config import CodecConfig
from cbackup.errors import AuthError, StreamError, VersionError
from cbackup.util.paths import collect_tree

needs_openssl = pytest.mark.skipif(shutil.which("openssl") is None, reason="openssl not available")
needs_codecs = pytest.mark.skipif(
    any(shutil.which(tool) is None for tool in ("openssl", "zstd", "tar")),
    reason="tar, zstd and openssl are required",
)


@pytest.fixture
def record(tmp_path):
    (tmp_path / "backup").mkdir(parents=True, exist_ok=True)
    return BackupSet(tmp_path / "backup").create_record("org.example.notes")


def make_codec(tmp_path, password):
    return ArchiveCodec(ToolLocator(), password, CodecConfig(), scratch_dir=tmp_path, progress=False)


class TestVersionGate:
    """Test the format version stamp."""
    
    def test_current_version_accepted(self, record):
        write_version(record)
        
        assert record.version_file.read_text().strip() == str(BACKUP_VERSION)
        check_version(record)
    
    def test_old_version_rejected(self, record):
        record.version_file.write_text("1\n")
        
        with pytest.raises(VersionError):
            check_version(record)
    
    def test_missing_stamp_rejected(self, record):
        with pytest.raises(VersionError):
            check_version(record)
    
    def test_undecodable_stamp_rejected(self, record):
        record.version_file.write_bytes(b"\xff\xfe\x00garbage")
        
        with pytest.raises(VersionError):
            check_version(record)


class TestCanary:
    """Test password verification."""
    
    def test_matching_plaintext(self, record):
        record.canary_file.write_bytes(b"Salted__")
        codec = MagicMock()
        codec.decrypt_bytes.return_value = CANARY_PLAINTEXT
        
        verify_canary(codec, record)
    
    def test_wrong_plaintext(self, record):
        record.canary_file.write_bytes(b"Salted__")
        codec = MagicMock()
        codec.decrypt_bytes.return_value = b"\x8a\x01garbage"
        
        with pytest.raises(AuthError):
            verify_canary(codec, record)
    
    def test_decrypt_failure(self, record):
        record.canary_file.write_bytes(b"junk")
        codec = MagicMock()
        codec.decrypt_bytes.side_effect = StreamError("openssl", "bad magic number")
        
        with pytest.raises(AuthError):
            verify_canary(codec, record)
    
    def test_missing_canary(self, record):
        with pytest.raises(AuthError):
            verify_canary(MagicMock(), record)
    
    @needs_openssl
    def test_real_password_check(self, tmp_path, record):
        write_canary(make_codec(tmp_path, "correct horse"), record)
        
        verify_canary(make_codec(tmp_path, "correct horse"), record)
        with pytest.raises(AuthError):
            verify_canary(make_codec(tmp_path, "battery staple"), record)


@needs_codecs
def test_archive_pack_unpack(tmp_path):
    source = tmp_path / "source"
    app = source / "data" / "data" / "org.example.notes"
    (app / "files").mkdir(parents=True)
    (app / "files" / "notes.db").write_bytes(b"sqlite" * 1000)
    (app / "cache").mkdir()
    (app / "cache" / "thumb.bin").write_bytes(b"skip me")
    archive = tmp_path / "data.tar.zst.enc"
    restored = tmp_path / "restored"
    restored.mkdir()
    codec = make_codec(tmp_path, "pw")
    
    codec.pack(source, collect_tree(app, source, ["cache"]), archive)
    codec.unpack(archive, restored)
    
    restored_app = restored / "data" / "data" / "org.example.notes"
    assert (restored_app / "files" / "notes.db").read_bytes() == b"sqlite" * 1000
    assert not (restored_app / "cache").exists()
