"""Format version stamp and password canary for backup records."""

from ..errors import AuthError, StreamError, VersionError
from ..util.logging import get_logger
from .codecs import ArchiveCodec
from .layout import BackupRecord

logger = get_logger(__name__)

BACKUP_VERSION = 2
CANARY_PLAINTEXT = b"cbackup-valid"


def write_version(record: BackupRecord) -> None:
    record.version_file.write_text(f"{BACKUP_VERSION}\n", encoding="utf-8")


def check_version(record: BackupRecord) -> None:
    """Reject records written by any other format version.
    
    Raises:
        VersionError: If the stamp is missing, unreadable or different
    """
    try:
        found = record.version_file.read_text(encoding="utf-8").strip()
    except OSError:
        raise VersionError(f"{record.package}: no backup version stamp")
    except UnicodeDecodeError as e:
        raise VersionError(f"{record.package}: backup version stamp is unreadable") from e
    
    if found != str(BACKUP_VERSION):
        raise VersionError(
            f"{record.package}: backup version {found or '<empty>'} is not supported "
            f"(expected {BACKUP_VERSION})"
        )


def write_canary(codec: ArchiveCodec, record: BackupRecord) -> None:
    codec.encrypt_bytes(CANARY_PLAINTEXT, record.canary_file)


def verify_canary(codec: ArchiveCodec, record: BackupRecord) -> None:
    """Check the run password against the record before anything destructive.
    
    Raises:
        AuthError: If the canary is missing or does not decrypt to the expected text
    """
    if not record.canary_file.is_file():
        raise AuthError(f"{record.package}: password canary is missing")
    
    try:
        plaintext = codec.decrypt_bytes(record.canary_file)
    except StreamError as e:
        logger.debug(f"Canary decryption failed: {e}")
        raise AuthError(f"{record.package}: incorrect password or corrupted backup") from e
    
    if plaintext != CANARY_PLAINTEXT:
        raise AuthError(f"{record.package}: incorrect password or corrupted backup")
