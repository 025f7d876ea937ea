"""Backup set layout: one self-describing directory per app."""

from pathlib import Path
from typing import List, Optional

from ..errors import BackupIOError
from ..util.logging import get_logger
from ..util.paths import is_valid_segment, remove_tree

logger = get_logger(__name__)

VERSION_FILE = "backup_version.txt"
CANARY_FILE = "password_canary.enc"
APK_DIR = "apk"
DATA_FILE = "data.tar.zst.enc"
PERMISSIONS_FILE = "permissions.list"
SSAID_FILE = "ssaid.xml"
BATTERY_MARKER = "battery_opt_disabled"
INSTALLER_FILE = "installer_name.txt"


def _read_text(path: Path) -> str:
    """Read a record file, treating undecodable content as a damaged record."""
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise BackupIOError(f"{path} is not valid UTF-8: {e}") from e


def _read_optional(path: Path) -> Optional[str]:
    if not path.is_file():
        return None
    value = _read_text(path).strip()
    return value or None


class BackupRecord:
    """Files making up one app's backup."""
    
    def __init__(self, path: Path) -> None:
        self.path = path
        self.package = path.name
    
    def __repr__(self) -> str:
        return f"BackupRecord('{self.path}')"
    
    @property
    def version_file(self) -> Path:
        return self.path / VERSION_FILE
    
    @property
    def canary_file(self) -> Path:
        return self.path / CANARY_FILE
    
    @property
    def apk_dir(self) -> Path:
        return self.path / APK_DIR
    
    @property
    def data_file(self) -> Path:
        return self.path / DATA_FILE
    
    @property
    def has_data(self) -> bool:
        return self.data_file.is_file()
    
    @property
    def battery_opt_disabled(self) -> bool:
        return (self.path / BATTERY_MARKER).exists()
    
    def apk_files(self) -> List[Path]:
        if not self.apk_dir.is_dir():
            return []
        return sorted(self.apk_dir.glob("*.apk"))
    
    def read_permissions(self) -> List[str]:
        path = self.path / PERMISSIONS_FILE
        if not path.is_file():
            return []
        return [line.strip() for line in _read_text(path).splitlines() if line.strip()]
    
    def read_ssaid(self) -> Optional[str]:
        return _read_optional(self.path / SSAID_FILE)
    
    def read_installer(self) -> Optional[str]:
        return _read_optional(self.path / INSTALLER_FILE)
    
    def write_permissions(self, permissions: List[str]) -> None:
        (self.path / PERMISSIONS_FILE).write_text("".join(f"{p}\n" for p in permissions), encoding="utf-8")
    
    def write_ssaid(self, entry: str) -> None:
        (self.path / SSAID_FILE).write_text(f"{entry}\n", encoding="utf-8")
    
    def write_installer(self, installer: str) -> None:
        (self.path / INSTALLER_FILE).write_text(f"{installer}\n", encoding="utf-8")
    
    def mark_battery_opt_disabled(self) -> None:
        (self.path / BATTERY_MARKER).touch()


class BackupSet:
    """The destination root holding all records of one run."""
    
    def __init__(self, root: Path) -> None:
        self.root = Path(root)
    
    def reset(self) -> None:
        """Clear and recreate the set. Everything previously stored is lost."""
        try:
            remove_tree(self.root)
            self.root.mkdir(parents=True)
        except OSError as e:
            raise BackupIOError(f"Cannot recreate backup directory {self.root}: {e}") from e
    
    def create_record(self, package: str) -> BackupRecord:
        if not is_valid_segment(package):
            raise BackupIOError(f"Package name {package!r} is not a valid directory name")
        
        record = BackupRecord(self.root / package)
        try:
            record.path.mkdir()
            record.apk_dir.mkdir()
        except OSError as e:
            raise BackupIOError(f"Cannot create record directory {record.path}: {e}") from e
        return record
    
    def discard_record(self, record: BackupRecord) -> None:
        try:
            remove_tree(record.path)
        except OSError as e:
            logger.warning(f"Could not remove partial record {record.path}: {e}")
    
    def discover(self) -> List[BackupRecord]:
        """List records in directory-name order."""
        if not self.root.is_dir():
            raise BackupIOError(f"Backup directory {self.root} does not exist")
        
        records = []
        for path in sorted(self.root.iterdir()):
            if not path.is_dir():
                continue
            if not is_valid_segment(path.name):
                logger.warning(f"Skipping {path}: not a package directory")
                continue
            logger.debug(f"Discovered app {path}")
            records.append(BackupRecord(path))
        return records
