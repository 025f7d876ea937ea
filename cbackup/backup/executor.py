"""Backup execution engine."""

import shutil
from pathlib import Path
from typing import List, Optional

from ..android.package import PackageService
from ..android.system import SUSPEND_MIN_SDK, AndroidSystem
from ..config import CbackupConfig
from ..errors import BackupIOError, CbackupError, StreamError
from ..util.logging import get_logger
from ..util.paths import collect_tree
from .codecs import ArchiveCodec
from .facts import AppFacts, FactsExtractor
from .integrity import write_canary, write_version
from .inventory import InventoryResolver
from .layout import BackupRecord, BackupSet
from .summary import AppOutcome, RunSummary

logger = get_logger(__name__)

# Rebuildable content that is never archived
DATA_EXCLUDES = ["cache", "code_cache", "no_backup"]


def _has_payload(root: Path, entries: List[str]) -> bool:
    """True if any entry is something other than a bare directory."""
    for entry in entries:
        path = root / entry
        if path.is_symlink() or not path.is_dir():
            return True
    return False


class BackupExecutor:
    """Captures every selected app into a fresh backup set."""
    
    def __init__(
        self,
        config: CbackupConfig,
        packages: PackageService,
        system: AndroidSystem,
        codec: ArchiveCodec,
        host_package: Optional[str] = None,
        inventory: Optional[InventoryResolver] = None,
        extractor: Optional[FactsExtractor] = None,
    ) -> None:
        """Initialize backup executor.
        
        Args:
            config: Run configuration
            packages: Package manager service
            system: OS services for facts and suspend support
            codec: Codec holding the run password
            host_package: Package hosting this program, never suspended
            inventory: Target resolver, built from config if None
            extractor: Facts extractor, built from config if None
        """
        self.config = config
        self.packages = packages
        self.system = system
        self.codec = codec
        self.host_package = host_package
        self.backup_set = BackupSet(config.backup_dir)
        self.inventory = inventory or InventoryResolver(packages, config.app_exclusion_list)
        self.extractor = extractor or FactsExtractor(
            packages, system, config.data_root, config.de_data_root
        )
    
    def run(self, packages: Optional[List[str]] = None) -> RunSummary:
        """Back up the given packages, or the resolved inventory if None.
        
        The destination is cleared first. Per-app failures are recorded in
        the summary and never stop the run.
        
        Raises:
            ShellError: If the inventory cannot be resolved
            BackupIOError: If the destination cannot be recreated
        """
        summary = RunSummary(mode="backup")
        if packages is None:
            packages = self.inventory.list_backup_targets()
        
        logger.info(f"Apps to backup: {' '.join(packages) if packages else '(none)'}")
        self.backup_set.reset()
        
        for i, package in enumerate(packages, 1):
            outcome = summary.start_app(package)
            logger.info(f"[bold green]Backing up {package}[/] ({i}/{len(packages)})")
            try:
                self.backup_app(package, outcome)
            except CbackupError as e:
                outcome.fail(str(e))
                logger.error(f"Backup of {package} failed: {e}")
        
        summary.finish()
        logger.info(f"Backed up {len(summary.succeeded)}/{len(packages)} apps")
        return summary
    
    def backup_app(self, package: str, outcome: AppOutcome) -> BackupRecord:
        """Write one app's record.
        
        A data archive failure keeps the record without data and marks the
        app failed. Any other failure removes the partial record.
        """
        record = self.backup_set.create_record(package)
        try:
            facts = self.extractor.extract(package)
            write_version(record)
            write_canary(self.codec, record)
            self._copy_apks(facts, record)
            
            try:
                self._capture_data(facts, record)
            except StreamError as e:
                outcome.fail(f"data not captured: {e}")
                logger.error(f"Data of {package} could not be archived, keeping APKs and metadata: {e}")
            
            self._write_metadata(facts, record)
        except CbackupError:
            self.backup_set.discard_record(record)
            raise
        except OSError as e:
            self.backup_set.discard_record(record)
            raise BackupIOError(f"Writing record for {package} failed: {e}") from e
        
        return record
    
    def _copy_apks(self, facts: AppFacts, record: BackupRecord) -> None:
        if not facts.apk_paths:
            raise BackupIOError(f"No APK files found in {facts.install_path}")
        
        for apk in facts.apk_paths:
            logger.debug(f"Copying {apk.name}")
            shutil.copyfile(apk, record.apk_dir / apk.name)
    
    def _data_entries(self, package: str) -> List[str]:
        entries = []
        for root in (self.config.data_root, self.config.de_data_root):
            entries += collect_tree(root / package, self.config.archive_root, DATA_EXCLUDES)
        return entries
    
    def _capture_data(self, facts: AppFacts, record: BackupRecord) -> None:
        archive_root = self.config.archive_root
        if not _has_payload(archive_root, self._data_entries(facts.package)):
            logger.info("No data to back up")
            return
        
        suspend = facts.package != self.host_package
        if suspend and not self.system.supports_suspend():
            logger.warning(f"Suspending apps needs SDK {SUSPEND_MIN_SDK}+, capturing {facts.package} while it may be running")
            suspend = False
        
        with self.packages.suspended(facts.package, enabled=suspend):
            # Listed only once the app is stopped, so tar sees a stable tree
            entries = self._data_entries(facts.package)
            logger.info(f"Backing up data ({len(entries)} entries)")
            self.codec.pack(archive_root, entries, record.data_file, description=facts.package)
    
    def _write_metadata(self, facts: AppFacts, record: BackupRecord) -> None:
        if facts.permissions:
            logger.debug(f"Saving {len(facts.permissions)} runtime permissions")
            record.write_permissions(facts.permissions)
        if facts.ssaid_entry:
            logger.debug("Saving SSAID")
            record.write_ssaid(facts.ssaid_entry)
        if facts.battery_opt_exempt:
            logger.debug("Saving battery optimization exemption")
            record.mark_battery_opt_disabled()
        if facts.installer:
            logger.debug(f"Saving installer name {facts.installer}")
            record.write_installer(facts.installer)
