"""Backup restore functionality."""

from pathlib import Path
from typing import List, Optional

from ..android.package import PackageService
from ..android.shell import ToolLocator
from ..android.system import AndroidSystem
from ..config import CbackupConfig
from ..errors import CbackupError, InstallError, PermissionGrantError, ShellError, StreamError
from ..util.logging import get_logger
from ..util.paths import format_size, remove_tree
from .codecs import ArchiveCodec
from .facts import AppFacts, FactsExtractor, default_data_context
from .hotswap import HotswapWorkspace
from .integrity import check_version, verify_canary
from .layout import BackupRecord, BackupSet
from .summary import AppOutcome, RunSummary

logger = get_logger(__name__)


class RestoreExecutor:
    """Reinstalls apps and restores their data from a backup set."""
    
    def __init__(
        self,
        config: CbackupConfig,
        packages: PackageService,
        system: AndroidSystem,
        codec: ArchiveCodec,
        tools: ToolLocator,
        host_package: Optional[str] = None,
        extractor: Optional[FactsExtractor] = None,
    ):
        self.config = config
        self.packages = packages
        self.system = system
        self.codec = codec
        self.tools = tools
        self.host_package = host_package
        self.backup_set = BackupSet(config.backup_dir)
        self.extractor = extractor or FactsExtractor(
            packages, system, config.data_root, config.de_data_root
        )
    
    def run(self) -> RunSummary:
        """Restore every record in the backup set, in directory-name order.
        
        Raises:
            BackupIOError: If the backup set does not exist
        """
        summary = RunSummary(mode="restore")
        records = self.backup_set.discover()
        logger.info(f"Apps to restore: {' '.join(r.package for r in records) if records else '(none)'}")
        
        for i, record in enumerate(records, 1):
            outcome = summary.start_app(record.package)
            logger.info(f"[bold green]Restoring {record.package}[/] ({i}/{len(records)})")
            try:
                self.restore_app(record, outcome, summary)
            except InstallError as e:
                summary.install_failed.append(record.package)
                outcome.fail(str(e))
                logger.error(f"Failed to install {record.package}, skipping data restore: {e}")
            except CbackupError as e:
                outcome.fail(str(e))
                logger.error(f"Restore of {record.package} failed: {e}")
            except OSError as e:
                outcome.fail(f"filesystem error: {e}")
                logger.error(f"Restore of {record.package} failed: {e}")
        
        summary.finish()
        logger.info(f"Restored {len(summary.succeeded)}/{len(records)} apps")
        return summary
    
    def restore_app(self, record: BackupRecord, outcome: AppOutcome, summary: RunSummary) -> None:
        package = record.package
        check_version(record)
        verify_canary(self.codec, record)
        
        apks = record.apk_files()
        if not apks:
            raise InstallError(f"No APK files in {record.apk_dir}")
        
        # Read everything up front so a damaged record fails before the uninstall
        installer = record.read_installer()
        permissions = record.read_permissions()
        ssaid = record.read_ssaid()
        
        is_host = package == self.host_package
        if is_host:
            logger.info("Restoring the host environment in place, keeping the installed APK")
        else:
            self.install(package, apks, installer)
        
        # uid and labels are assigned by the fresh install
        facts = self.extractor.extract(package)
        
        suspend = not is_host and self.system.supports_suspend()
        with self.packages.suspended(package, enabled=suspend):
            try:
                if not record.has_data:
                    logger.info("No data archive in backup, skipping data")
                elif is_host:
                    self._swap_host_data(record, facts)
                    summary.host_restored = True
                else:
                    self._restore_data(record, facts)
            except StreamError as e:
                outcome.fail(f"data not restored: {e}")
                logger.error(f"Data of {package} could not be restored, continuing with metadata: {e}")
            
            self._restore_metadata(package, permissions, ssaid, record.battery_opt_disabled, outcome, summary)
    
    def install(self, package: str, apks: List[Path], installer: Optional[str] = None) -> None:
        """Replace any installed copy with the given APKs in one session.
        
        Raises:
            InstallError: If the old copy cannot be removed or the session fails
        """
        if self.packages.is_installed(package):
            logger.debug(f"Uninstalling existing {package}")
            try:
                self.packages.uninstall(package)
            except ShellError as e:
                raise InstallError(f"Could not uninstall existing {package}: {e}") from e
        
        logger.info(f"Installing {len(apks)} APK(s)")
        with self.packages.install_session(package, installer) as session:
            for apk in apks:
                session.write(apk)
            session.commit()
    
    def _live_dirs(self, package: str) -> List[Path]:
        return [self.config.data_root / package, self.config.de_data_root / package]
    
    def _contexts(self, facts: AppFacts) -> List[str]:
        fallback = default_data_context(facts.user_id)
        return [facts.data_context or fallback, facts.de_data_context or fallback]
    
    def _repair(self, path: Path, facts: AppFacts, context: str) -> None:
        """Give an extracted tree the app's ownership and SELinux label."""
        if not path.is_dir():
            return
        self.system.chown_tree(path, facts.user_id, facts.user_id, cache_gid=facts.cache_gid)
        self.system.apply_security_context(path, context)
    
    def _restore_data(self, record: BackupRecord, facts: AppFacts) -> None:
        logger.info(f"Restoring data ({format_size(record.data_file.stat().st_size)})")
        live_dirs = self._live_dirs(record.package)
        for path in live_dirs:
            remove_tree(path)
            path.mkdir(mode=0o700, parents=True)
        
        # Ownership and labels are fixed even when extraction fails
        try:
            self.codec.unpack(record.data_file, self.config.archive_root, description=record.package)
        finally:
            for path, context in zip(live_dirs, self._contexts(facts)):
                self._repair(path, facts, context)
    
    def _swap_host_data(self, record: BackupRecord, facts: AppFacts) -> None:
        logger.info("Restoring host data into a staging area")
        with HotswapWorkspace(self.config.data_root, record.package, self.tools) as workspace:
            self.codec.unpack(record.data_file, workspace.root, description=record.package)
            
            pairs = []
            for live, context in zip(self._live_dirs(record.package), self._contexts(facts)):
                staged = workspace.staged(live, self.config.archive_root)
                if not staged.is_dir():
                    continue
                self._repair(staged, facts, context)
                pairs.append((staged, live))
            
            logger.warning("Swapping host data now. Do not interrupt.")
            for staged, live in pairs:
                workspace.swap(staged, live)
    
    def _restore_metadata(
        self,
        package: str,
        permissions: List[str],
        ssaid: Optional[str],
        battery_opt_disabled: bool,
        outcome: AppOutcome,
        summary: RunSummary,
    ) -> None:
        if permissions:
            logger.info(f"Restoring {len(permissions)} runtime permissions")
        for permission in permissions:
            try:
                self.packages.grant(package, permission)
            except PermissionGrantError as e:
                outcome.warn(str(e))
                logger.warning(str(e))
        
        if ssaid:
            logger.info("Restoring SSAID")
            try:
                self.system.append_ssaid_entry(ssaid)
                summary.reboot_required = True
            except OSError as e:
                outcome.warn(f"SSAID not restored: {e}")
                logger.warning(f"Could not restore SSAID of {package}: {e}")
        
        if battery_opt_disabled:
            logger.info("Restoring battery optimization exemption")
            try:
                self.system.exempt_from_battery_optimization(package)
            except ShellError as e:
                outcome.warn(f"battery optimization exemption not restored: {e}")
                logger.warning(f"Could not exempt {package} from battery optimization: {e}")
