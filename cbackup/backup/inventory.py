"""Selection of the apps a backup run covers."""

from typing import Iterable, List

from ..android.package import PackageService
from ..util.logging import get_logger

logger = get_logger(__name__)


class InventoryResolver:
    """Resolves user-installed, non-excluded packages."""
    
    def __init__(self, packages: PackageService, exclusion_list: Iterable[str] = ()):
        self.packages = packages
        self.exclusion_list = set(exclusion_list)
    
    def list_backup_targets(self) -> List[str]:
        """All packages minus system packages minus the exclusion list.
        
        Order follows the package manager's listing.
        
        Raises:
            ShellError: If the package manager cannot be queried
        """
        installed = self.packages.list_packages()
        system = set(self.packages.list_packages(system_only=True))
        
        targets = []
        for package in installed:
            if package in system:
                continue
            if package in self.exclusion_list:
                logger.debug(f"Excluded {package}")
                continue
            if package not in targets:
                targets.append(package)
        
        logger.debug(f"{len(installed)} packages, {len(system)} system, {len(targets)} to back up")
        return targets
