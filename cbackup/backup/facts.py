"""Per-app facts collected from the running system."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..android.dumpsys import parse_package_dump
from ..android.package import PackageService
from ..android.system import AndroidSystem
from ..errors import CbackupError
from ..util.logging import get_logger

logger = get_logger(__name__)

PER_USER_RANGE = 100000
CACHE_GID_OFFSET = 10000
FIRST_APPLICATION_UID = 10000


def default_data_context(uid: int) -> str:
    """SELinux context Android assigns to an app's private data directory."""
    app_id = uid % PER_USER_RANGE - FIRST_APPLICATION_UID
    user = uid // PER_USER_RANGE
    return (
        f"u:object_r:app_data_file:s0:"
        f"c{app_id & 0xff},c{256 + ((app_id >> 8) & 0xff)},"
        f"c{512 + (user & 0xff)},c{768 + ((user >> 8) & 0xff)}"
    )


@dataclass
class AppFacts:
    package: str
    install_path: Path
    apk_paths: List[Path]
    user_id: int
    installer: Optional[str] = None
    permissions: List[str] = field(default_factory=list)
    ssaid_entry: Optional[str] = None
    battery_opt_exempt: bool = False
    data_context: Optional[str] = None
    de_data_context: Optional[str] = None
    
    @property
    def cache_gid(self) -> int:
        return self.user_id + CACHE_GID_OFFSET
    
    @property
    def app_id(self) -> int:
        return self.user_id % PER_USER_RANGE - FIRST_APPLICATION_UID


def find_apks(install_path: Path) -> List[Path]:
    """base.apk followed by the split APKs in name order."""
    if install_path.is_file():
        return [install_path]
    
    apks = []
    base = install_path / "base.apk"
    if base.is_file():
        apks.append(base)
    apks.extend(sorted(install_path.glob("split_*.apk")))
    return apks


class FactsExtractor:
    """Gathers AppFacts for an installed package."""
    
    def __init__(
        self,
        packages: PackageService,
        system: AndroidSystem,
        data_root: Path,
        de_data_root: Path,
    ):
        self.packages = packages
        self.system = system
        self.data_root = Path(data_root)
        self.de_data_root = Path(de_data_root)
    
    def extract(self, package: str) -> AppFacts:
        """Collect facts for one package.
        
        Raises:
            ShellError: If the package dump cannot be read
            ParseError: If required fields are missing from the dump
        """
        dump = parse_package_dump(self.packages.dump(package), package)
        install_path = Path(dump.code_path)
        
        facts = AppFacts(
            package=package,
            install_path=install_path,
            apk_paths=find_apks(install_path),
            user_id=dump.user_id,
            installer=dump.installer,
            permissions=dump.runtime_permissions,
            ssaid_entry=self.system.find_ssaid_entry(package),
            data_context=self.system.security_context(self.data_root / package),
            de_data_context=self.system.security_context(self.de_data_root / package),
        )

        try:
            facts.battery_opt_exempt = package in self.system.battery_exempt_packages()
        except CbackupError as e:
            logger.warning(f"Could not read battery optimization whitelist: {e}")
        
        logger.debug(
            f"{package}: uid={facts.user_id} apks={len(facts.apk_paths)} "
            f"permissions={len(facts.permissions)} installer={facts.installer}"
        )
        return facts
