"""Android system services: properties, SELinux, SSAID registry and device idle."""

import os
from pathlib import Path
from typing import Optional, Set

from ..errors import ShellError
from ..util.logging import get_logger
from .shell import Shell

logger = get_logger(__name__)

# pm suspend/unsuspend exist from Android 9
SUSPEND_MIN_SDK = 28

SELINUX_XATTR = "security.selinux"


def parse_deviceidle_whitelist(output: str) -> Set[str]:
    """Return packages on the user whitelist from `dumpsys deviceidle whitelist`."""
    packages = set()
    for line in output.split("\n"):
        parts = line.strip().split(",")
        if len(parts) >= 2 and parts[0] == "user":
            packages.add(parts[1])
    return packages


def _chown_recursive(path: Path, uid: int, gid: int) -> None:
    os.lchown(path, uid, gid)
    if path.is_symlink() or not path.is_dir():
        return
    
    for dirpath, dirnames, filenames in os.walk(path):
        for name in dirnames + filenames:
            os.lchown(os.path.join(dirpath, name), uid, gid)


class AndroidSystem:
    """OS-level facts and mutations that are not owned by the package manager."""
    
    def __init__(self, shell: Shell, ssaid_registry: Path):
        self.shell = shell
        self.ssaid_registry = ssaid_registry
        self._sdk_level: Optional[int] = None
    
    def sdk_level(self) -> int:
        if self._sdk_level is None:
            try:
                value = self.shell.query([self.shell.tools.system("getprop"), "ro.build.version.sdk"])
                self._sdk_level = int(value)
            except (ShellError, ValueError) as e:
                logger.warning(f"Could not read SDK level, assuming oldest: {e}")
                self._sdk_level = 0
        return self._sdk_level
    
    def supports_suspend(self) -> bool:
        return self.sdk_level() >= SUSPEND_MIN_SDK
    
    def security_context(self, path: Path) -> Optional[str]:
        """Read the SELinux label of a path, or None when unavailable."""
        try:
            raw = os.getxattr(path, SELINUX_XATTR, follow_symlinks=False)
        except OSError as e:
            logger.debug(f"No security context for {path}: {e}")
            return None
        return raw.rstrip(b"\0").decode() or None
    
    def apply_security_context(self, path: Path, context: str) -> None:
        """Recursively relabel a tree.
        
        The system chcon is used instead of any PATH-provided one, which fails
        with "Operation not supported on transport endpoint" on some devices.
        """
        logger.debug(f"Changing SELinux context of {path} to {context}")
        self.shell.run([self.shell.tools.system("chcon"), "-hR", context, str(path)])
    
    def chown_tree(self, path: Path, uid: int, gid: int, cache_gid: Optional[int] = None) -> None:
        """Recursively chown a data directory, giving *cache* entries the cache group."""
        logger.debug(f"Changing owner of {path} to {uid}:{gid}, caches to {uid}:{cache_gid}")
        _chown_recursive(path, uid, gid)
        
        if cache_gid is None:
            return
        for entry in path.iterdir():
            if "cache" in entry.name:
                _chown_recursive(entry, uid, cache_gid)
    
    def find_ssaid_entry(self, package: str) -> Optional[str]:
        """Return the registry line for a package, if there is one."""
        marker = f'package="{package}"'
        try:
            with open(self.ssaid_registry, "r", encoding="utf-8", errors="replace") as f:
                for line in f:
                    if marker in line:
                        return line.strip()
        except OSError as e:
            logger.debug(f"SSAID registry unreadable: {e}")
        return None
    
    def append_ssaid_entry(self, entry: str) -> None:
        logger.debug(f"Restoring SSAID: {entry}")
        with open(self.ssaid_registry, "a", encoding="utf-8") as f:
            f.write(entry.rstrip("\n") + "\n")
    
    def battery_exempt_packages(self) -> Set[str]:
        output = self.shell.query([self.shell.tools.system("dumpsys"), "deviceidle", "whitelist"])
        return parse_deviceidle_whitelist(output)
    
    def exempt_from_battery_optimization(self, package: str) -> None:
        logger.debug(f"Whitelisting {package} in deviceidle")
        self.shell.run([self.shell.tools.system("dumpsys"), "deviceidle", "whitelist", f"+{package}"])
