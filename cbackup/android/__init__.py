"""Android service access for on-device operation."""

from .dumpsys import PackageDump, parse_package_dump
from .package import InstallSession, PackageService, parse_package_list
from .shell import Shell, ToolLocator
from .system import AndroidSystem, parse_deviceidle_whitelist

__all__ = [
    # shell
    "Shell",
    "ToolLocator",
    # package
    "InstallSession",
    "PackageService",
    "parse_package_list",
    # dumpsys
    "PackageDump",
    "parse_package_dump",
    # system
    "AndroidSystem",
    "parse_deviceidle_whitelist",
]
