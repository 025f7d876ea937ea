"""Parser for `dumpsys package <id>` output.

Grammar handled here:

    Package [<id>] (<hash>):          opens the package block
      userId=<int> | appId=<int>      numeric uid (appId on Android 12+)
      codePath=<path>                 install directory
      installerPackageName=<id|null>  installer attribution
      runtime permissions:            section header
        <perm>: granted=<bool>[, flags=[ ... ]]

The block ends at the first non-blank line indented no deeper than its
header. Only the first block for the package is read, later ones (hidden
system packages) are ignored.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..errors import ParseError

USER_ID_KEYS = ("userId=", "appId=")
CODE_PATH_KEYS = ("codePath=",)
INSTALLER_KEYS = ("installerPackageName=",)
RUNTIME_PERMISSIONS_HEADER = "runtime permissions:"

PERMISSION_RE = re.compile(r"^(?P<name>[\w.\-]+): granted=(?P<granted>true|false)\b")


@dataclass
class PackageDump:
    """Fields read from one package block."""
    
    package: str
    user_id: int
    code_path: str
    installer: Optional[str] = None
    runtime_permissions: List[str] = field(default_factory=list)


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip())


def package_block(text: str, package: str) -> Optional[List[str]]:
    """Return the lines belonging to the package's block, or None if absent."""
    header = f"Package [{package}]"
    lines = text.splitlines()
    
    for i, line in enumerate(lines):
        if not line.strip().startswith(header):
            continue
        
        base = _indent(line)
        block = []
        for follow in lines[i + 1:]:
            if follow.strip() and _indent(follow) <= base:
                break
            block.append(follow)
        return block
    
    return None


def first_field(block: Sequence[str], keys: Sequence[str]) -> Optional[str]:
    """Return the first value for any of the `key=` prefixes."""
    for line in block:
        stripped = line.strip()
        for key in keys:
            if stripped.startswith(key):
                value = stripped[len(key):].split()
                return value[0] if value else None
    return None


def granted_runtime_permissions(block: Sequence[str]) -> List[str]:
    """Collect granted entries from every runtime permissions section."""
    permissions: List[str] = []
    section_indent: Optional[int] = None
    
    for line in block:
        stripped = line.strip()
        if not stripped:
            continue
        
        if section_indent is not None:
            if _indent(line) > section_indent:
                match = PERMISSION_RE.match(stripped)
                if match and match.group("granted") == "true":
                    name = match.group("name")
                    if name not in permissions:
                        permissions.append(name)
                continue
            section_indent = None
        
        if stripped == RUNTIME_PERMISSIONS_HEADER:
            section_indent = _indent(line)
    
    return permissions


def parse_package_dump(text: str, package: str) -> PackageDump:
    """Parse a package dump, failing only on missing mandatory fields."""
    block = package_block(text, package)
    if block is None:
        raise ParseError(f"No 'Package [{package}]' block in dump")
    
    raw_uid = first_field(block, USER_ID_KEYS)
    if raw_uid is None:
        raise ParseError(f"{package}: user id field missing from dump")
    try:
        user_id = int(raw_uid)
    except ValueError as e:
        raise ParseError(f"{package}: malformed user id {raw_uid!r}") from e
    
    code_path = first_field(block, CODE_PATH_KEYS)
    if not code_path:
        raise ParseError(f"{package}: install path field missing from dump")
    
    installer = first_field(block, INSTALLER_KEYS)
    if installer in ("null", ""):
        installer = None
    
    return PackageDump(
        package=package,
        user_id=user_id,
        code_path=code_path,
        installer=installer,
        runtime_permissions=granted_runtime_permissions(block),
    )
