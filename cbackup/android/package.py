"""Package manager (pm) service wrapper."""

import re
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from ..errors import InstallError, PermissionGrantError, ShellError
from ..util.logging import get_logger
from .shell import Shell

logger = get_logger(__name__)

SESSION_RE = re.compile(r"\[(\d+)\]")

# PackageManager.INSTALL_REASON_DEVICE_RESTORE
INSTALL_REASON_DEVICE_RESTORE = 2


def parse_package_list(output: str) -> List[str]:
    """Parse `pm list packages` output, keeping its order."""
    packages = []
    for line in output.split("\n"):
        line = line.strip()
        if line.startswith("package:"):
            packages.append(line[len("package:"):])
    return packages


class InstallSession:
    """A pending multi-APK install transaction."""
    
    def __init__(self, service: "PackageService", session_id: str):
        self.service = service
        self.session_id = session_id
        self.committed = False
    
    def write(self, apk: Path) -> None:
        """Stream one APK into the session, declaring its size up front."""
        size = apk.stat().st_size
        logger.debug(f"Writing {size}-byte APK {apk.name} to session {self.session_id}")
        
        argv = self.service.pm("install-write", "-S", str(size), self.session_id, apk.name, "-")
        try:
            with open(apk, "rb") as f:
                self.service.shell.run(argv, stdin=f)
        except ShellError as e:
            raise InstallError(f"Writing {apk.name} to session {self.session_id} failed: {e}") from e
    
    def commit(self) -> None:
        try:
            output = self.service.shell.run(self.service.pm("install-commit", self.session_id))
        except ShellError as e:
            raise InstallError(f"Session {self.session_id} commit failed: {e.stderr or e}") from e
        
        if "Success" not in output:
            raise InstallError(f"Session {self.session_id} commit failed: {output}")
        self.committed = True
    
    def abandon(self) -> None:
        self.service.shell.run(self.service.pm("install-abandon", self.session_id))


class PackageService:
    """Typed access to the package manager for one Android user."""
    
    def __init__(self, shell: Shell, user: int = 0):
        self.shell = shell
        self.user = user
    
    def pm(self, *args: str) -> List[str]:
        return [self.shell.tools.system("pm"), *args]
    
    def list_packages(self, system_only: bool = False) -> List[str]:
        """List installed package names for the user."""
        args = ["list", "packages"]
        if system_only:
            args.append("-s")
        args += ["--user", str(self.user)]
        
        packages = parse_package_list(self.shell.query(self.pm(*args)))
        logger.debug(f"Found {len(packages)} {'system' if system_only else 'installed'} packages")
        return packages
    
    def dump(self, package: str) -> str:
        """Fetch the dumpsys text for one package."""
        return self.shell.query([self.shell.tools.system("dumpsys"), "package", package])
    
    def is_installed(self, package: str) -> bool:
        output = self.shell.query(self.pm("list", "packages", "--user", str(self.user), package))
        return package in parse_package_list(output)
    
    def uninstall(self, package: str) -> None:
        self.shell.run(self.pm("uninstall", "--user", str(self.user), package))
    
    @contextmanager
    def install_session(self, package: str, installer: Optional[str] = None) -> Iterator[InstallSession]:
        """Create an install session, abandoning it unless it was committed."""
        args = [
            "install-create",
            "--install-reason", str(INSTALL_REASON_DEVICE_RESTORE),
            "--restrict-permissions",
            "--user", str(self.user),
            "--pkg", package,
        ]
        if installer:
            args += ["-i", installer]
        logger.debug(f"PM install args: {' '.join(args)}")
        
        try:
            output = self.shell.run(self.pm(*args))
        except ShellError as e:
            raise InstallError(f"Could not create install session for {package}: {e}") from e
        
        match = SESSION_RE.search(output)
        if not match:
            raise InstallError(f"Unexpected install-create output: {output}")
        
        session = InstallSession(self, match.group(1))
        logger.debug(f"PM session: {session.session_id}")
        try:
            yield session
        finally:
            if not session.committed:
                try:
                    session.abandon()
                except ShellError as e:
                    logger.warning(f"Could not abandon session {session.session_id}: {e}")
    
    def suspend(self, package: str) -> None:
        self.shell.run(self.pm("suspend", "--user", str(self.user), package))
    
    def unsuspend(self, package: str) -> None:
        self.shell.run(self.pm("unsuspend", "--user", str(self.user), package))
    
    @contextmanager
    def suspended(self, package: str, enabled: bool = True) -> Iterator[bool]:
        """Keep a package suspended for the duration of the block.
        
        Yields whether the package was actually suspended. Unsuspend runs on
        every exit path once suspend succeeded.
        """
        if not enabled:
            yield False
            return
        
        self.suspend(package)
        try:
            yield True
        finally:
            try:
                self.unsuspend(package)
            except ShellError as e:
                logger.error(f"Failed to unsuspend {package}, run 'pm unsuspend {package}' manually: {e}")
    
    def grant(self, package: str, permission: str) -> None:
        try:
            self.shell.run(self.pm("grant", "--user", str(self.user), package, permission))
        except ShellError as e:
            raise PermissionGrantError(f"Granting {permission} to {package} failed: {e.stderr or e}") from e
