"""Exception taxonomy shared by the backup and restore engines."""

from typing import Optional, Sequence


class CbackupError(Exception):
    """Base class for all cbackup errors."""
    pass


class ShellError(CbackupError):
    """An external command exited with a failure status."""
    
    def __init__(self, argv: Sequence[str], returncode: Optional[int], stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(f"Command failed ({returncode}): {' '.join(self.argv)}{detail}")


class BackupIOError(CbackupError):
    """Filesystem operation on a backup record failed."""
    pass


class StreamError(CbackupError):
    """A stream pipeline stage failed or closed its stream early."""
    
    def __init__(self, stage: str, cause: str):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Stream stage '{stage}' failed: {cause}")


class ParseError(CbackupError):
    """A mandatory field is missing from a package dump."""
    pass


class VersionError(CbackupError):
    """Backup record format version is missing or does not match."""
    pass


class AuthError(CbackupError):
    """Password canary did not decrypt to the expected value."""
    pass


class InstallError(CbackupError):
    """APK installation through an install session failed."""
    pass


class PermissionGrantError(CbackupError):
    """A single runtime permission could not be granted."""
    pass


class HotswapError(CbackupError):
    """The host data directory swap could not be completed."""
    pass
