"""Local shell command execution for on-device operation."""

import shutil
import subprocess
from typing import IO, Dict, List, Optional, Sequence

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import ShellError
from ..util.logging import get_logger

logger = get_logger(__name__)

SYSTEM_BIN = "/system/bin"


class ToolLocator:
    """Resolves executables on PATH and caches the results.
    
    The cache holds absolute paths, so anything that swaps the directories
    those paths live in must call refresh() afterwards.
    """
    
    def __init__(self, search_path: Optional[str] = None):
        self.search_path = search_path
        self._cache: Dict[str, Optional[str]] = {}
    
    def find(self, name: str) -> Optional[str]:
        """Return the cached absolute path of an executable, or None."""
        if name not in self._cache:
            self._cache[name] = shutil.which(name, path=self.search_path)
        return self._cache[name]
    
    def require(self, name: str) -> str:
        """Return the path of an executable that must exist."""
        path = self.find(name)
        if path is None:
            raise ShellError([name], None, f"{name} not found in PATH")
        return path
    
    def system(self, name: str) -> str:
        """Return an OS-provided utility, preferring /system/bin over PATH."""
        candidate = shutil.which(name, path=SYSTEM_BIN)
        return candidate or self.require(name)
    
    def refresh(self) -> List[str]:
        """Drop cached lookups, re-probe every known tool and return the missing ones."""
        names = list(self._cache)
        self._cache.clear()
        return [name for name in names if self.find(name) is None]


class Shell:
    """Runs commands on the device the tool is running on."""
    
    def __init__(self, tools: Optional[ToolLocator] = None, timeout: Optional[int] = None):
        self.tools = tools or ToolLocator()
        self.timeout = timeout
    
    def command(self, name: str, *args: str) -> List[str]:
        """Build argv for a tool resolved through the locator."""
        return [self.tools.require(name), *args]
    
    def run(
        self,
        argv: Sequence[str],
        stdin: Optional[IO[bytes]] = None,
        input: Optional[str] = None,
        check: bool = True,
    ) -> str:
        """Run a command and return its stripped stdout."""
        logger.debug(f"Running: {' '.join(argv)}")
        
        try:
            result = subprocess.run(
                list(argv),
                stdin=stdin,
                input=input,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ShellError(argv, None, f"executable not found: {argv[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise ShellError(argv, None, f"timed out after {self.timeout}s") from e
        
        if check and result.returncode != 0:
            raise ShellError(argv, result.returncode, result.stderr or result.stdout)
        
        return result.stdout.strip()
    
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(ShellError),
        reraise=True,
    )
    def query(self, argv: Sequence[str]) -> str:
        """Run a read-only query, retrying transient failures."""
        return self.run(argv)
