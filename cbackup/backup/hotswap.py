"""In-place replacement of the host environment's own data.

Restoring the package this program runs inside means overwriting the
interpreter, shell and tools in use. Data is extracted to a staging tree
next to the live directory, then swapped in with two renames on the same
filesystem.

Between the two renames the host's programs are missing from their paths.
Only os.rename, os.chdir and ToolLocator.refresh run in that window: no
logging, no imports, no subprocesses. If the process dies inside it, the
previous data is left at <live>.cbackup-old and can be renamed back by hand.
"""

import os
import sys
from pathlib import Path
from typing import List, Optional

from ..android.shell import ToolLocator
from ..errors import HotswapError
from ..util.logging import get_logger
from ..util.paths import remove_tree

logger = get_logger(__name__)

STAGING_SUFFIX = ".cbackup-new"
DISPLACED_SUFFIX = ".cbackup-old"


def detect_host_package(data_root: Path, fallback: str) -> str:
    """Name the package whose data directory holds the running interpreter."""
    prefix = Path(os.path.realpath(sys.prefix))
    try:
        relative = prefix.relative_to(os.path.realpath(data_root))
    except ValueError:
        logger.debug(f"Interpreter prefix {prefix} is outside {data_root}, assuming host {fallback}")
        return fallback
    
    if not relative.parts:
        return fallback
    return relative.parts[0]


class HotswapWorkspace:
    """Staging tree for restoring the host package's data.
    
    Usage:
        with HotswapWorkspace(data_root, host, tools) as workspace:
            codec.unpack(archive, workspace.root)
            workspace.swap(workspace.staged(live, archive_root), live)
    """
    
    def __init__(self, data_root: Path, package: str, tools: ToolLocator):
        self.root = Path(data_root) / f"{package}{STAGING_SUFFIX}"
        self.tools = tools
        self.displaced: List[Path] = []
        self.missing_tools: List[str] = []
    
    def __enter__(self) -> "HotswapWorkspace":
        remove_tree(self.root)
        self.root.mkdir(mode=0o700)
        return self
    
    def __exit__(self, exc_type, exc, tb) -> None:
        for path in self.displaced:
            try:
                remove_tree(path)
            except OSError as e:
                logger.warning(f"Could not remove previous data at {path}: {e}")
        try:
            remove_tree(self.root)
        except OSError as e:
            logger.warning(f"Could not remove staging area {self.root}: {e}")
    
    def staged(self, live: Path, archive_root: Path) -> Path:
        """Where the archive places live's contents inside the staging tree."""
        return self.root / Path(live).relative_to(archive_root)
    
    def swap(self, staged: Path, live: Path) -> None:
        """Replace live with staged.
        
        Raises:
            HotswapError: If the staged tree is absent or the swap had to be rolled back
        """
        if not staged.is_dir():
            raise HotswapError(f"Staged data {staged} does not exist")
        
        displaced = live.with_name(live.name + DISPLACED_SUFFIX)
        remove_tree(displaced)
        cwd = os.getcwd()
        had_live = live.exists()
        moved_aside = False
        failure: Optional[OSError] = None
        
        # Unsafe window start
        try:
            if had_live:
                os.rename(live, displaced)
                moved_aside = True
            os.rename(staged, live)
        except OSError as e:
            failure = e
            if moved_aside:
                os.rename(displaced, live)
        try:
            os.chdir(cwd)
        except OSError:
            os.chdir(live)
        missing = self.tools.refresh()
        # Unsafe window end
        
        if failure is not None:
            raise HotswapError(f"Could not move {staged} to {live}, previous data kept: {failure}") from failure
        
        if moved_aside:
            self.displaced.append(displaced)
        self.missing_tools.extend(missing)
        logger.info(f"Swapped restored data into {live}")
        if missing:
            logger.warning(f"Tools missing after swap: {', '.join(missing)}")
