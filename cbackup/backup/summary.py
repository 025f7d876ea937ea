"""Run summary shared by backup and restore."""

import time
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class AppOutcome:
    package: str
    ok: bool = True
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    
    def fail(self, message: str) -> None:
        self.ok = False
        self.error = message
    
    def warn(self, message: str) -> None:
        self.warnings.append(message)


@dataclass
class RunSummary:
    mode: str
    outcomes: List[AppOutcome] = field(default_factory=list)
    install_failed: List[str] = field(default_factory=list)
    reboot_required: bool = False
    host_restored: bool = False
    started: float = field(default_factory=time.monotonic)
    finished: Optional[float] = None
    
    def start_app(self, package: str) -> AppOutcome:
        outcome = AppOutcome(package)
        self.outcomes.append(outcome)
        return outcome
    
    def finish(self) -> None:
        self.finished = time.monotonic()
    
    @property
    def duration(self) -> float:
        end = self.finished if self.finished is not None else time.monotonic()
        return end - self.started
    
    @property
    def succeeded(self) -> List[AppOutcome]:
        return [o for o in self.outcomes if o.ok]
    
    @property
    def failed(self) -> List[AppOutcome]:
        return [o for o in self.outcomes if not o.ok]
    
    def deferred_warnings(self) -> List[str]:
        """Warnings repeated at the end of the run so they are not lost in the log."""
        warnings = []
        if self.install_failed:
            warnings.append(
                "The following apps could not be installed and their data was not restored: "
                + ", ".join(self.install_failed)
            )
        if self.reboot_required:
            warnings.append("Reboot the device to apply restored SSAIDs.")
        if self.host_restored:
            warnings.append("The host environment was restored in place. Restart it before running anything else.")
        return warnings
