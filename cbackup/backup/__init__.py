"""Backup and restore of installed apps."""

from .codecs import ArchiveCodec
from .executor import BackupExecutor
from .facts import AppFacts, FactsExtractor
from .hotswap import HotswapWorkspace, detect_host_package
from .integrity import BACKUP_VERSION, check_version, verify_canary
from .inventory import InventoryResolver
from .layout import BackupRecord, BackupSet
from .pipeline import CommandStage, MeterStage, run_pipeline
from .restore import RestoreExecutor
from .summary import AppOutcome, RunSummary

__all__ = [
    "ArchiveCodec",
    "BackupExecutor",
    "AppFacts",
    "FactsExtractor",
    "HotswapWorkspace",
    "detect_host_package",
    "BACKUP_VERSION",
    "check_version",
    "verify_canary",
    "InventoryResolver",
    "BackupRecord",
    "BackupSet",
    "CommandStage",
    "MeterStage",
    "run_pipeline",
    "RestoreExecutor",
    "AppOutcome",
    "RunSummary",
]
