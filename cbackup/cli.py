"""Command Line Interface for cbackup."""

import os
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .android import AndroidSystem, PackageService, Shell, ToolLocator
from .backup import ArchiveCodec, BackupExecutor, RestoreExecutor, RunSummary, detect_host_package
from .config import CbackupConfig, load_config
from .errors import CbackupError
from .util import ensure_directory, format_duration, get_logger, now_iso, remove_tree, setup_logging

console = Console()
logger = get_logger(__name__)


def setup_cli_logging(config: CbackupConfig, verbose: bool = False):
    """Setup logging for CLI."""
    level = "DEBUG" if verbose else config.log_level
    setup_logging(level=level, log_file=config.log_file, console=console)


def fatal(message: str) -> None:
    console.print(f"[bold red]Error: {message}[/bold red]")
    sys.exit(1)


def print_summary(summary: RunSummary) -> None:
    """Render per-app results and the deferred warnings."""
    if summary.outcomes:
        table = Table(title=f"{summary.mode.capitalize()} summary")
        table.add_column("App", style="cyan")
        table.add_column("Status")
        table.add_column("Details", style="dim")
        
        for outcome in summary.outcomes:
            status = "[green]OK[/green]" if outcome.ok else "[red]FAILED[/red]"
            details = [outcome.error] if outcome.error else []
            details += outcome.warnings
            table.add_row(outcome.package, status, "\n".join(details))
        
        console.print(table)
    
    console.print(
        f"{len(summary.succeeded)} succeeded, {len(summary.failed)} failed "
        f"in {format_duration(summary.duration)}"
    )
    for warning in summary.deferred_warnings():
        console.print(f"[bold yellow]Warning: {warning}[/bold yellow]")
    
    console.print(f"[bold green]{summary.mode.capitalize()} finished![/bold green]")


@click.command()
@click.argument("mode", type=click.Choice(["backup", "restore"]), default="backup")
@click.argument("path", type=click.Path(path_type=Path), required=False)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--config", "-c", "config_path", type=click.Path(exists=True, path_type=Path), help="Configuration file path")
@click.option("--password", envvar="CBACKUP_PASSWORD", help="Backup password (default: prompt)")
@click.option("--no-progress", is_flag=True, help="Disable data throughput meters")
@click.version_option(__version__, prog_name="cbackup")
def cli(mode: str, path: Optional[Path], verbose: bool, config_path: Optional[Path], password: Optional[str], no_progress: bool):
    """cbackup - back up and restore Android apps with their data.
    
    MODE is backup (default) or restore. PATH overrides the configured backup directory.
    """
    config = load_config(config_path)
    setup_cli_logging(config, verbose)
    
    if path is not None:
        config.backup_dir = path
    
    if os.geteuid() != 0:
        fatal("cbackup must be run as root")
    
    if mode == "restore" and not config.backup_dir.is_dir():
        fatal(f"Backup directory {config.backup_dir} does not exist")
    
    if password is None:
        password = click.prompt(
            "Password",
            hide_input=True,
            confirmation_prompt=mode == "backup",
            default="",
            show_default=False,
        )
    if not password:
        fatal("Password must not be empty")
    
    tools = ToolLocator()
    shell = Shell(tools)
    packages = PackageService(shell, user=config.android_user)
    system = AndroidSystem(shell, config.ssaid_registry)
    host_package = detect_host_package(config.data_root, config.host_package)
    logger.debug(f"Host package: {host_package}, started {now_iso()}")
    
    codec = ArchiveCodec(
        tools,
        password,
        config.codec,
        scratch_dir=config.tmp_dir,
        progress=config.progress and not no_progress,
    )
    
    try:
        remove_tree(config.tmp_dir)
        ensure_directory(config.tmp_dir)
        
        if mode == "backup":
            executor = BackupExecutor(config, packages, system, codec, host_package=host_package)
            summary = executor.run()
        else:
            executor = RestoreExecutor(config, packages, system, codec, tools, host_package=host_package)
            summary = executor.run()
    except CbackupError as e:
        fatal(str(e))
    except OSError as e:
        fatal(str(e))
    finally:
        try:
            remove_tree(config.tmp_dir)
        except OSError as e:
            logger.warning(f"Could not remove scratch directory {config.tmp_dir}: {e}")
    
    print_summary(summary)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
