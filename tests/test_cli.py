"""Tests for the command line interface."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from cbackup.backup.summary import RunSummary
from cbackup.cli import cli
from cbackup.config import CbackupConfig, save_config
from cbackup.errors import ShellError


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    save_config(
        CbackupConfig(backup_dir=tmp_path / "backup", tmp_dir=tmp_path / "scratch", progress=False),
        path,
    )
    return path


def invoke(config_file, *args, env=None, input=None):
    runner = CliRunner()
    return runner.invoke(cli, ["-c", str(config_file), *args], env=env or {"CBACKUP_PASSWORD": "pw"}, input=input)


class TestCli:
    """Test run-level exit codes."""
    
    @patch("cbackup.cli.os.geteuid", return_value=10123)
    def test_requires_root(self, mock_geteuid, config_file):
        result = invoke(config_file, "backup")
        
        assert result.exit_code == 1
        assert "root" in result.output
    
    @patch("cbackup.cli.os.geteuid", return_value=0)
    def test_missing_backup_set(self, mock_geteuid, config_file):
        result = invoke(config_file, "restore")
        
        assert result.exit_code == 1
    
    @patch("cbackup.cli.os.geteuid", return_value=0)
    def test_empty_password(self, mock_geteuid, config_file):
        result = invoke(config_file, "backup", env={"CBACKUP_PASSWORD": ""}, input="\n")
        
        assert result.exit_code == 1
    
    @patch("cbackup.cli.BackupExecutor")
    @patch("cbackup.cli.os.geteuid", return_value=0)
    def test_backup_with_failures_exits_zero(self, mock_geteuid, mock_executor, config_file, tmp_path):
        summary = RunSummary(mode="backup")
        summary.start_app("org.example.notes")
        summary.start_app("net.example.chat").fail("data not captured")
        mock_executor.return_value.run.return_value = summary
        
        result = invoke(config_file, "backup")
        
        assert result.exit_code == 0
        assert "net.example.chat" in result.output
        assert not (tmp_path / "scratch").exists()
    
    @patch("cbackup.cli.BackupExecutor")
    @patch("cbackup.cli.os.geteuid", return_value=0)
    def test_inventory_failure(self, mock_geteuid, mock_executor, config_file):
        mock_executor.return_value.run.side_effect = ShellError(["pm", "list", "packages"], 1, "boom")
        
        result = invoke(config_file, "backup")
        
        assert result.exit_code == 1
    
    @patch("cbackup.cli.RestoreExecutor")
    @patch("cbackup.cli.os.geteuid", return_value=0)
    def test_path_argument(self, mock_geteuid, mock_executor, config_file, tmp_path):
        backup_dir = tmp_path / "elsewhere"
        backup_dir.mkdir()
        mock_executor.return_value.run.return_value = RunSummary(mode="restore")
        
        result = invoke(config_file, "restore", str(backup_dir))
        
        assert result.exit_code == 0
        config = mock_executor.call_args.args[0]
        assert config.backup_dir == backup_dir
