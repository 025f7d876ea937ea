"""Shared fixtures for executor tests."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from cbackup.backup.facts import AppFacts
from cbackup.config import CbackupConfig

PACKAGE = "org.example.notes"
SSAID_LINE = '<setting id="12" name="10123" value="5a1c" package="org.example.notes" defaultValue="5a1c" />'


@pytest.fixture
def config(tmp_path):
    return CbackupConfig(
        backup_dir=tmp_path / "backup",
        tmp_dir=tmp_path / "scratch",
        archive_root=tmp_path,
        data_root=tmp_path / "data" / "data",
        de_data_root=tmp_path / "data" / "user_de" / "0",
        ssaid_registry=tmp_path / "settings_ssaid.xml",
    )


@pytest.fixture
def make_facts(tmp_path):
    def factory(package: str = PACKAGE, **overrides) -> AppFacts:
        install_path = tmp_path / "app" / f"{package}-1"
        install_path.mkdir(parents=True, exist_ok=True)
        base = install_path / "base.apk"
        base.write_bytes(b"PK\x03\x04base")
        
        fields = dict(
            package=package,
            install_path=install_path,
            apk_paths=[base],
            user_id=10123,
            installer="org.fdroid.fdroid",
            permissions=["android.permission.CAMERA"],
            ssaid_entry=SSAID_LINE,
            battery_opt_exempt=True,
            data_context="u:object_r:app_data_file:s0:c123,c256,c512,c768",
        )
        fields.update(overrides)
        return AppFacts(**fields)
    
    return factory


@pytest.fixture
def system():
    mock_system = MagicMock()
    mock_system.supports_suspend.return_value = True
    return mock_system


@pytest.fixture
def codec():
    mock_codec = MagicMock()
    mock_codec.encrypt_bytes.side_effect = lambda data, dest: Path(dest).write_bytes(b"Salted__canary")
    return mock_codec
