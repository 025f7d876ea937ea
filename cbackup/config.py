"""Configuration management for cbackup."""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field
from ruamel.yaml import YAML

DEFAULT_CONFIG_PATH = Path.home() / ".config/cbackup/config.yaml"


class CodecConfig(BaseModel):
    """Parameters for the compression and encryption stages."""
    
    zstd_level: int = Field(default=3, ge=1, le=19, description="zstd compression level")
    zstd_threads: int = Field(default=0, ge=0, description="zstd worker threads (0 = all cores)")
    cipher: str = Field(default="aes-256-ctr", description="openssl enc cipher name")
    kdf_iterations: int = Field(default=200001, description="PBKDF2 iteration count")


class CbackupConfig(BaseModel):
    """Main configuration for cbackup."""
    
    backup_dir: Path = Field(default=Path("/sdcard/cbackup"), description="Backup set location")
    tmp_dir: Path = Field(default=Path("/data/local/tmp/cbackup"), description="Scratch directory")
    
    archive_root: Path = Field(default=Path("/"), description="Root that archive member paths are relative to")
    data_root: Path = Field(default=Path("/data/data"), description="CE app data root")
    de_data_root: Path = Field(default=Path("/data/user_de/0"), description="DE app data root")
    ssaid_registry: Path = Field(
        default=Path("/data/system/users/0/settings_ssaid.xml"),
        description="SSAID registry file"
    )
    
    host_package: str = Field(default="com.termux", description="Package hosting the running tool")
    android_user: int = Field(default=0, description="Android user ID")
    app_exclusion_list: List[str] = Field(
        default=[
            # Rely on device-bound keys, restoring them breaks more than it fixes
            "com.google.android.gms",
            "com.google.android.gsf",
            "com.android.vending",
            "com.google.android.apps.walletnfcrel",
        ],
        description="Packages never backed up"
    )
    
    codec: CodecConfig = Field(default_factory=CodecConfig)
    
    progress: bool = Field(default=True, description="Show data throughput meters")
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[Path] = Field(default=None, description="Optional debug log file")
    
    class Config:
        """Pydantic configuration."""
        
        validate_assignment = True


def load_config(config_path: Optional[Path] = None) -> CbackupConfig:
    """Load configuration from file or create default."""
    
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    
    if config_path.exists():
        yaml = YAML(typ="safe")
        with open(config_path, "r") as f:
            data = yaml.load(f) or {}
        return CbackupConfig(**data)
    else:
        config = CbackupConfig()
        save_config(config, config_path)
        return config


def save_config(config: CbackupConfig, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""
    
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    
    config_path.parent.mkdir(parents=True, exist_ok=True)
    
    yaml = YAML()
    yaml.default_flow_style = False
    
    with open(config_path, "w") as f:
        yaml.dump(config.model_dump(mode="json"), f)
