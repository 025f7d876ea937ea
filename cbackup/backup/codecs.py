"""Archive, compression and encryption stages with fixed parameters."""

import io
import os
import tempfile
from pathlib import Path
from typing import List, Optional

from ..android.shell import ToolLocator
from ..config import CodecConfig
from ..errors import StreamError
from ..util.logging import get_logger
from .pipeline import CommandStage, MeterStage, run_pipeline

logger = get_logger(__name__)

# openssl reads the password from here so it never shows up in argv
PASSWORD_ENV = "CBACKUP_PASSWORD"


def archive_stage(tools: ToolLocator, root: Path, file_list: Path) -> CommandStage:
    return CommandStage("tar", [
        tools.require("tar"), "-C", str(root),
        "--numeric-owner", "--no-recursion", "--null", "-T", str(file_list),
        "-cf", "-",
    ])


def extract_stage(tools: ToolLocator, dest: Path) -> CommandStage:
    return CommandStage("tar", [
        tools.require("tar"), "-C", str(dest), "--numeric-owner", "-xpf", "-",
    ])


def compress_stage(tools: ToolLocator, config: CodecConfig) -> CommandStage:
    return CommandStage("zstd", [
        tools.require("zstd"), "-q", f"-T{config.zstd_threads}", f"-{config.zstd_level}", "-c",
    ])


def decompress_stage(tools: ToolLocator, config: CodecConfig) -> CommandStage:
    return CommandStage("zstd", [
        tools.require("zstd"), "-q", "-d", f"-T{config.zstd_threads}", "-c",
    ])


def cipher_stage(tools: ToolLocator, password: str, config: CodecConfig, decrypt: bool = False) -> CommandStage:
    argv = [tools.require("openssl"), "enc"]
    if decrypt:
        argv.append("-d")
    argv += [
        f"-{config.cipher}",
        "-pbkdf2", "-iter", str(config.kdf_iterations),
        "-pass", f"env:{PASSWORD_ENV}",
    ]
    return CommandStage("openssl", argv, env={PASSWORD_ENV: password})


class ArchiveCodec:
    """Packs and unpacks encrypted data archives with one password."""
    
    def __init__(
        self,
        tools: ToolLocator,
        password: str,
        config: CodecConfig,
        scratch_dir: Path,
        progress: bool = True,
    ):
        self.tools = tools
        self.password = password
        self.config = config
        self.scratch_dir = scratch_dir
        self.progress = progress
    
    def pack(self, root: Path, entries: List[str], dest: Path, description: Optional[str] = None) -> None:
        """Archive entries (relative to root), compress and encrypt them into dest.
        
        A failed run leaves no partial dest behind.
        """
        with tempfile.NamedTemporaryFile("wb", dir=self.scratch_dir, prefix="files-", suffix=".list") as listing:
            listing.write(b"".join(os.fsencode(entry) + b"\0" for entry in entries))
            listing.flush()
            
            stages = [
                archive_stage(self.tools, root, Path(listing.name)),
                compress_stage(self.tools, self.config),
                cipher_stage(self.tools, self.password, self.config),
                MeterStage(description=description, enabled=self.progress),
            ]
            try:
                with open(dest, "wb") as out:
                    run_pipeline(stages, sink=out)
            except StreamError:
                dest.unlink(missing_ok=True)
                raise
    
    def unpack(self, archive: Path, dest: Path, description: Optional[str] = None) -> None:
        """Decrypt, decompress and extract an archive under dest."""
        stages = [
            MeterStage(total=archive.stat().st_size, description=description, enabled=self.progress),
            cipher_stage(self.tools, self.password, self.config, decrypt=True),
            decompress_stage(self.tools, self.config),
            extract_stage(self.tools, dest),
        ]
        with open(archive, "rb") as src:
            run_pipeline(stages, source=src)
    
    def encrypt_bytes(self, data: bytes, dest: Path) -> None:
        with open(dest, "wb") as out:
            run_pipeline([cipher_stage(self.tools, self.password, self.config)], source=io.BytesIO(data), sink=out)
    
    def decrypt_bytes(self, src: Path) -> bytes:
        buffer = io.BytesIO()
        with open(src, "rb") as f:
            run_pipeline([cipher_stage(self.tools, self.password, self.config, decrypt=True)], source=f, sink=buffer)
        return buffer.getvalue()
