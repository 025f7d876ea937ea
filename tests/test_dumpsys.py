"""Tests for the package dump parser."""

import pytest

from cbackup.android.dumpsys import granted_runtime_permissions, package_block, parse_package_dump
from cbackup.errors import ParseError

DUMP = """Activity Resolver Table:
  Non-Data Actions:
      android.intent.action.MAIN:
        4f2a com.example.app/.MainActivity filter 91c

Packages:
  Package [com.example.app] (3b1f2c9):
    userId=10123
    pkg=Package{8d1e com.example.app}
    codePath=/data/app/~~Qx1==/com.example.app-Zk2==
    resourcePath=/data/app/~~Qx1==/com.example.app-Zk2==
    installerPackageName=com.android.vending
    install permissions:
      android.permission.INTERNET: granted=true
    User 0: ceDataInode=4413 installed=true hidden=false suspended=false
      runtime permissions:
        android.permission.CAMERA: granted=true, flags=[ USER_SET|USER_SENSITIVE_WHEN_GRANTED ]
        android.permission.RECORD_AUDIO: granted=false, flags=[ USER_SET ]
        android.permission.ACCESS_FINE_LOCATION: granted=true
  Package [com.other.app] (77aa01):
    userId=10200
    codePath=/data/app/com.other.app-1

Hidden system packages:
  Package [com.example.app] (ffff):
    userId=1000
    codePath=/system/app/Example
"""


class TestPackageBlock:
    """Test locating a package's block."""
    
    def test_block_ends_at_sibling(self):
        block = package_block(DUMP, "com.example.app")
        
        assert block is not None
        assert not any("com.other.app-1" in line for line in block)
    
    def test_missing_package(self):
        assert package_block(DUMP, "com.absent") is None


class TestParsePackageDump:
    """Test extracting facts from a package dump."""
    
    def test_mandatory_fields(self):
        dump = parse_package_dump(DUMP, "com.example.app")
        
        assert dump.user_id == 10123
        assert dump.code_path == "/data/app/~~Qx1==/com.example.app-Zk2=="
        assert dump.installer == "com.android.vending"
    
    def test_only_granted_runtime_permissions(self):
        dump = parse_package_dump(DUMP, "com.example.app")
        
        assert dump.runtime_permissions == [
            "android.permission.CAMERA",
            "android.permission.ACCESS_FINE_LOCATION",
        ]
    
    def test_install_permissions_are_ignored(self):
        dump = parse_package_dump(DUMP, "com.example.app")
        
        assert "android.permission.INTERNET" not in dump.runtime_permissions
    
    def test_first_block_wins(self):
        dump = parse_package_dump(DUMP, "com.example.app")
        
        assert dump.user_id != 1000
    
    def test_app_id_key(self):
        text = "  Package [com.new.app] (1):\n    appId=10555\n    codePath=/data/app/x\n"
        
        assert parse_package_dump(text, "com.new.app").user_id == 10555
    
    def test_null_installer(self):
        text = (
            "  Package [com.sideloaded] (1):\n"
            "    userId=10300\n"
            "    codePath=/data/app/y\n"
            "    installerPackageName=null\n"
        )
        
        assert parse_package_dump(text, "com.sideloaded").installer is None
    
    def test_missing_block(self):
        with pytest.raises(ParseError):
            parse_package_dump(DUMP, "com.absent")
    
    def test_missing_user_id(self):
        text = "  Package [com.broken] (1):\n    codePath=/data/app/z\n"
        
        with pytest.raises(ParseError):
            parse_package_dump(text, "com.broken")
    
    def test_malformed_user_id(self):
        text = "  Package [com.broken] (1):\n    userId=abc\n    codePath=/data/app/z\n"
        
        with pytest.raises(ParseError):
            parse_package_dump(text, "com.broken")
    
    def test_missing_code_path(self):
        text = "  Package [com.broken] (1):\n    userId=10001\n"
        
        with pytest.raises(ParseError):
            parse_package_dump(text, "com.broken")


def test_duplicate_permissions_across_users():
    block = [
        "    User 0:",
        "      runtime permissions:",
        "        android.permission.CAMERA: granted=true",
        "    User 10:",
        "      runtime permissions:",
        "        android.permission.CAMERA: granted=true",
    ]
    
    assert granted_runtime_permissions(block) == ["android.permission.CAMERA"]
