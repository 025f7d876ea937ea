"""
cbackup - device-local app backup and restore for rooted Android devices.

Backs up, per user-installed application:
- APK sets (base and split APKs)
- Private data (CE and DE storage), compressed and encrypted
- Granted runtime permissions, SSAID, battery optimization and installer name
"""

__version__ = "0.2.0"
__author__ = "cbackup Contributors"
