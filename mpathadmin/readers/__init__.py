"""
Live State Readers

This package provides readers for the live state of the host:
- MultipathDeviceReader: multipath maps reported by multipathd
- MountReader: mount points and the processes holding them
- SysfsIscsiInitiator: iSCSI sessions, SCSI addresses and portals from sysfs
"""

from .multipath_reader import MultipathDeviceReader
from .mount_reader import MountReader
from .iscsi_reader import SysfsIscsiInitiator

__all__ = [
    'MultipathDeviceReader',
    'MountReader',
    'SysfsIscsiInitiator'
]
