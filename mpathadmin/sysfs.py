"""
Sysfs Interface Module

This module provides the low-level sysfs interface used for multipath device
management. It handles direct filesystem operations under /sys for reading
device attributes and symlinks and for writing control files such as
/sys/block/<dev>/device/delete.

This is the foundational layer for block device removal and for the Linux
iSCSI session reader.
"""

import os
import logging
from typing import List

from .exceptions import MultipathError


class MultipathSysfs:
    """Sysfs interface handler for low-level device operations.

    Attributes:
        SYS_BLOCK: Base path of block devices
        ISCSI_SESSIONS: Path of iSCSI session class devices
        ISCSI_CONNECTIONS: Path of iSCSI connection class devices
    """

    SYS_BLOCK = "/sys/block"
    ISCSI_SESSIONS = "/sys/class/iscsi_session"
    ISCSI_CONNECTIONS = "/sys/class/iscsi_connection"

    DELETE_ATTR = "device/delete"
    DELETE_VALUE = "1"

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def valid_path(self, path: str) -> bool:
        """Check if a sysfs path is valid and accessible"""
        return os.path.exists(path) and os.access(path, os.R_OK)

    def write_sysfs(self, path: str, data: str) -> None:
        """Write data to a sysfs control file.

        Args:
            path: Absolute sysfs path to write to
            data: Data string to write

        Raises:
            MultipathError: On path validation, permission, or write failures
        """
        try:
            if not os.path.exists(path):
                raise MultipathError(f"Sysfs path does not exist: {path}")

            if not os.access(path, os.W_OK):
                raise MultipathError(f"No write permission for: {path}")

            self.logger.debug("Writing %s to %s", data, path)
            with open(path, 'w') as f:
                f.write(data)

        except PermissionError:
            raise MultipathError(f"Permission denied writing to {path}")
        except OSError as e:
            raise MultipathError(f"Error writing to {path}: {e}")

    def read_sysfs(self, path: str) -> str:
        """Read data from a sysfs file with error handling.

        Returns:
            File contents with whitespace stripped

        Raises:
            MultipathError: On path validation or read failures
        """
        try:
            if not self.valid_path(path):
                raise MultipathError(f"Cannot read from {path}")

            with open(path, 'r') as f:
                return f.read().strip()

        except OSError as e:
            raise MultipathError(f"Error reading from {path}: {e}")

    def read_link_name(self, path: str) -> str:
        """Return the last component of a sysfs symlink target.

        Example:
            /sys/block/sdb/device -> ../../../2:0:0:1  =>  "2:0:0:1"

        Raises:
            MultipathError: If the link cannot be read
        """
        try:
            return os.path.basename(os.readlink(path).rstrip('/'))
        except OSError as e:
            raise MultipathError(f"Error reading link {path}: {e}")

    def list_directory(self, path: str) -> List[str]:
        """List contents of a sysfs directory (empty if missing or unreadable)"""
        try:
            if not self.valid_path(path):
                return []
            return sorted(f for f in os.listdir(path) if not f.startswith('.'))
        except OSError:
            return []

    def delete_block_device(self, block_device: str) -> None:
        """Ask the SCSI layer to remove a block device.

        Equivalent to ``echo 1 > /sys/block/<dev>/device/delete``.

        Raises:
            MultipathError: If the control file cannot be written
        """
        name = os.path.basename(block_device)
        self.write_sysfs(f"{self.SYS_BLOCK}/{name}/{self.DELETE_ATTR}", self.DELETE_VALUE)
