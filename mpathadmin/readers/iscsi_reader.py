"""
Linux iSCSI Session Reader

Implements the IscsiInitiator interface on top of the open-iscsi sysfs classes:

    /sys/block/sdb/device -> ../../../2:0:0:1
    /sys/class/iscsi_session/session3/targetname
    /sys/class/iscsi_session/session3/initiatorname
    /sys/class/iscsi_session/session3/device/target2:0:0
    /sys/class/iscsi_connection/connection3:0/persistent_address
    /sys/class/iscsi_connection/connection3:0/persistent_port
"""

import logging
import os
from typing import List, Optional, Tuple

from ..config import ScsiAddress, TargetMapping
from ..exceptions import MultipathError
from ..iscsi import IscsiInitiator
from ..sysfs import MultipathSysfs


class SysfsIscsiInitiator(IscsiInitiator):
    """Reads iSCSI sessions, SCSI addresses and portals from sysfs."""

    SESSION_PREFIX = "session"
    TARGET_PREFIX = "target"
    CONNECTION_PREFIX = "connection"

    def __init__(self, sysfs: Optional[MultipathSysfs] = None):
        self.sysfs = sysfs or MultipathSysfs()
        self.logger = logging.getLogger(__name__)

    def get_scsi_address(self, device_path_id: str) -> ScsiAddress:
        """Read the H:C:T:L address of a block device.

        Raises:
            MultipathError: If the device link is missing or malformed
        """
        name = os.path.basename(device_path_id.rstrip('/'))
        hctl = self.sysfs.read_link_name(f"{self.sysfs.SYS_BLOCK}/{name}/device")
        try:
            return ScsiAddress.from_hctl(hctl)
        except ValueError as e:
            raise MultipathError(f"Unable to read the SCSI address of {device_path_id}: {e}")

    def _session_number(self, session: str) -> str:
        return session[len(self.SESSION_PREFIX):]

    def _read_optional(self, path: str) -> str:
        try:
            return self.sysfs.read_sysfs(path)
        except MultipathError:
            return ""

    def report_target_mappings(self) -> List[TargetMapping]:
        """Return one mapping per SCSI target of every iSCSI session."""
        mappings = []
        for session in self.sysfs.list_directory(self.sysfs.ISCSI_SESSIONS):
            if not session.startswith(self.SESSION_PREFIX):
                continue
            session_path = f"{self.sysfs.ISCSI_SESSIONS}/{session}"
            target_name = self._read_optional(f"{session_path}/targetname")
            if not target_name:
                self.logger.warning("Skipping iSCSI %s without a target name", session)
                continue
            initiator_name = self._read_optional(f"{session_path}/initiatorname")

            for entry in self.sysfs.list_directory(f"{session_path}/device"):
                if not entry.startswith(self.TARGET_PREFIX):
                    continue
                try:
                    host, bus, target = (int(part) for part in entry[len(self.TARGET_PREFIX):].split(":"))
                except ValueError:
                    self.logger.warning("Ignoring malformed SCSI target entry %s of %s", entry, session)
                    continue
                mappings.append(TargetMapping(
                    target_name=target_name,
                    initiator_name=initiator_name,
                    os_bus_number=bus,
                    os_target_number=target,
                    os_host_number=host,
                ))
        return mappings

    def get_target_scope(self, target_name: str) -> str:
        """Target scope is an array property that sysfs does not expose.

        Raises:
            MultipathError: Always
        """
        raise MultipathError(f"target scope of {target_name} is not available through sysfs")

    def report_target_portals(self, initiator_name: str, target_name: str) -> List[Tuple[str, int]]:
        """Return the distinct portals of every session logged in to ``target_name``.

        Raises:
            MultipathError: If no session to the target exists
        """
        portals: List[Tuple[str, int]] = []
        found = False
        for session in self.sysfs.list_directory(self.sysfs.ISCSI_SESSIONS):
            session_path = f"{self.sysfs.ISCSI_SESSIONS}/{session}"
            if self._read_optional(f"{session_path}/targetname") != target_name:
                continue
            if initiator_name and self._read_optional(f"{session_path}/initiatorname") not in ("", initiator_name):
                continue
            found = True

            prefix = f"{self.CONNECTION_PREFIX}{self._session_number(session)}:"
            for connection in self.sysfs.list_directory(self.sysfs.ISCSI_CONNECTIONS):
                if not connection.startswith(prefix):
                    continue
                connection_path = f"{self.sysfs.ISCSI_CONNECTIONS}/{connection}"
                address = self._read_optional(f"{connection_path}/persistent_address")
                port = self._read_optional(f"{connection_path}/persistent_port")
                if not address or not port.isdigit():
                    continue
                portal = (address, int(port))
                if portal not in portals:
                    portals.append(portal)

        if not found:
            raise MultipathError(f"No iSCSI session found for target {target_name}")
        return portals
