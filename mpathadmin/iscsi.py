"""
iSCSI target resolution for multipath devices.

This module maps a block device back to the iSCSI target it was discovered
through. The SCSI address of the device is matched against the active session
mappings of the initiator, then the target record is enriched with the target
scope (cached process-wide) and the target portals (cached per enumeration pass).

Scope and portal enrichment is informational: any failure there is logged and
recorded on the returned TargetRecord but never makes the device unusable.
"""

import ipaddress
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

from .cache import TargetTypeCache, get_target_type_cache
from .config import DeviceRecord, DiskRecord, PortalRecord, ScsiAddress, TargetMapping, TargetRecord
from .constants import MultipathConstants
from .exceptions import MultipathError, MultipathNotFoundError

PortalCache = Dict[str, List[PortalRecord]]


class IscsiInitiator(ABC):
    """Interface to the host iSCSI initiator.

    Implementations wrap the platform specific APIs; see
    readers.iscsi_reader.SysfsIscsiInitiator for the Linux sysfs one.
    """

    @abstractmethod
    def get_scsi_address(self, device_path_id: str) -> ScsiAddress:
        """Return the SCSI address of a device path."""

    @abstractmethod
    def report_target_mappings(self) -> List[TargetMapping]:
        """Return the active iSCSI session mappings."""

    @abstractmethod
    def get_target_scope(self, target_name: str) -> str:
        """Return the scope of a target ("volume", "group") or "" if unknown."""

    @abstractmethod
    def report_target_portals(self, initiator_name: str, target_name: str) -> List[Tuple[str, int]]:
        """Return the (address, port) portals of a target as seen by an initiator."""


def filter_ipv4_portals(portals: Sequence[Tuple[str, int]]) -> List[PortalRecord]:
    """Keep only portals whose address is an IPv4 literal, in their original order."""
    records = []
    for address, port in portals:
        try:
            parsed = ipaddress.ip_address(address)
        except ValueError:
            continue
        if isinstance(parsed, ipaddress.IPv4Address):
            records.append(PortalRecord(address=address, port=int(port)))
    return records


def find_target_mapping(target_mappings: Sequence[TargetMapping],
                        address: ScsiAddress) -> Optional[TargetMapping]:
    """Return the first mapping whose (target id, bus id) equals the device address.

    There is one session per bus address, so the first match is the only one.
    """
    for mapping in target_mappings:
        if mapping.os_target_number != address.target or mapping.os_bus_number != address.bus:
            continue
        if mapping.os_host_number is not None and mapping.os_host_number != address.host:
            continue
        return mapping
    return None


class IscsiTargetResolver:
    """Resolves the iSCSI target record of a device.

    Args:
        initiator: IscsiInitiator used for live queries
        target_cache: Target scope cache (the process-wide one by default)
    """

    NOT_FOUND_MESSAGE = "unable to locate iSCSI target"

    def __init__(self, initiator: IscsiInitiator, target_cache: Optional[TargetTypeCache] = None):
        self.initiator = initiator
        self.target_cache = target_cache if target_cache is not None else get_target_type_cache()
        self.logger = logging.getLogger(__name__)

    def resolve_target(self, device_path_id: str, target_mappings: Sequence[TargetMapping],
                       portal_cache: PortalCache) -> TargetRecord:
        """Build the TargetRecord of the device at ``device_path_id``.

        Args:
            device_path_id: Device path understood by the initiator
            target_mappings: Active session mappings (from report_target_mappings)
            portal_cache: Per-call cache of target name to portals, shared by
                          all devices of one enumeration pass

        Returns:
            TargetRecord; scope and portals may be empty if enrichment failed

        Raises:
            MultipathError: If the SCSI address of the device cannot be read
            MultipathNotFoundError: If no session mapping matches the device
        """
        self.logger.debug("Resolving iSCSI target of %s", device_path_id)

        # Failure to read the address is fatal to the call
        address = self.initiator.get_scsi_address(device_path_id)

        mapping = find_target_mapping(target_mappings, address)
        if mapping is None:
            self.logger.error("%s for device %s (address %s)", self.NOT_FOUND_MESSAGE, device_path_id, address)
            raise MultipathNotFoundError(f"{self.NOT_FOUND_MESSAGE} for device {device_path_id}")

        target = TargetRecord(name=mapping.target_name)
        target.target_scope = self._resolve_scope(target)
        target.target_portals = self._resolve_portals(target, mapping, portal_cache)
        return target

    def _resolve_scope(self, target: TargetRecord) -> str:
        scope = self.target_cache.get_scope(target.name)
        if scope:
            return scope
        try:
            scope = self.initiator.get_target_scope(target.name) or ""
        except Exception as e:
            self.logger.warning("Unable to determine the scope of target %s: %s", target.name, e)
            target.warnings.append(f"target scope: {e}")
            return ""
        if scope:
            self.target_cache.set_scope(target.name, scope)
        return scope

    def _resolve_portals(self, target: TargetRecord, mapping: TargetMapping,
                         portal_cache: PortalCache) -> List[PortalRecord]:
        portals = portal_cache.get(target.name)
        if portals is not None:
            return portals
        try:
            portals = self.get_target_portals(mapping.initiator_name, target.name)
        except Exception as e:
            self.logger.warning("Unable to enumerate the portals of target %s: %s", target.name, e)
            target.warnings.append(f"target portals: {e}")
            return []
        portal_cache[target.name] = portals
        return portals

    def get_target_portals(self, initiator_name: str, target_name: str) -> List[PortalRecord]:
        """Query the IPv4 portals of a target.

        Raises:
            MultipathError: If the initiator query fails
        """
        self.logger.debug("Enumerating portals of %s via %s", target_name, initiator_name)
        return filter_ipv4_portals(self.initiator.report_target_portals(initiator_name, target_name))


def enumerate_devices(disks: Sequence[DiskRecord],
                      resolver: Optional[IscsiTargetResolver] = None) -> List[DeviceRecord]:
    """Build fully described DeviceRecords from enumerated disks.

    Session mappings are queried once, and only when at least one disk is on
    the iSCSI bus. A group scoped target can expose several LUNs, so the target
    portals are cached for the whole pass.

    Args:
        disks: Disks reported by the platform disk enumerator
        resolver: Target resolver; iSCSI disks are skipped without one

    Returns:
        DeviceRecord list in disk order
    """
    logger = logging.getLogger(__name__)

    target_mappings: List[TargetMapping] = []
    if resolver is not None and any(disk.bus_type == MultipathConstants.BUS_TYPE_ISCSI for disk in disks):
        try:
            target_mappings = resolver.initiator.report_target_mappings()
        except MultipathError as e:
            logger.error("Unable to enumerate iSCSI target mappings: %s", e)

    portal_cache: PortalCache = {}
    devices = []
    for index, disk in enumerate(disks):
        iscsi_target = None
        if disk.bus_type == MultipathConstants.BUS_TYPE_ISCSI:
            if resolver is None:
                logger.error("No iSCSI resolver provided, skipping iSCSI device, Number=%s, Path=%s",
                             disk.number, disk.path)
                continue
            try:
                iscsi_target = resolver.resolve_target(disk.path, target_mappings, portal_cache)
            except MultipathError as e:
                logger.warning("Unable to resolve the iSCSI target of %s: %s", disk.path, e)

        device = DeviceRecord(
            serial_number=disk.serial_number,
            path_name=disk.name,
            alt_full_path_name=disk.path,
            size=disk.size,
            bus_type=disk.bus_type,
            iscsi_target=iscsi_target,
        )

        logger.info("Device %s, SerialNumber=%s, Pathname=%s, BusType=%s, Size=%s, IsOffline=%s, IsReadOnly=%s",
                    index, device.serial_number, device.path_name, disk.bus_type, device.size,
                    disk.is_offline, disk.is_read_only)
        if device.iscsi_target is not None:
            logger.info("    IQN   - %s", device.iscsi_target.name)
            logger.info("    Scope - %s", device.iscsi_target.target_scope)
            for portal in device.iscsi_target.target_portals:
                logger.info("    Port  - %s:%s", portal.address, portal.port)

        devices.append(device)

    return devices
