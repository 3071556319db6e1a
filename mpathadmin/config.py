"""
Configuration data structures for multipath management.

This module defines the core data structures used to represent devices, iSCSI
targets, recommendations, live multipath maps and the multipath.conf section
tree, together with the related enums.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union


class ComplianceStatus(Enum):
    """Compliance verdict of a single configuration parameter."""

    RECOMMENDED = "recommended"
    NOT_RECOMMENDED = "not-recommended"


@dataclass(frozen=True)
class PortalRecord:
    """iSCSI target portal (IPv4 literal address and TCP port)."""

    address: str
    port: int


@dataclass
class TargetRecord:
    """iSCSI target serving a device.

    Attributes:
        name: Target IQN
        target_scope: Scope classification ("volume", "group") or "" if unknown
        target_portals: Ordered IPv4 portals of the target
        warnings: Enrichment failures that were swallowed while resolving
                  scope and portals; empty when the record is complete
    """

    name: str
    target_scope: str = ""
    target_portals: List[PortalRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.warnings


@dataclass
class DiskRecord:
    """Disk as reported by the platform disk enumerator."""

    serial_number: str
    number: int
    name: str
    path: str
    size: int = 0
    bus_type: str = ""
    is_offline: bool = False
    is_read_only: bool = False


@dataclass(frozen=True)
class DeviceRecord:
    """Multipath-managed block device returned to callers of enumeration.

    Built complete by enumerate_devices and immutable afterwards.
    """

    serial_number: str
    path_name: str = ""
    alt_full_path_name: str = ""
    size: int = 0
    bus_type: str = ""
    iscsi_target: Optional[TargetRecord] = None


@dataclass(frozen=True)
class ScsiAddress:
    """SCSI address of a block device (host:bus:target:lun)."""

    host: int
    bus: int
    target: int
    lun: int

    @classmethod
    def from_hctl(cls, hctl: str) -> "ScsiAddress":
        """Build an address from an "H:C:T:L" string.

        Raises:
            ValueError: If the string is not four colon separated integers
        """
        parts = hctl.strip().split(":")
        if len(parts) != 4:
            raise ValueError(f"invalid SCSI address '{hctl}'")
        host, bus, target, lun = (int(part) for part in parts)
        return cls(host=host, bus=bus, target=target, lun=lun)


@dataclass(frozen=True)
class TargetMapping:
    """One active iSCSI session mapping as reported by the initiator.

    ``os_host_number`` is set by initiators that give every session its own
    SCSI host (Linux); matching then also requires the host to agree.
    """

    target_name: str
    initiator_name: str
    os_bus_number: int
    os_target_number: int
    os_host_number: Optional[int] = None


@dataclass
class ParameterTemplate:
    """Recommended value of a single device-section parameter."""

    recommendation: str
    description: str = ""
    severity: str = "warning"


@dataclass
class RecommendationTemplate:
    """Recommended device-section parameters for one device type (vendor)."""

    device_type: str
    parameters: Dict[str, ParameterTemplate] = field(default_factory=dict)

    @classmethod
    def from_config_dict(cls, device_type: str, template_data: dict) -> "RecommendationTemplate":
        """Create a RecommendationTemplate from its JSON dictionary form.

        Args:
            device_type: Device type tag (e.g. "Nimble")
            template_data: Dict mapping parameter names to dicts with
                           'recommendation', 'description' and 'severity' keys

        Returns:
            RecommendationTemplate object
        """
        parameters = {}
        for name, param in template_data.items():
            parameters[name] = ParameterTemplate(
                recommendation=str(param["recommendation"]),
                description=param.get("description", ""),
                severity=param.get("severity", "warning"),
            )
        return cls(device_type=device_type, parameters=parameters)


@dataclass
class Recommendation:
    """Compliance verdict for one parameter."""

    id: str
    category: str
    level: str
    description: str
    parameter: str
    value: str
    recommendation: str
    compliant_status: ComplianceStatus
    device: str


@dataclass
class DeviceRecommendation:
    """Recommendations of a single device type, in template order."""

    device_type: str
    recommendations: List[Recommendation] = field(default_factory=list)


@dataclass
class Path:
    """One path (block device) of a multipath path group."""

    dev: str
    dev_t: str = ""
    checker_state: str = ""

    @classmethod
    def from_json(cls, data: dict) -> "Path":
        return cls(
            dev=data.get("dev", ""),
            dev_t=data.get("dev_t", ""),
            checker_state=data.get("chk_st", ""),
        )


@dataclass
class PathGroup:
    """A set of paths of equal priority under one multipath map."""

    selector: str = ""
    priority: int = 0
    dm_state: str = ""
    paths: List[Path] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: dict) -> "PathGroup":
        return cls(
            selector=data.get("selector", ""),
            priority=data.get("pri", 0),
            dm_state=data.get("dm_st", ""),
            paths=[Path.from_json(path) for path in data.get("paths", [])],
        )


@dataclass
class MultipathDevice:
    """Snapshot of a live multipath map as reported by multipathd.

    Example (one entry of ``multipathd show multipaths json``):
        {"name": "mpatha", "uuid": "2a1b...", "sysfs": "dm-0",
         "vend": "Nimble", "prod": "Server", "paths": 2, "path_faults": 0,
         "path_groups": [{"paths": [{"dev": "sdb"}, {"dev": "sdc"}]}]}
    """

    name: str
    uuid: str = ""
    sysfs: str = ""
    vendor: str = ""
    product: str = ""
    paths: int = 0
    path_faults: int = 0
    path_groups: List[PathGroup] = field(default_factory=list)
    is_unhealthy: bool = False

    @classmethod
    def from_json(cls, data: dict) -> "MultipathDevice":
        """Create a MultipathDevice from one multipathd JSON map entry.

        Raises:
            KeyError: If the entry has no name
            AttributeError, TypeError, ValueError: If fields have the wrong type
        """
        device = cls(
            name=data["name"],
            uuid=data.get("uuid", ""),
            sysfs=data.get("sysfs", ""),
            vendor=(data.get("vend") or "").strip(),
            product=(data.get("prod") or "").strip(),
            paths=int(data.get("paths", 0)),
            path_faults=int(data.get("path_faults", 0)),
            path_groups=[PathGroup.from_json(group) for group in data.get("path_groups", [])],
        )
        device.is_unhealthy = device.paths < 1 and device.path_faults > 0
        return device

    @property
    def block_devices(self) -> List[str]:
        """Block device names of every path, in path group order."""
        return [path.dev for group in self.path_groups for path in group.paths if path.dev]


PropertyValue = Union[str, List[str]]


@dataclass
class ConfigSection:
    """A named block of multipath.conf.

    Example:
        devices {
            device {
                vendor "Nimble"
                product "Server"
            }
        }

    Properties keep file order. A key that appears more than once in a block
    (e.g. several ``wwid`` lines in ``blacklist_exceptions``) holds a list of
    its values.
    """

    name: str
    properties: Dict[str, PropertyValue] = field(default_factory=dict)
    children: List["ConfigSection"] = field(default_factory=list)

    def add_property(self, key: str, value: str) -> None:
        """Add a property read from a file, keeping repeated keys."""
        if key in self.properties:
            existing = self.properties[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                self.properties[key] = [existing, value]
        else:
            self.properties[key] = value

    def get_property(self, key: str, default: str = "") -> str:
        """Return the (first) value of a property with surrounding quotes stripped."""
        value = self.properties.get(key)
        if value is None:
            return default
        if isinstance(value, list):
            value = value[0]
        return value.strip().strip('"')

    def find_children(self, name: str) -> List["ConfigSection"]:
        return [child for child in self.children if child.name == name]

    def find_child(self, name: str) -> Optional["ConfigSection"]:
        for child in self.children:
            if child.name == name:
                return child
        return None

    def add_child(self, name: str) -> "ConfigSection":
        section = ConfigSection(name=name)
        self.children.append(section)
        return section


@dataclass
class MultipathConfig:
    """Parsed multipath.conf as a tree of sections under an unnamed root."""

    root: ConfigSection = field(default_factory=lambda: ConfigSection(name=""))

    def get_section(self, name: str, parent: Optional[ConfigSection] = None) -> Optional[ConfigSection]:
        """Return the first section called ``name`` directly under ``parent`` (root by default)."""
        return (parent or self.root).find_child(name)

    def add_section(self, name: str, parent: Optional[ConfigSection] = None) -> ConfigSection:
        return (parent or self.root).add_child(name)

    def get_or_add_section(self, name: str, parent: Optional[ConfigSection] = None) -> ConfigSection:
        section = self.get_section(name, parent)
        if section is None:
            section = self.add_section(name, parent)
        return section

    def get_device_section(self, vendor: str) -> Optional[ConfigSection]:
        """Return the devices/device section whose vendor property equals ``vendor``."""
        for devices in self.root.find_children("devices"):
            for device in devices.find_children("device"):
                if device.get_property("vendor") == vendor:
                    return device
        return None
