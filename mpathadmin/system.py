"""
Host system facts used by multipath policy decisions.

- Distribution family and major version (from /etc/os-release), used to pick
  the multipath.conf seed template
- Whether the host is a virtual machine (from the DMI identification strings)
- Whether the guest iSCSI initiator is configured
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .constants import MultipathConstants
from .exceptions import MultipathError


@dataclass
class OsInfo:
    """Subset of /etc/os-release relevant to template selection."""

    id: str = ""
    version_id: str = ""
    family: str = ""
    major: Optional[int] = None


def lookup_template(family: str, major: Optional[int]) -> str:
    """Return the seed template file name for a distribution family and major version."""
    for table_family, min_major, max_major, template in MultipathConstants.TEMPLATE_TABLE:
        if family != table_family or major is None:
            continue
        if min_major is not None and major < min_major:
            continue
        if max_major is not None and major > max_major:
            continue
        return template
    return MultipathConstants.TEMPLATE_GENERIC


class HostSystem:
    """Reads host facts from /etc and /sys.

    Args:
        os_release: os-release file
        dmi_path: DMI identification directory
        initiator_name_file: open-iscsi initiator name file
    """

    DMI_ATTRIBUTES = ("sys_vendor", "product_name")

    def __init__(self, os_release: str = MultipathConstants.OS_RELEASE,
                 dmi_path: str = MultipathConstants.DMI_ID_PATH,
                 initiator_name_file: str = MultipathConstants.ISCSI_INITIATOR_NAME):
        self.os_release = os_release
        self.dmi_path = dmi_path
        self.initiator_name_file = initiator_name_file
        self.logger = logging.getLogger(__name__)

    def get_os_info(self) -> OsInfo:
        """Parse the os-release file; missing keys are left empty.

        Raises:
            MultipathError: If the file cannot be read
        """
        try:
            with open(self.os_release, 'r') as f:
                content = f.read()
        except OSError as e:
            raise MultipathError(f"Cannot read {self.os_release}: {e}")

        data = {}
        for line in content.splitlines():
            if "=" in line:
                key, value = line.split("=", 1)
                data[key.strip()] = value.strip().strip('"')

        os_id = data.get("ID", "").lower()
        version_id = data.get("VERSION_ID", "")
        try:
            major = int(version_id.split(".")[0])
        except ValueError:
            major = None

        info = OsInfo(
            id=os_id,
            version_id=version_id,
            family=MultipathConstants.DISTRO_FAMILIES.get(os_id, os_id),
            major=major,
        )
        self.logger.debug("Detected OS %s %s (family %s)", info.id, info.version_id, info.family)
        return info

    def is_virtual_machine(self) -> bool:
        """Check the DMI vendor and product strings for a known hypervisor.

        Raises:
            MultipathError: If none of the DMI attributes can be read
        """
        values = []
        for attribute in self.DMI_ATTRIBUTES:
            path = os.path.join(self.dmi_path, attribute)
            try:
                with open(path, 'r') as f:
                    values.append(f.read().strip().lower())
            except OSError as e:
                self.logger.debug("Cannot read %s: %s", path, e)

        if not values:
            raise MultipathError(f"Unable to determine if the host is a virtual machine: "
                                 f"no readable DMI attributes under {self.dmi_path}")

        for value in values:
            for identifier in MultipathConstants.VM_IDENTIFIERS:
                if identifier in value:
                    self.logger.debug("Host is a virtual machine (%s)", value)
                    return True
        return False

    def is_iscsi_enabled(self) -> bool:
        """True when the guest iSCSI initiator has a configured name."""
        return os.path.exists(self.initiator_name_file)

    def is_multipath_required(self) -> bool:
        """Multipath is not needed on a virtual machine without a guest iSCSI initiator.

        Raises:
            MultipathError: If virtual machine detection fails
        """
        if self.is_virtual_machine() and not self.is_iscsi_enabled():
            self.logger.info("Virtual machine without guest iSCSI, multipath is not required")
            return False
        return True
