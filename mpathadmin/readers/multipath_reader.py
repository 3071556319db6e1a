"""
Multipath Device Reader

Reads the live multipath maps from multipathd and turns them into
MultipathDevice snapshots. Only maps from supported storage vendors are
returned.
"""

import json
import logging
from typing import List, Optional, Sequence

from ..config import MultipathDevice
from ..constants import MultipathConstants
from ..exceptions import MultipathMalformedOutputError
from ..utils import CommandRunner, run_command


class MultipathDeviceReader:
    """Reads multipath maps via ``multipathd show multipaths json``."""

    SHOW_MULTIPATHS_CMD = ["multipathd", "show", "multipaths", "json"]

    def __init__(self, runner: CommandRunner = run_command,
                 supported_vendors: Optional[Sequence[str]] = None):
        self.runner = runner
        self.supported_vendors = tuple(supported_vendors or MultipathConstants.SUPPORTED_VENDORS)
        self.logger = logging.getLogger(__name__)

    def is_supported_vendor(self, vendor: str) -> bool:
        return vendor in self.supported_vendors

    def parse_multipaths(self, output: str) -> List[MultipathDevice]:
        """Parse multipathd JSON output into MultipathDevice objects.

        Args:
            output: Raw JSON text ``{"maps": [...]}``

        Returns:
            Devices of supported vendors, in multipathd order

        Raises:
            MultipathMalformedOutputError: On empty output, invalid JSON or
                                           malformed map entries
        """
        if not output or not output.strip():
            raise MultipathMalformedOutputError("Invalid multipathd command output received")

        try:
            data = json.loads(output)
        except ValueError as e:
            raise MultipathMalformedOutputError(f"Invalid JSON output of multipathd command: {e}")

        if not isinstance(data, dict):
            raise MultipathMalformedOutputError("Invalid JSON output of multipathd command: expected an object")

        devices = []
        for entry in data.get("maps") or []:
            vendor = str(entry.get("vend", "")).strip() if isinstance(entry, dict) else ""
            if not vendor or not self.is_supported_vendor(vendor):
                continue
            try:
                device = MultipathDevice.from_json(entry)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise MultipathMalformedOutputError(f"Invalid multipath map entry in multipathd output: {e}")
            self.logger.debug("Multipath device: %s", device.name)
            devices.append(device)

        self.logger.info("Found %d multipath devices", len(devices))
        return devices

    def get_multipath_devices(self) -> List[MultipathDevice]:
        """Return the live multipath maps of supported vendors.

        Raises:
            MultipathCommandError: If multipathd cannot be queried
            MultipathMalformedOutputError: If its output cannot be parsed
        """
        result = self.runner(self.SHOW_MULTIPATHS_CMD)
        return self.parse_multipaths(result.stdout)

    def get_multipath_device(self, alias: str) -> Optional[MultipathDevice]:
        """Return the live map called ``alias``, or None."""
        for device in self.get_multipath_devices():
            if device.name == alias:
                return device
        return None
