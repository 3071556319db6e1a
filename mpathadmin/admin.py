"""
High-level multipath administration interface.

This module provides the MultipathAdmin class, the main entry point of the
library. It combines the recommendation engine, the configuration parser, the
multipathd readers and the teardown state machine into the host-level
operations: reconciling /etc/multipath.conf, listing multipath devices,
resolving their iSCSI targets and tearing them down.
"""

import logging
import os
import shutil
from typing import List, Optional, Sequence

from .config import DeviceRecommendation, DeviceRecord, DiskRecord, MultipathDevice, Recommendation, \
    RecommendationTemplate
from .constants import MultipathConstants
from .exceptions import MultipathError
from .iscsi import IscsiInitiator, IscsiTargetResolver, enumerate_devices
from .parser import MultipathConfigParser
from .readers import MountReader, MultipathDeviceReader, SysfsIscsiInitiator
from .recommendations import RecommendationEngine
from .services import MultipathServiceManager
from .sysfs import MultipathSysfs
from .system import HostSystem, lookup_template
from .teardown import DeviceTeardown, TeardownState, remove_block_devices_of_multipath_device
from .utils import CommandRunner, run_command


class MultipathAdmin:
    """Main multipath administration interface.

    Key capabilities:
    - Compliance check of multipath.conf against the vendor recommendations
    - Seeding and reconciling multipath.conf, then reloading multipathd
    - Listing the multipath maps of supported vendors
    - Resolving the iSCSI targets behind enumerated disks
    - Unmount, flush and block device removal of a multipath device

    Args:
        config_file: multipath.conf location
        log_level: Level of the library logger (default: "WARNING")
        runner: Command runner used for every external tool
        sysfs: Sysfs interface
        host: Host facts provider
        templates: Recommendation templates (packaged ones by default)
        initiator: iSCSI initiator (sysfs based by default)
    """

    def __init__(self, config_file: str = MultipathConstants.MULTIPATH_CONF, log_level: str = "WARNING",
                 runner: CommandRunner = run_command, sysfs: Optional[MultipathSysfs] = None,
                 host: Optional[HostSystem] = None,
                 templates: Optional[Sequence[RecommendationTemplate]] = None,
                 initiator: Optional[IscsiInitiator] = None):
        self.config_file = config_file
        self.runner = runner
        self.sysfs = sysfs or MultipathSysfs()
        self.host = host or HostSystem()
        self.parser = MultipathConfigParser()
        self.engine = RecommendationEngine(templates)
        self.services = MultipathServiceManager(runner)
        self.device_reader = MultipathDeviceReader(runner)
        self.mount_reader = MountReader(runner)
        self.initiator = initiator or SysfsIscsiInitiator(self.sysfs)

        # Library logger; never configures the calling application's handlers
        self.logger = logging.getLogger('mpathadmin')
        self.logger.setLevel(getattr(logging, log_level.upper(), logging.WARNING))

        if not self.logger.handlers:
            self.logger.addHandler(logging.NullHandler())

    def get_template_file(self) -> str:
        """Return the path of the seed multipath.conf for this distribution.

        Raises:
            MultipathError: If /etc/os-release cannot be read
        """
        info = self.host.get_os_info()
        template = lookup_template(info.family, info.major)
        self.logger.debug("Using template %s for %s %s", template, info.id, info.version_id)
        return os.path.join(MultipathConstants.TEMPLATE_DIR, template)

    def is_multipath_required(self) -> bool:
        return self.host.is_multipath_required()

    def _read_config_text(self) -> Optional[str]:
        if not os.path.exists(self.config_file):
            return None
        try:
            with open(self.config_file, 'r') as f:
                return f.read()
        except OSError as e:
            raise MultipathError(f"Cannot read config file {self.config_file}: {e}")

    def get_multipath_recommendations(self) -> List[DeviceRecommendation]:
        """Check multipath.conf against the recommendations of every device type.

        Returns an empty list when multipath is not required on this host. A
        missing config file or a missing device block yields a full set of
        NOT_RECOMMENDED verdicts.

        Returns:
            One DeviceRecommendation per device type, in template order

        Raises:
            MultipathError: If virtual machine detection or reading the config fails
        """
        if not self.is_multipath_required():
            self.logger.info("Multipath is not required, skipping recommendations")
            return []

        content = self._read_config_text()
        if content is None:
            self.logger.info("%s not found, computing recommendations against an empty device block",
                             self.config_file)

        results = []
        for template in self.engine.templates:
            device_block = self.engine.extract_device_block(content, template.device_type) if content else ""
            results.extend(self.engine.compute_recommendations(device_block, [template]))
        return results

    def set_multipath_recommendations(self, recommendations: Sequence[Recommendation], device_type: str) -> None:
        """Write the recommended values of ``device_type`` into multipath.conf.

        Raises:
            MultipathError: On parse or write failures
        """
        config = self.parser.parse_config_file(self.config_file)
        self.engine.apply_recommendations(config, recommendations, device_type)
        self.parser.save_config_file(config, self.config_file)
        self.logger.info("Applied %d %s recommendations to %s", len(recommendations), device_type,
                         self.config_file)

    def _seed_config_file(self) -> None:
        if os.path.exists(self.config_file) and os.path.getsize(self.config_file) > 0:
            return
        template = self.get_template_file()
        self.logger.info("Seeding %s from %s", self.config_file, template)
        try:
            shutil.copyfile(template, self.config_file)
        except OSError as e:
            raise MultipathError(f"Cannot copy template {template} to {self.config_file}: {e}")

    def configure_multipath(self) -> None:
        """Reconcile multipath.conf with the recommendations and reload multipathd.

        Steps:
        1. Seed the config file from the distribution template if it is missing or empty
        2. Compute the recommendations (nothing to do when there are none)
        3. Apply them per device type
        4. Start multipathd and reconfigure it

        Raises:
            MultipathError: On any failure
        """
        self._seed_config_file()

        device_recommendations = self.get_multipath_recommendations()
        if not device_recommendations:
            self.logger.warning("No multipath recommendations to apply")
            return

        for device_recommendation in device_recommendations:
            self.set_multipath_recommendations(device_recommendation.recommendations,
                                               device_recommendation.device_type)

        self.services.start_service()
        self.services.reconfigure()

    @classmethod
    def configure(cls, config_file: str = MultipathConstants.MULTIPATH_CONF, log_level: str = "WARNING") -> None:
        """Reconcile a multipath.conf in a single call.

        Example:
            MultipathAdmin.configure('/etc/multipath.conf')
        """
        admin = cls(config_file=config_file, log_level=log_level)
        admin.configure_multipath()

    def get_multipath_devices(self) -> List[MultipathDevice]:
        return self.device_reader.get_multipath_devices()

    def enumerate_devices(self, disks: Sequence[DiskRecord]) -> List[DeviceRecord]:
        """Describe ``disks``, resolving the iSCSI target of iSCSI disks."""
        resolver = IscsiTargetResolver(self.initiator)
        return enumerate_devices(disks, resolver)

    def _teardown(self, alias: str) -> DeviceTeardown:
        return DeviceTeardown(alias, runner=self.runner, mount_reader=self.mount_reader)

    def unmount_multipath_device(self, alias: str) -> List[str]:
        """Unmount every mount point of ``alias``; returns the unmounted mount points."""
        return self._teardown(alias).unmount()

    def flush_multipath_device(self, alias: str) -> TeardownState:
        """Flush the map of ``alias``, forcing removal if needed."""
        return self._teardown(alias).flush()

    def remove_block_devices_of_multipath_device(self, device: MultipathDevice) -> List[str]:
        return remove_block_devices_of_multipath_device(device, self.sysfs)

    def teardown_multipath_device(self, device: MultipathDevice) -> TeardownState:
        """Unmount, flush, then remove the backing block devices of ``device``.

        Raises:
            MultipathError: On the first stage that fails
        """
        self.logger.info("Tearing down multipath device %s", device.name)
        state = self._teardown(device.name).run()
        self.remove_block_devices_of_multipath_device(device)
        return state
