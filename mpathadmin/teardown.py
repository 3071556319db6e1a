"""
Multipath device teardown.

Tearing down a multipath device escalates through increasingly forceful steps:

    unmount every mount point
        -> on failure: SIGKILL the processes holding it, retry once
    multipath -f <alias>
        -> on failure: dump diagnostics, dmsetup remove -f <alias> once
    echo 1 > /sys/block/<dev>/device/delete for every path

DeviceTeardown tracks progress through TeardownState; every state change is
checked against TRANSITIONS.

Locking:
    MOUNT_DISCOVERY_LOCK       serializes reads of the mount table. It is a
                               leaf lock: never held together with another.
    UNMOUNT_LOCK               serializes unmounting. While holding it,
                               STALE_DEVICE_REMOVAL_LOCK may be taken.
    STALE_DEVICE_REMOVAL_LOCK  serializes killing of processes, map removal and
                               block device deletion. UNMOUNT_LOCK is never
                               taken while holding it.

None of the locks is re-entrant.
"""

import logging
import os
import signal
import threading
from enum import Enum
from typing import Callable, List, Optional

from .config import MultipathDevice
from .constants import MultipathConstants
from .exceptions import MultipathCommandError, MultipathError
from .readers.mount_reader import MountReader
from .sysfs import MultipathSysfs
from .utils import CommandRunner, run_command

MOUNT_DISCOVERY_LOCK = threading.Lock()
UNMOUNT_LOCK = threading.Lock()
STALE_DEVICE_REMOVAL_LOCK = threading.Lock()

logger = logging.getLogger(__name__)


class TeardownState(Enum):
    """Progress of a multipath device teardown."""

    ACTIVE = "active"
    UNMOUNTING = "unmounting"
    MOUNT_BUSY = "mount-busy"
    UNMOUNTED = "unmounted"
    FLUSHING = "flushing"
    FLUSH_FAILED = "flush-failed"
    FORCE_REMOVED = "force-removed"
    GONE = "gone"
    FAILED = "failed"


TRANSITIONS = {
    TeardownState.ACTIVE: {TeardownState.UNMOUNTING, TeardownState.UNMOUNTED,
                           TeardownState.FLUSHING, TeardownState.FAILED},
    TeardownState.UNMOUNTING: {TeardownState.MOUNT_BUSY, TeardownState.UNMOUNTED, TeardownState.FAILED},
    TeardownState.MOUNT_BUSY: {TeardownState.UNMOUNTING, TeardownState.FAILED},
    TeardownState.UNMOUNTED: {TeardownState.FLUSHING},
    TeardownState.FLUSHING: {TeardownState.GONE, TeardownState.FLUSH_FAILED},
    TeardownState.FLUSH_FAILED: {TeardownState.FORCE_REMOVED, TeardownState.FAILED},
    TeardownState.FORCE_REMOVED: set(),
    TeardownState.GONE: set(),
    TeardownState.FAILED: set(),
}

KillFunction = Callable[[int, int], None]


def find_mount_points_of_multipath_device(alias: str, reader: Optional[MountReader] = None) -> List[str]:
    """Return the mount points of ``alias`` (empty if it is not mounted).

    Raises:
        MultipathCommandError: If the mount table cannot be read
    """
    reader = reader or MountReader()
    with MOUNT_DISCOVERY_LOCK:
        return reader.read_mount_points(alias)


def kill_processes_using_mount_point(mount_point: str, reader: Optional[MountReader] = None,
                                     kill: KillFunction = os.kill) -> List[int]:
    """SIGKILL every process holding ``mount_point``.

    Returns:
        PIDs that were signalled

    Raises:
        MultipathError: If a process cannot be signalled
    """
    reader = reader or MountReader()
    killed = []
    with STALE_DEVICE_REMOVAL_LOCK:
        for pid in reader.list_processes(mount_point):
            logger.info("Killing process %s using %s", pid, mount_point)
            try:
                kill(pid, signal.SIGKILL)
            except ProcessLookupError:
                logger.debug("Process %s already exited", pid)
                continue
            except OSError as e:
                raise MultipathError(f"Unable to kill process {pid} using {mount_point}: {e}")
            killed.append(pid)
    return killed


def remove_block_devices_of_multipath_device(device: MultipathDevice,
                                             sysfs: Optional[MultipathSysfs] = None) -> List[str]:
    """Delete every path block device of ``device`` through sysfs, in path group order.

    Returns:
        Names of the removed block devices

    Raises:
        MultipathError: On the first device that cannot be removed
    """
    sysfs = sysfs or MultipathSysfs()
    removed = []
    with STALE_DEVICE_REMOVAL_LOCK:
        for block_device in device.block_devices:
            logger.debug("Removing block device %s of %s", block_device, device.name)
            try:
                sysfs.delete_block_device(block_device)
            except MultipathError as e:
                raise MultipathError(f"Failed to remove block device {block_device} "
                                     f"of multipath device {device.name}: {e}")
            removed.append(block_device)
    logger.info("Removed block devices %s of %s", removed, device.name)
    return removed


class DeviceTeardown:
    """Drives the unmount and flush of one multipath alias.

    Args:
        alias: Multipath alias (e.g. "mpatha")
        runner: Command runner
        mount_reader: Mount table and fuser reader
        kill: Signal sender, os.kill by default
    """

    def __init__(self, alias: str, runner: CommandRunner = run_command,
                 mount_reader: Optional[MountReader] = None, kill: KillFunction = os.kill):
        self.alias = alias
        self.runner = runner
        self.mount_reader = mount_reader or MountReader(runner)
        self.kill = kill
        self.state = TeardownState.ACTIVE
        self.history = [TeardownState.ACTIVE]
        self.kill_count = 0
        self.logger = logging.getLogger(__name__)

    @property
    def device_path(self) -> str:
        return f"{MultipathConstants.DEV_MAPPER}/{self.alias}"

    def _transition(self, new_state: TeardownState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise MultipathError(f"Invalid teardown transition for {self.alias}: "
                                 f"{self.state.value} -> {new_state.value}")
        self.logger.debug("%s: %s -> %s", self.alias, self.state.value, new_state.value)
        self.state = new_state
        self.history.append(new_state)

    def _umount(self, mount_point: str) -> None:
        self.runner(["umount", mount_point])

    def unmount(self) -> List[str]:
        """Unmount every mount point of the device.

        A busy mount point gets its holders killed and exactly one more
        unmount attempt.

        Returns:
            Mount points that were unmounted

        Raises:
            MultipathError: If a mount point is still busy after the retry
        """
        mount_points = find_mount_points_of_multipath_device(self.alias, self.mount_reader)
        if not mount_points:
            self.logger.debug("%s is not mounted", self.alias)
            self._transition(TeardownState.UNMOUNTED)
            return []

        with UNMOUNT_LOCK:
            self._transition(TeardownState.UNMOUNTING)
            for mount_point in mount_points:
                try:
                    self._umount(mount_point)
                except MultipathCommandError as e:
                    self.logger.warning("Unable to unmount %s of %s, killing processes using it: %s",
                                        mount_point, self.alias, e)
                    self._transition(TeardownState.MOUNT_BUSY)
                    self._kill_holders(mount_point)
                    self._transition(TeardownState.UNMOUNTING)
                    try:
                        self._umount(mount_point)
                    except MultipathCommandError as retry_error:
                        self._transition(TeardownState.FAILED)
                        raise MultipathError(f"Unable to unmount {mount_point} of multipath device "
                                             f"{self.alias}: {retry_error}")
                self.logger.info("Unmounted %s of %s", mount_point, self.alias)
            self._transition(TeardownState.UNMOUNTED)
        return mount_points

    def _kill_holders(self, mount_point: str) -> None:
        self.kill_count += 1
        try:
            killed = kill_processes_using_mount_point(mount_point, self.mount_reader, self.kill)
        except MultipathError as e:
            self.logger.error("Error killing processes using %s: %s", mount_point, e)
            self._transition(TeardownState.FAILED)
            raise MultipathError(f"Unable to kill the processes using mount point {mount_point} "
                                 f"of multipath device {self.alias}: {e}")
        self.logger.info("Killed %d processes using %s", len(killed), mount_point)

    def _dump_diagnostics(self) -> None:
        try:
            result = self.runner(["dmsetup", "info", self.alias], check=False)
            self.logger.error("dmsetup info %s:\n%s", self.alias, result.output)
        except MultipathError as e:
            self.logger.error("Unable to run dmsetup info for %s: %s", self.alias, e)
        try:
            pids = self.mount_reader.list_processes(self.device_path)
            self.logger.error("Processes using %s: %s", self.device_path, pids)
        except MultipathError as e:
            self.logger.error("Unable to list processes using %s: %s", self.device_path, e)

    def flush(self) -> TeardownState:
        """Remove the multipath map, forcing removal if a graceful flush fails.

        Returns:
            GONE after a graceful flush, FORCE_REMOVED after a forced removal

        Raises:
            MultipathError: Naming the alias and both causes when the forced
                            removal fails as well
        """
        with STALE_DEVICE_REMOVAL_LOCK:
            self._transition(TeardownState.FLUSHING)
            try:
                self.runner(["multipath", "-f", self.alias])
            except MultipathCommandError as flush_error:
                self.logger.error("Unable to flush multipath device %s: %s", self.alias, flush_error)
                self._transition(TeardownState.FLUSH_FAILED)
                self._dump_diagnostics()
                try:
                    self.runner(["dmsetup", "remove", "-f", self.alias])
                except MultipathCommandError as remove_error:
                    self._transition(TeardownState.FAILED)
                    raise MultipathError(f"Unable to remove multipath device {self.alias}: "
                                         f"flush failed ({flush_error}); "
                                         f"forced removal failed ({remove_error})")
                self._transition(TeardownState.FORCE_REMOVED)
                self.logger.info("Force removed multipath device %s", self.alias)
                return self.state

            self._transition(TeardownState.GONE)
        self.logger.info("Flushed multipath device %s", self.alias)
        return self.state

    def run(self) -> TeardownState:
        """Unmount, then flush.

        Raises:
            MultipathError: If either stage fails
        """
        self.unmount()
        return self.flush()
