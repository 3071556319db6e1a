"""
Mount Table and Process Listing Reader

Parses the output of ``mount`` to find where a multipath device is mounted and
the output of ``fuser -mv`` to find the processes holding a mount point or a
device open.
"""

import logging
from typing import List

from ..constants import MultipathConstants
from ..utils import CommandRunner, run_command


class MountReader:
    """Reads mount points and holding processes of multipath devices."""

    MOUNT_CMD = ["mount"]

    def __init__(self, runner: CommandRunner = run_command):
        self.runner = runner
        self.logger = logging.getLogger(__name__)

    def parse_mount_points(self, output: str, alias: str) -> List[str]:
        """Return the mount points whose device column contains ``alias``.

        Both formats are accepted:
            /dev/mapper/mpatha on /data type ext4 (rw,relatime)    (mount)
            /dev/mapper/mpatha /data ext4 rw 0 0                   (/proc/mounts)

        Lines with fewer than four fields are ignored.
        """
        mount_points = []
        for line in output.splitlines():
            entry = line.split()
            if len(entry) <= 3:
                continue
            if alias not in entry[0]:
                continue
            mount_point = entry[2] if entry[1] == "on" else entry[1]
            self.logger.debug("%s was found mounted on %s", alias, mount_point)
            mount_points.append(mount_point)
        return mount_points

    def read_mount_points(self, alias: str) -> List[str]:
        """Query the mount table for the mount points of ``alias``.

        Raises:
            MultipathCommandError: If the mount table cannot be read
        """
        result = self.runner(self.MOUNT_CMD)
        return self.parse_mount_points(result.stdout, alias)

    def parse_process_listing(self, output: str, target: str = "") -> List[int]:
        """Extract PIDs from ``fuser -mv`` output.

        Example:
                                 USER        PID ACCESS COMMAND
            /data:               root     kernel mount /data
                                 root       4242 ..c.. bash

        The header line and lines naming the kernel are skipped. The PID is the
        third field when the line starts with the mount point (more than four
        fields) and the second field otherwise (exactly four fields).
        Unparseable PIDs are logged and skipped.
        """
        pids = []
        lines = [line for line in output.splitlines() if line.strip()]
        for line in lines[1:]:
            if MultipathConstants.KERNEL_MARKER in line:
                continue
            fields = line.split()
            if len(fields) > 4:
                pid_str = fields[2]
            elif len(fields) == 4:
                pid_str = fields[1]
            else:
                continue
            try:
                pid = int(pid_str)
            except ValueError:
                self.logger.error("Error converting the PID '%s' of a process using %s", pid_str, target)
                continue
            if pid > 0:
                pids.append(pid)
        return pids

    def list_processes(self, target: str) -> List[int]:
        """Return the PIDs of processes using a mount point or device.

        fuser exits non-zero when nothing uses the target, so an unsuccessful
        exit with no listing is reported as an empty list.
        """
        result = self.runner(["fuser", "-mv", target], check=False)
        output = result.output
        if not output.strip():
            self.logger.debug("No process is using %s", target)
            return []
        return self.parse_process_listing(output, target)
