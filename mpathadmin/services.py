"""
multipathd service control.

Starts the multipath daemon and asks a running daemon to reload
/etc/multipath.conf after the configuration has been rewritten.
"""

import logging

from .constants import MultipathConstants
from .exceptions import MultipathCommandError
from .utils import CommandRunner, run_command


class MultipathServiceManager:
    """Controls the multipathd service through systemctl and multipathd."""

    def __init__(self, runner: CommandRunner = run_command):
        self.runner = runner
        self.logger = logging.getLogger(__name__)

    def start_service(self, service: str = MultipathConstants.MULTIPATH_SERVICE) -> None:
        """Start ``service``; systemctl treats an already running unit as success.

        Raises:
            MultipathCommandError: If systemctl fails
        """
        try:
            self.runner(["systemctl", "start", service])
        except MultipathCommandError as e:
            self.logger.error("Failed to start %s service: %s", service, e)
            raise
        self.logger.info("Started %s service", service)

    def reconfigure(self) -> None:
        """Make the running daemon reload its configuration.

        Raises:
            MultipathCommandError: If the reconfigure command fails
        """
        try:
            self.runner(["multipathd", "reconfigure"])
        except MultipathCommandError as e:
            self.logger.error("Failed to reconfigure multipathd: %s", e)
            raise
        self.logger.info("multipathd reconfigured")
