#!/usr/bin/env python3
"""
Unit tests for multipathd service control.
"""

import pytest
from unittest.mock import Mock

from mpathadmin.exceptions import MultipathCommandError, MultipathErrorCode
from mpathadmin.services import MultipathServiceManager


class TestMultipathServiceManager:
    """Test service start and live reconfiguration."""

    def test_start_service(self, runner):
        MultipathServiceManager(runner).start_service()
        runner.assert_called_once_with(["systemctl", "start", "multipathd"])

    def test_start_named_service(self, runner):
        MultipathServiceManager(runner).start_service("iscsid")
        runner.assert_called_once_with(["systemctl", "start", "iscsid"])

    def test_reconfigure(self, runner):
        MultipathServiceManager(runner).reconfigure()
        runner.assert_called_once_with(["multipathd", "reconfigure"])

    def test_start_failure(self, caplog):
        runner = Mock(side_effect=MultipathCommandError(["systemctl", "start", "multipathd"], 5,
                                                        "Unit multipathd.service not found."))

        with pytest.raises(MultipathCommandError) as exc_info:
            MultipathServiceManager(runner).start_service()

        assert exc_info.value.code == MultipathErrorCode.COMMAND_FAILED
        assert exc_info.value.returncode == 5
        assert "Failed to start multipathd service" in caplog.text

    def test_reconfigure_failure(self):
        runner = Mock(side_effect=MultipathCommandError(["multipathd", "reconfigure"], 1, "timeout"))

        with pytest.raises(MultipathCommandError, match="timeout"):
            MultipathServiceManager(runner).reconfigure()
