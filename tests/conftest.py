"""
Pytest configuration and shared fixtures for pympathadmin tests.
"""

import pytest
import sys
from pathlib import Path

from unittest.mock import Mock

# Add the package to Python path for testing
test_dir = Path(__file__).parent
package_root = test_dir.parent
sys.path.insert(0, str(package_root))

from mpathadmin.cache import reset_target_type_cache  # noqa: E402
from mpathadmin.utils import CommandResult  # noqa: E402


@pytest.fixture(scope="session")
def project_root():
    """Path to the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def fixtures_dir():
    """Path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def clean_target_type_cache():
    """Every test starts with an empty process-wide target scope cache."""
    reset_target_type_cache()
    yield
    reset_target_type_cache()


@pytest.fixture
def make_result():
    """Factory for CommandResult objects returned by fake runners."""
    def _make(stdout="", stderr="", returncode=0):
        return CommandResult(stdout=stdout, stderr=stderr, returncode=returncode)
    return _make


@pytest.fixture
def runner(make_result):
    """Command runner mock that succeeds with empty output by default."""
    return Mock(return_value=make_result())


@pytest.fixture
def nimble_device_config():
    """multipath.conf with a partially compliant Nimble device section."""
    return """
    defaults {
        user_friendly_names yes
        find_multipaths yes
    }

    devices {
        device {
            vendor "Nimble"
            product "Server"
            path_grouping_policy group_by_prio
            prio "alua"
            hardware_handler "1 alua"
            path_selector "round-robin 0"
            no_path_retry 30
            failback immediate
        }
    }
    """


@pytest.fixture
def sample_multipath_config(fixtures_dir):
    """Text of the multipath.conf fixture with Nimble and 3PAR sections."""
    return (fixtures_dir / "multipath.conf").read_text()
