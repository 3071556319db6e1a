"""
Multipath Administration Package

A Python library for managing host-side multipath storage devices: multipath.conf
compliance and reconciliation, iSCSI target resolution and safe device teardown.
"""

from .mpathadmin import (
    MultipathAdmin,
    MultipathConfig,
    MultipathConfigParser,
    MultipathSysfs,
    RecommendationEngine,
    IscsiTargetResolver,
    DeviceTeardown,
    TeardownState,
    MultipathError,
    MultipathErrorCode,
    ComplianceStatus,
    MultipathConstants
)

__all__ = [
    'MultipathAdmin',
    'MultipathConfig',
    'MultipathConfigParser',
    'MultipathSysfs',
    'RecommendationEngine',
    'IscsiTargetResolver',
    'DeviceTeardown',
    'TeardownState',
    'MultipathError',
    'MultipathErrorCode',
    'ComplianceStatus',
    'MultipathConstants'
]
