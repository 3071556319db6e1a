"""
Multipath Administration Library

This module provides a Python interface for managing host-side multipath
storage: checking and reconciling /etc/multipath.conf against vendor
recommendations, resolving the iSCSI targets behind block devices, and
tearing multipath devices down safely.

Main Classes:
    MultipathAdmin: High-level administration interface
    MultipathConfigParser: multipath.conf parser and writer
    RecommendationEngine: Compliance verdicts for device sections
    IscsiTargetResolver: iSCSI target resolution with scope/portal caching
    DeviceTeardown: Unmount and flush state machine
    MultipathSysfs: Low-level sysfs interface

Exceptions:
    MultipathError: Base exception for multipath operations

Enums:
    ComplianceStatus: Verdict of a single parameter
    MultipathErrorCode: Error classification codes
    TeardownState: Progress of a device teardown
"""

from .constants import MultipathConstants
from .exceptions import (MultipathError, MultipathErrorCode, MultipathNotFoundError, MultipathCommandError,
                         MultipathMalformedOutputError)
from .config import (ComplianceStatus, DeviceRecord, DiskRecord, TargetRecord, PortalRecord, TargetMapping,
                     Recommendation, DeviceRecommendation, MultipathDevice, MultipathConfig)
from .sysfs import MultipathSysfs
from .parser import MultipathConfigParser
from .cache import TargetTypeCache, get_target_type_cache
from .iscsi import IscsiInitiator, IscsiTargetResolver, enumerate_devices
from .readers import MultipathDeviceReader, MountReader, SysfsIscsiInitiator
from .recommendations import RecommendationEngine
from .teardown import DeviceTeardown, TeardownState
from .admin import MultipathAdmin

__all__ = [
    'MultipathAdmin',
    'MultipathConfig',
    'MultipathConfigParser',
    'MultipathSysfs',
    'RecommendationEngine',
    'IscsiInitiator',
    'IscsiTargetResolver',
    'enumerate_devices',
    'TargetTypeCache',
    'get_target_type_cache',
    'MultipathDeviceReader',
    'MountReader',
    'SysfsIscsiInitiator',
    'DeviceTeardown',
    'TeardownState',
    'MultipathError',
    'MultipathErrorCode',
    'MultipathNotFoundError',
    'MultipathCommandError',
    'MultipathMalformedOutputError',
    'ComplianceStatus',
    'MultipathConstants',
    'DeviceRecord',
    'DiskRecord',
    'TargetRecord',
    'PortalRecord',
    'TargetMapping',
    'Recommendation',
    'DeviceRecommendation',
    'MultipathDevice'
]
