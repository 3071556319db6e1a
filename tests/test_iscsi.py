#!/usr/bin/env python3
"""
Unit tests for iSCSI target resolution.

Test Strategy:
- Mock the IscsiInitiator collaborator; run the real matching and caching logic
- First-match semantics of session mapping lookup
- Scope caching across calls and portal caching within one enumeration pass
- Enrichment failures degrade the record instead of failing the call
"""

import logging

import pytest
from unittest.mock import Mock

from mpathadmin.cache import TargetTypeCache
from mpathadmin.config import DiskRecord, PortalRecord, ScsiAddress, TargetMapping
from mpathadmin.exceptions import MultipathError, MultipathErrorCode, MultipathNotFoundError
from mpathadmin.iscsi import (IscsiInitiator, IscsiTargetResolver, enumerate_devices, filter_ipv4_portals,
                              find_target_mapping)

TARGET_A = "iqn.2007-11.com.nimblestorage:vol-a-v2b1c3d4e5f6a7b8.000000a1.c3a06c9c"
TARGET_B = "iqn.2007-11.com.nimblestorage:group-g1-g2b1c3d4e5f6a7b8"
INITIATOR = "iqn.1994-05.com.redhat:host01"


def make_initiator(address=ScsiAddress(3, 0, 0, 1), scope="volume", portals=None):
    initiator = Mock(spec=IscsiInitiator)
    initiator.get_scsi_address.return_value = address
    initiator.get_target_scope.return_value = scope
    initiator.report_target_portals.return_value = portals if portals is not None else [
        ("192.168.10.20", 3260),
        ("fe80::1", 3260),
        ("192.168.20.20", 3260),
    ]
    return initiator


def make_mappings():
    return [
        TargetMapping(target_name=TARGET_B, initiator_name=INITIATOR, os_bus_number=0, os_target_number=1),
        TargetMapping(target_name=TARGET_A, initiator_name=INITIATOR, os_bus_number=0, os_target_number=0),
        TargetMapping(target_name="iqn.duplicate", initiator_name=INITIATOR, os_bus_number=0, os_target_number=0),
    ]


class TestHelpers:
    """Test portal filtering and mapping lookup."""

    def test_filter_ipv4_portals_keeps_order(self):
        portals = [("10.0.0.2", 3260), ("::1", 3260), ("not-an-ip", 3260), ("10.0.0.1", "3261")]

        assert filter_ipv4_portals(portals) == [
            PortalRecord(address="10.0.0.2", port=3260),
            PortalRecord(address="10.0.0.1", port=3261),
        ]

    def test_first_matching_mapping_wins(self):
        mapping = find_target_mapping(make_mappings(), ScsiAddress(3, 0, 0, 1))
        assert mapping.target_name == TARGET_A

    def test_no_matching_mapping(self):
        assert find_target_mapping(make_mappings(), ScsiAddress(3, 1, 0, 1)) is None
        assert find_target_mapping([], ScsiAddress(3, 0, 0, 1)) is None

    def test_host_number_must_match_when_known(self):
        mappings = [
            TargetMapping(TARGET_B, INITIATOR, os_bus_number=0, os_target_number=0, os_host_number=2),
            TargetMapping(TARGET_A, INITIATOR, os_bus_number=0, os_target_number=0, os_host_number=3),
        ]
        assert find_target_mapping(mappings, ScsiAddress(3, 0, 0, 7)).target_name == TARGET_A
        assert find_target_mapping(mappings, ScsiAddress(4, 0, 0, 7)) is None


class TestIscsiTargetResolver:
    """Test resolve_target behavior."""

    def test_resolve_target(self):
        initiator = make_initiator()
        resolver = IscsiTargetResolver(initiator, TargetTypeCache())

        target = resolver.resolve_target("/dev/sdb", make_mappings(), {})

        assert target.name == TARGET_A
        assert target.target_scope == "volume"
        assert target.target_portals == [PortalRecord("192.168.10.20", 3260), PortalRecord("192.168.20.20", 3260)]
        assert target.is_complete
        initiator.report_target_portals.assert_called_once_with(INITIATOR, TARGET_A)

    def test_address_failure_propagates(self):
        initiator = make_initiator()
        initiator.get_scsi_address.side_effect = MultipathError("no such device")
        resolver = IscsiTargetResolver(initiator, TargetTypeCache())

        with pytest.raises(MultipathError, match="no such device"):
            resolver.resolve_target("/dev/sdz", make_mappings(), {})
        initiator.get_target_scope.assert_not_called()

    def test_no_mapping_raises_not_found(self):
        resolver = IscsiTargetResolver(make_initiator(address=ScsiAddress(3, 0, 9, 1)), TargetTypeCache())

        with pytest.raises(MultipathNotFoundError, match="unable to locate iSCSI target") as exc_info:
            resolver.resolve_target("/dev/sdb", make_mappings(), {})
        assert exc_info.value.code == MultipathErrorCode.NOT_FOUND

    def test_scope_served_from_cache(self):
        cache = TargetTypeCache(storage={TARGET_A: "group"})
        initiator = make_initiator()
        resolver = IscsiTargetResolver(initiator, cache)

        target = resolver.resolve_target("/dev/sdb", make_mappings(), {})

        assert target.target_scope == "group"
        initiator.get_target_scope.assert_not_called()

    def test_scope_cached_after_first_query(self):
        cache = TargetTypeCache()
        initiator = make_initiator()
        resolver = IscsiTargetResolver(initiator, cache)

        resolver.resolve_target("/dev/sdb", make_mappings(), {})
        resolver.resolve_target("/dev/sdb", make_mappings(), {})

        assert cache.get_scope(TARGET_A) == "volume"
        initiator.get_target_scope.assert_called_once_with(TARGET_A)

    def test_empty_scope_is_not_cached(self):
        cache = TargetTypeCache()
        resolver = IscsiTargetResolver(make_initiator(scope=""), cache)

        target = resolver.resolve_target("/dev/sdb", make_mappings(), {})

        assert target.target_scope == ""
        assert len(cache) == 0

    def test_scope_failure_is_swallowed(self, caplog):
        initiator = make_initiator()
        initiator.get_target_scope.side_effect = MultipathError("scope query failed")
        resolver = IscsiTargetResolver(initiator, TargetTypeCache())

        with caplog.at_level(logging.WARNING):
            target = resolver.resolve_target("/dev/sdb", make_mappings(), {})

        assert target.target_scope == ""
        assert len(target.target_portals) == 2
        assert not target.is_complete
        assert target.warnings == ["target scope: scope query failed"]
        assert "scope query failed" in caplog.text

    def test_portal_failure_is_swallowed(self):
        initiator = make_initiator()
        initiator.report_target_portals.side_effect = MultipathError("portal query failed")
        resolver = IscsiTargetResolver(initiator, TargetTypeCache())
        portal_cache = {}

        target = resolver.resolve_target("/dev/sdb", make_mappings(), portal_cache)

        assert target.target_portals == []
        assert target.target_scope == "volume"
        assert target.warnings == ["target portals: portal query failed"]
        assert TARGET_A not in portal_cache

    def test_initiator_os_error_on_scope_is_swallowed(self):
        initiator = make_initiator()
        initiator.get_target_scope.side_effect = OSError("ioctl failed")
        resolver = IscsiTargetResolver(initiator, TargetTypeCache())

        target = resolver.resolve_target("/dev/sdb", make_mappings(), {})

        assert target.name == TARGET_A
        assert target.target_scope == ""
        assert target.warnings == ["target scope: ioctl failed"]

    def test_non_numeric_portal_port_is_swallowed(self):
        resolver = IscsiTargetResolver(make_initiator(portals=[("10.0.0.1", "x")]), TargetTypeCache())
        portal_cache = {}

        target = resolver.resolve_target("/dev/sdb", make_mappings(), portal_cache)

        assert target.target_portals == []
        assert target.target_scope == "volume"
        assert len(target.warnings) == 1
        assert target.warnings[0].startswith("target portals: ")
        assert TARGET_A not in portal_cache

    def test_portals_served_from_call_cache(self):
        initiator = make_initiator()
        resolver = IscsiTargetResolver(initiator, TargetTypeCache())
        cached = [PortalRecord("10.1.1.1", 3260)]

        target = resolver.resolve_target("/dev/sdb", make_mappings(), {TARGET_A: cached})

        assert target.target_portals == cached
        initiator.report_target_portals.assert_not_called()

    def test_uses_process_wide_cache_by_default(self):
        from mpathadmin.cache import get_target_type_cache

        resolver = IscsiTargetResolver(make_initiator())
        resolver.resolve_target("/dev/sdb", make_mappings(), {})

        assert get_target_type_cache().get_scope(TARGET_A) == "volume"


class TestEnumerateDevices:
    """Test device enumeration over disk records."""

    def make_disks(self):
        return [
            DiskRecord(serial_number="SER-LOCAL", number=0, name="sda", path="/dev/sda", size=100, bus_type="sata"),
            DiskRecord(serial_number="SER-1", number=1, name="sdb", path="/dev/sdb", size=200, bus_type="iscsi"),
            DiskRecord(serial_number="SER-2", number=2, name="sdc", path="/dev/sdc", size=200, bus_type="iscsi"),
        ]

    def test_portals_fetched_once_per_pass(self):
        initiator = make_initiator()
        initiator.report_target_mappings.return_value = make_mappings()
        resolver = IscsiTargetResolver(initiator, TargetTypeCache())

        devices = enumerate_devices(self.make_disks(), resolver)

        assert [device.serial_number for device in devices] == ["SER-LOCAL", "SER-1", "SER-2"]
        assert devices[0].iscsi_target is None
        assert devices[1].iscsi_target.name == TARGET_A
        assert devices[2].iscsi_target.target_portals == devices[1].iscsi_target.target_portals
        initiator.report_target_mappings.assert_called_once_with()
        initiator.report_target_portals.assert_called_once_with(INITIATOR, TARGET_A)

    def test_enrichment_failure_does_not_abort_pass(self):
        initiator = make_initiator()
        initiator.report_target_mappings.return_value = make_mappings()
        initiator.report_target_portals.side_effect = OSError("connection reset")
        resolver = IscsiTargetResolver(initiator, TargetTypeCache())

        devices = enumerate_devices(self.make_disks(), resolver)

        assert len(devices) == 3
        assert devices[2].iscsi_target.name == TARGET_A
        assert devices[2].iscsi_target.warnings == ["target portals: connection reset"]

    def test_device_records_are_immutable(self):
        devices = enumerate_devices(self.make_disks()[:1])

        with pytest.raises(AttributeError):
            devices[0].size = 0

    def test_mappings_not_queried_without_iscsi_disks(self):
        initiator = make_initiator()
        resolver = IscsiTargetResolver(initiator, TargetTypeCache())

        devices = enumerate_devices(self.make_disks()[:1], resolver)

        assert len(devices) == 1
        initiator.report_target_mappings.assert_not_called()

    def test_iscsi_disks_skipped_without_resolver(self, caplog):
        devices = enumerate_devices(self.make_disks())

        assert [device.serial_number for device in devices] == ["SER-LOCAL"]
        assert "skipping iSCSI device" in caplog.text

    def test_unresolved_target_keeps_device(self):
        initiator = make_initiator()
        initiator.report_target_mappings.side_effect = MultipathError("iscsiadm failed")
        resolver = IscsiTargetResolver(initiator, TargetTypeCache())

        devices = enumerate_devices(self.make_disks(), resolver)

        assert len(devices) == 3
        assert devices[1].iscsi_target is None
        assert devices[1].alt_full_path_name == "/dev/sdb"
        assert devices[1].path_name == "sdb"
