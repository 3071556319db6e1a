"""
Constants for multipath configuration and operation.

This module contains the constants used throughout the multipath administration
library, including well-known paths, command names, vendor mappings and the
template selection table.
"""

import os


class MultipathConstants:
    """Constants for multipath configuration and operation."""

    # Well-known host paths
    MULTIPATH_CONF = "/etc/multipath.conf"
    OS_RELEASE = "/etc/os-release"
    ISCSI_INITIATOR_NAME = "/etc/iscsi/initiatorname.iscsi"
    DMI_ID_PATH = "/sys/class/dmi/id"
    DEV_MAPPER = "/dev/mapper"

    # Templates shipped with the package
    TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")
    RECOMMENDATION_TEMPLATE = "recommendations.json"
    TEMPLATE_GENERIC = "multipath.conf.generic"
    TEMPLATE_UPSTREAM = "multipath.conf.upstream"
    TEMPLATE_LEGACY = "multipath.conf.legacy"

    # Service control
    MULTIPATH_SERVICE = "multipathd"

    # Recommendation attributes
    CATEGORY_MULTIPATH = "multipath"
    SCOPE_DEVICE = "device"
    DEVICE_ALL = "all"
    FIND_MULTIPATHS = "find_multipaths"

    # Extracts "<name> <value>" from a single line of a device block
    PARAM_PATTERN = r"\s*(?P<name>.*?)\s+(?P<value>.*)"

    # Device type -> tag searched for inside the devices { device { ... } } block
    DEVICE_BLOCK_TAGS = {
        "Nimble": "Nimble",
        "3par": "3PAR",
    }

    # Device type -> value of the "vendor" property identifying its device section
    DEVICE_TYPE_VENDORS = {
        "Nimble": "Nimble",
        "3par": "3PARdata",
    }

    # Only multipath maps from these vendors are surfaced
    SUPPORTED_VENDORS = ("Nimble", "3PARdata")

    # Bus type reported for iSCSI disks by the disk enumerator
    BUS_TYPE_ISCSI = "iscsi"

    # Distro families and their os-release IDs
    DISTRO_FAMILIES = {
        "ubuntu": "ubuntu",
        "debian": "debian",
        "rhel": "redhat",
        "centos": "redhat",
        "rocky": "redhat",
        "almalinux": "redhat",
        "ol": "redhat",
        "fedora": "fedora",
        "sles": "suse",
        "opensuse-leap": "suse",
    }

    # (family, minimum major, maximum major) -> template file, first match wins
    TEMPLATE_TABLE = (
        ("ubuntu", 18, None, TEMPLATE_UPSTREAM),
        ("redhat", 8, None, TEMPLATE_UPSTREAM),
        ("redhat", None, 6, TEMPLATE_LEGACY),
    )

    # Hypervisor strings found in /sys/class/dmi/id/{sys_vendor,product_name}
    VM_IDENTIFIERS = (
        "vmware",
        "virtualbox",
        "kvm",
        "qemu",
        "xen",
        "bochs",
        "virtual machine",
        "openstack",
        "amazon ec2",
        "google compute engine",
    )

    # Process listing markers
    KERNEL_MARKER = "kernel"
