"""Constants for vmi-prep filesystem layout and defaults."""

from typing import Final

# ============================================================================
# Ownership
# ============================================================================

QEMU_UID: Final[int] = 107
"""UID of the unprivileged qemu user the guest process runs as."""

QEMU_GID: Final[int] = 107
"""GID of the unprivileged qemu group."""

VFIO_CONTROL_MODE: Final[int] = 0o666
"""World read/write mode applied to /dev/vfio/vfio (the container node)."""

# ============================================================================
# SELinux
# ============================================================================

CONTAINER_FILE_SELINUX_CONTEXT: Final[str] = "system_u:object_r:container_file_t:s0"
"""Context applied to host-disk images so an unprivileged container can open them."""

GETENFORCE_PATHS: Final[tuple[str, ...]] = (
    "/usr/sbin/getenforce",
    "/usr/bin/getenforce",
    "/sbin/getenforce",
    "/bin/getenforce",
)
"""Candidate locations of getenforce, probed in order."""

CHCON_BIN: Final[str] = "/usr/bin/chcon"

SELINUX_COMMAND_TIMEOUT_SECONDS: Final[float] = 5.0
"""Upper bound for getenforce / chcon invocations."""

# ============================================================================
# Guest filesystem layout (relative to the isolation mount root)
# ============================================================================

HOST_DISK_BASE_DIR: Final[str] = "/var/run/kubevirt-private/vmi-disks"
"""Directory under which each host-disk volume gets a <volume-name>/ subdirectory."""

DEV_DIR: Final[str] = "dev"
VFIO_DIR: Final[str] = "vfio"
VFIO_CONTROL_NODE: Final[str] = "vfio"
SYSFS_NET_DIR: Final[tuple[str, ...]] = ("sys", "class", "net")
IFINDEX_FILE: Final[str] = "ifindex"
TAP_DEVICE_PREFIX: Final[str] = "tap"

# ============================================================================
# Isolation lookup
# ============================================================================

PROC_ROOT: Final[str] = "/proc"

QEMU_GUEST_NAME_PREFIX: Final[str] = "guest="
"""QEMU ``-name`` sub-option carrying the libvirt domain name (<namespace>_<name>)."""
