"""Non-root preparation of guest resources.

A guest running as an unprivileged user cannot open the block devices, host
disk images, macvtap tap devices and VFIO groups that the node exposes in
its mount namespace.  NonRootPreparer re-owns (and, for host disks,
SELinux-relabels) each of them through the isolation mount root.

Stages run strictly in order and stop at the first failure:

    block-devices -> host-disks -> tap-devices -> vfio

Nothing is rolled back when a later stage fails; ownership changes are
idempotent and re-running prepare() is safe.

All adjusters take the *original* instance, i.e. before PVC volumes are
substituted by host disks, so that every declared PVC is still visible.
"""

from __future__ import annotations

import os
import re
from functools import partial
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from vmi_prep import constants, hostdisk
from vmi_prep._logging import get_logger
from vmi_prep.exceptions import (
    HostDiskError,
    MissingVolumeStatusError,
    RelabelError,
    SELinuxUnavailableError,
    TapDeviceError,
)
from vmi_prep.models import (
    HostDiskVolumeSource,
    KactusNetworkSource,
    MultusNetworkSource,
    PersistentVolumeClaimVolumeSource,
    PodNetworkSource,
    VolumeMode,
)
from vmi_prep.ownership import FileOwnershipManager
from vmi_prep.selinux import CommandSELinux
from vmi_prep.settings import Settings

if TYPE_CHECKING:
    from collections.abc import Callable

    from vmi_prep.isolation import IsolationDetector, IsolationResult
    from vmi_prep.models import VirtualMachineInstance
    from vmi_prep.ownership import OwnershipManager
    from vmi_prep.selinux import SELinuxFacility

    Adjuster = Callable[[VirtualMachineInstance, Path], None]

logger = get_logger(__name__)

# Optionally signed ASCII decimal; int() also takes "1_2" and non-ASCII digits.
_IFINDEX_PATTERN = re.compile(r"[+-]?[0-9]+")


# ============================================================================
# Block devices
# ============================================================================


def change_ownership_of_block_devices(
    vmi: VirtualMachineInstance,
    mount_root: Path,
    *,
    ownership: OwnershipManager,
) -> None:
    """Re-own ``/dev/<volume>`` for every PVC volume observed in block mode.

    Raises:
        MissingVolumeStatusError: PVC volume without a VolumeStatus entry
        OSError: ownership change failed
    """
    volume_modes: dict[str, VolumeMode | None] = {}
    for volume_status in vmi.status.volume_status:
        if volume_status.persistent_volume_claim_info is not None:
            volume_modes[volume_status.name] = volume_status.persistent_volume_claim_info.volume_mode

    for volume in vmi.spec.volumes:
        if not isinstance(volume.source, PersistentVolumeClaimVolumeSource):
            continue

        if volume.name not in volume_modes:
            raise MissingVolumeStatusError(volume.name)

        if volume_modes[volume.name] != VolumeMode.BLOCK:
            continue

        dev_path = mount_root / constants.DEV_DIR / volume.name
        ownership.set_file_ownership(dev_path)
        logger.debug("Prepared block device", extra={"volume": volume.name, "path": str(dev_path)})


# ============================================================================
# Host disks
# ============================================================================


def change_ownership_and_relabel(
    path: Path,
    *,
    ownership: OwnershipManager,
    selinux: SELinuxFacility,
    context: str = constants.CONTAINER_FILE_SELINUX_CONTEXT,
) -> None:
    """Re-own *path*, then relabel it if SELinux is enabled on the node.

    Missing SELinux tooling skips the relabel; a relabel failure in enforcing
    mode raises.

    Raises:
        OSError: ownership change failed
        RelabelError: relabel failed
    """
    ownership.set_file_ownership(path)

    try:
        handle, enabled = selinux.detect()
    except SELinuxUnavailableError as e:
        logger.debug("SELinux not available, skipping relabel", extra={"path": str(path), "reason": e.message})
        return
    if not enabled:
        return

    try:
        selinux.relabel(context, handle.is_permissive(), path)
    except Exception as e:
        raise RelabelError(str(path), e) from e


def change_ownership_of_host_disks(
    vmi: VirtualMachineInstance,
    mount_root: Path,
    *,
    ownership: OwnershipManager,
    selinux: SELinuxFacility,
    base_dir: str | PurePosixPath = constants.HOST_DISK_BASE_DIR,
    context: str = constants.CONTAINER_FILE_SELINUX_CONTEXT,
) -> None:
    """Re-own and relabel each host-disk image, or its directory when no image exists yet.

    Raises:
        HostDiskError: probe, ownership change or relabel failed
    """
    prepare_path = partial(change_ownership_and_relabel, ownership=ownership, selinux=selinux, context=context)

    for volume in vmi.spec.volumes:
        source = volume.source
        if not isinstance(source, HostDiskVolumeSource):
            continue

        disk_path = Path(hostdisk.rebase(mount_root, hostdisk.get_mounted_host_disk_path(volume.name, source.path, base_dir)))

        try:
            os.stat(disk_path)
        except FileNotFoundError:
            disk_dir = Path(hostdisk.rebase(mount_root, hostdisk.get_mounted_host_disk_dir(volume.name, base_dir)))
            try:
                prepare_path(disk_dir)
            except (OSError, RelabelError) as e:
                raise HostDiskError(
                    f"failed to change ownership of host-disk directory for volume {volume.name}: {e}",
                    {"volume": volume.name, "path": str(disk_dir)},
                ) from e
            logger.debug("Prepared host-disk directory", extra={"volume": volume.name, "path": str(disk_dir)})
            continue
        except OSError as e:
            raise HostDiskError(
                f"failed to determine whether host-disk image exists: {e}",
                {"volume": volume.name, "path": str(disk_path)},
            ) from e

        try:
            prepare_path(disk_path)
        except (OSError, RelabelError) as e:
            raise HostDiskError(
                f"failed to change ownership of host-disk image: {e}",
                {"volume": volume.name, "path": str(disk_path)},
            ) from e
        logger.debug("Prepared host-disk image", extra={"volume": volume.name, "path": str(disk_path)})


# ============================================================================
# Tap devices
# ============================================================================


def get_tap_devices(vmi: VirtualMachineInstance) -> list[str]:
    """Network identifiers whose interface uses a macvtap binding, in network order."""
    macvtap = {iface.name for iface in vmi.spec.domain.devices.interfaces if iface.is_macvtap}

    tap_devices: list[str] = []
    for network in vmi.spec.networks:
        if network.name not in macvtap:
            continue
        match network.source:
            case MultusNetworkSource(network_name=name) | KactusNetworkSource(network_name=name):
                tap_devices.append(name)
            case PodNetworkSource():
                pass
    return tap_devices


def read_interface_index(mount_root: Path, network: str) -> int:
    """Read the kernel ifindex of *network* from sysfs under *mount_root*.

    Raises:
        TapDeviceError: ifindex file unreadable
        ValueError: contents are not a non-negative integer
    """
    path = mount_root.joinpath(*constants.SYSFS_NET_DIR, network, constants.IFINDEX_FILE)
    try:
        raw = path.read_text()
    except OSError as e:
        raise TapDeviceError(f"failed to read if index: {e}", {"network": network, "path": str(path)}) from e

    text = raw.strip()
    if not _IFINDEX_PATTERN.fullmatch(text) or int(text) < 0:
        raise ValueError(f"invalid interface index {text!r} for {network}")
    return int(text)


def prepare_tap(
    vmi: VirtualMachineInstance,
    mount_root: Path,
    *,
    ownership: OwnershipManager,
) -> None:
    """Re-own ``/dev/tap<ifindex>`` for every macvtap-bound network.

    Raises:
        TapDeviceError: ifindex file unreadable
        ValueError: malformed ifindex
        OSError: ownership change failed
    """
    for tap in get_tap_devices(vmi):
        index = read_interface_index(mount_root, tap)
        tap_path = mount_root / constants.DEV_DIR / f"{constants.TAP_DEVICE_PREFIX}{index}"
        ownership.set_file_ownership(tap_path)
        logger.debug("Prepared tap device", extra={"network": tap, "path": str(tap_path)})


# ============================================================================
# VFIO
# ============================================================================


def prepare_vfio(
    vmi: VirtualMachineInstance,
    mount_root: Path,
    *,
    ownership: OwnershipManager,
) -> None:
    """Open up the VFIO container node and re-own every VFIO group.

    A missing ``/dev/vfio/vfio`` means no device passthrough: nothing to do.

    Raises:
        OSError: chmod, listing or ownership change failed
    """
    vfio_path = mount_root / constants.DEV_DIR / constants.VFIO_DIR
    try:
        os.chmod(vfio_path / constants.VFIO_CONTROL_NODE, constants.VFIO_CONTROL_MODE)
    except FileNotFoundError:
        return

    for group in sorted(os.listdir(vfio_path)):
        if group == constants.VFIO_CONTROL_NODE:
            continue
        ownership.set_file_ownership(vfio_path / group)
        logger.debug("Prepared VFIO group", extra={"group": group, "vmi": vmi.metadata.name})


# ============================================================================
# Orchestration
# ============================================================================


class NonRootPreparer:
    """Runs the ownership adjusters for one guest.

    Stateless between calls: concurrent prepare() calls for different guests
    are safe; calls for the same guest must be serialized by the caller.

    Example:
        >>> preparer = NonRootPreparer.from_settings(Settings())
        >>> preparer.prepare(vmi, StaticIsolationResult("/proc/4242/root"))
    """

    def __init__(
        self,
        ownership: OwnershipManager,
        selinux: SELinuxFacility,
        settings: Settings | None = None,
    ) -> None:
        self.ownership = ownership
        self.selinux = selinux
        self.settings = settings or Settings()

    @classmethod
    def from_settings(cls, settings: Settings) -> NonRootPreparer:
        return cls(
            FileOwnershipManager(settings.owner_uid, settings.owner_gid),
            CommandSELinux(settings.getenforce_paths, settings.chcon_bin, settings.selinux_timeout_seconds),
            settings,
        )

    def storage_stages(self) -> list[tuple[str, Adjuster]]:
        return [
            ("block-devices", partial(change_ownership_of_block_devices, ownership=self.ownership)),
            (
                "host-disks",
                partial(
                    change_ownership_of_host_disks,
                    ownership=self.ownership,
                    selinux=self.selinux,
                    base_dir=PurePosixPath(self.settings.host_disk_base_dir),
                    context=self.settings.selinux_context,
                ),
            ),
        ]

    def stages(self) -> list[tuple[str, Adjuster]]:
        return [
            *self.storage_stages(),
            ("tap-devices", partial(prepare_tap, ownership=self.ownership)),
            ("vfio", partial(prepare_vfio, ownership=self.ownership)),
        ]

    def _run(self, stages: list[tuple[str, Adjuster]], vmi: VirtualMachineInstance, res: IsolationResult) -> None:
        mount_root = Path(res.mount_root())
        for stage, adjuster in stages:
            try:
                adjuster(vmi, mount_root)
            except Exception as e:
                e.add_note(f"non-root preparation stage {stage!r} failed for {vmi.metadata.namespace}/{vmi.metadata.name}")
                logger.error(
                    "Non-root preparation failed",
                    extra={"stage": stage, "vmi": vmi.metadata.name, "mount_root": str(mount_root), "error": str(e)},
                )
                raise

    def prepare_storage(self, vmi: VirtualMachineInstance, res: IsolationResult) -> None:
        self._run(self.storage_stages(), vmi, res)

    def prepare(self, vmi: VirtualMachineInstance, res: IsolationResult) -> None:
        """Run every adjuster against *res*'s mount root, stopping at the first failure."""
        self._run(self.stages(), vmi, res)
        logger.debug("Non-root preparation complete", extra={"vmi": vmi.metadata.name})

    def setup(self, orig_vmi: VirtualMachineInstance, detector: IsolationDetector) -> IsolationResult:
        """Resolve the guest's isolation for *orig_vmi*, then prepare().

        Returns:
            The isolation result that was prepared

        Raises:
            IsolationError: guest not found
        """
        res = detector.detect(orig_vmi)
        self.prepare(orig_vmi, res)
        return res
