"""Path naming for host-disk volumes inside the guest's private disk directory.

Each host-disk volume is mounted at ``<base>/<volume-name>/`` and its image
keeps the basename of the declared node path.  Paths are absolute within the
guest namespace; callers re-root them under the isolation mount root.
"""

from pathlib import PurePosixPath

from vmi_prep import constants


def get_mounted_host_disk_dir(
    volume_name: str,
    base_dir: str | PurePosixPath = constants.HOST_DISK_BASE_DIR,
) -> PurePosixPath:
    return PurePosixPath(base_dir) / volume_name


def get_mounted_host_disk_path(
    volume_name: str,
    path: str,
    base_dir: str | PurePosixPath = constants.HOST_DISK_BASE_DIR,
) -> PurePosixPath:
    """Image path for *volume_name*, e.g. ``<base>/disk1/disk.img`` for ``/data/disk.img``."""
    return get_mounted_host_disk_dir(volume_name, base_dir) / PurePosixPath(path).name


def rebase(mount_root: str | PurePosixPath, path: PurePosixPath) -> str:
    """Address an absolute guest path through *mount_root*."""
    return str(PurePosixPath(mount_root) / path.relative_to(path.anchor))
