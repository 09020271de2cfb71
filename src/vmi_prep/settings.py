"""Runtime configuration from environment variables."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from vmi_prep import constants


class Settings(BaseSettings):
    """Runtime configuration from environment variables.

    All settings can be overridden via environment variables with VMI_PREP_ prefix.
    Example: VMI_PREP_OWNER_UID=1000
    """

    model_config = SettingsConfigDict(
        env_prefix="VMI_PREP_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Ownership target for guest-facing resources
    owner_uid: int = Field(default=constants.QEMU_UID, ge=0)
    owner_gid: int = Field(default=constants.QEMU_GID, ge=0)

    # Host disks
    host_disk_base_dir: Path = Path(constants.HOST_DISK_BASE_DIR)

    # SELinux
    selinux_context: str = constants.CONTAINER_FILE_SELINUX_CONTEXT
    getenforce_paths: tuple[Path, ...] = tuple(Path(p) for p in constants.GETENFORCE_PATHS)
    chcon_bin: Path = Path(constants.CHCON_BIN)
    selinux_timeout_seconds: float = Field(default=constants.SELINUX_COMMAND_TIMEOUT_SECONDS, gt=0)

    # Isolation lookup
    proc_root: Path = Path(constants.PROC_ROOT)
