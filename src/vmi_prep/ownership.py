"""Ownership-change primitive for guest-facing resources.

The guest process runs as an unprivileged user, so every device node and
disk image it opens must be owned by that user.  The preparer depends on the
OwnershipManager protocol; FileOwnershipManager is the real implementation.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from vmi_prep import constants
from vmi_prep._logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

logger = get_logger(__name__)


@runtime_checkable
class OwnershipManager(Protocol):
    def set_file_ownership(self, path: str | Path) -> None:
        """Align *path*'s owner with the unprivileged guest user.

        Raises:
            OSError: stat or chown failed
        """
        ...


class FileOwnershipManager:
    """chown-based ownership manager (idempotent: skips already-owned paths)."""

    def __init__(self, uid: int = constants.QEMU_UID, gid: int = constants.QEMU_GID) -> None:
        self.uid = uid
        self.gid = gid

    def set_file_ownership(self, path: str | Path) -> None:
        st = os.stat(path)
        if st.st_uid == self.uid and st.st_gid == self.gid:
            return
        os.chown(path, self.uid, self.gid)
        logger.debug(
            "Changed file ownership",
            extra={"path": str(path), "uid": self.uid, "gid": self.gid},
        )

    def __repr__(self) -> str:
        return f"FileOwnershipManager(uid={self.uid}, gid={self.gid})"
