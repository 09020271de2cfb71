"""Exception hierarchy for vmi-prep.

All exceptions inherit from PrepError base class.

Hierarchy:
    PrepError (base)
    ├── AnnotationError            ← network annotation could not be serialized
    ├── IsolationError             ← guest mount namespace could not be resolved
    ├── SELinuxUnavailableError    ← SELinux tooling absent (benign, never surfaced by prepare)
    └── OwnershipPreparationError (non-root preparation base)
        ├── MissingVolumeStatusError ← PVC volume has no runtime status
        ├── HostDiskError            ← host-disk image/dir probe or ownership failed
        ├── RelabelError             ← chcon failed while SELinux enforcing
        └── TapDeviceError           ← interface index unreadable

Ownership primitive failures surface as the OSError raised by the filesystem,
and malformed interface indexes surface as ValueError; neither is wrapped.
"""

from __future__ import annotations

from typing import Any


class PrepError(Exception):
    """Base exception for all vmi-prep errors with structured context.

    Attributes:
        message: Human-readable error message
        context: Dictionary of structured error context for logging/debugging
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class AnnotationError(PrepError):
    """Network annotation pool could not be serialized to JSON.

    The offending pool is kept in ``context["pool"]`` for diagnosis.
    """


class IsolationError(PrepError):
    """Guest process (and therefore its mount root) could not be found."""


class SELinuxUnavailableError(PrepError):
    """SELinux tooling is missing or could not report a mode.

    Callers treat this as "no SELinux" rather than a failure.
    """


# =============================================================================
# Non-root preparation errors
# =============================================================================


class OwnershipPreparationError(PrepError):
    """Base for failures while aligning guest resource ownership."""


class MissingVolumeStatusError(OwnershipPreparationError):
    """A persistent-volume-claim volume has no VolumeStatus entry.

    Without the observed volume mode there is no way to tell a block device
    from a filesystem mount, so preparation stops.
    """

    def __init__(self, volume_name: str):
        super().__init__(f"missing status for volume {volume_name}", {"volume": volume_name})
        self.volume_name = volume_name


class HostDiskError(OwnershipPreparationError):
    """Host-disk image or directory could not be probed, re-owned or relabeled."""


class RelabelError(OwnershipPreparationError):
    """Relabeling a path with the container SELinux context failed.

    Attributes:
        path: Path that failed to relabel
    """

    def __init__(self, path: str, cause: BaseException):
        super().__init__(f"error relabeling {path}: {cause}", {"path": path})
        self.path = path


class TapDeviceError(OwnershipPreparationError):
    """Kernel interface index for a macvtap network could not be read."""
