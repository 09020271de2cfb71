"""Isolation lookup: locate the guest's mount namespace from the host.

The guest's devices and disks are reached through ``/proc/<pid>/root`` of
the QEMU process serving the instance.  ProcessIsolationDetector finds that
process with psutil by its libvirt domain name (``<namespace>_<name>``),
which QEMU carries as ``-name guest=<domain>,...``.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import psutil

from vmi_prep import constants
from vmi_prep._logging import get_logger
from vmi_prep.exceptions import IsolationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from vmi_prep.models import VirtualMachineInstance

logger = get_logger(__name__)


@runtime_checkable
class IsolationResult(Protocol):
    def mount_root(self) -> Path: ...


class IsolationDetector(Protocol):
    def detect(self, vmi: VirtualMachineInstance) -> IsolationResult:
        """Resolve the isolation result for *vmi*.

        Raises:
            IsolationError: guest process not found
        """
        ...


class StaticIsolationResult:
    """Isolation result for a mount root that is already known."""

    __slots__ = ("_root",)

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def mount_root(self) -> Path:
        return self._root

    def __repr__(self) -> str:
        return f"StaticIsolationResult({str(self._root)!r})"


class ProcessIsolationResult:
    """Isolation result of a running guest process."""

    __slots__ = ("_pid", "_proc_root")

    def __init__(self, pid: int, proc_root: str | Path = constants.PROC_ROOT) -> None:
        self._pid = pid
        self._proc_root = Path(proc_root)

    @property
    def pid(self) -> int:
        return self._pid

    def mount_root(self) -> Path:
        return self._proc_root / str(self._pid) / "root"

    def __repr__(self) -> str:
        return f"ProcessIsolationResult(pid={self._pid})"


def domain_name(vmi: VirtualMachineInstance) -> str:
    return f"{vmi.metadata.namespace}_{vmi.metadata.name}"


def cmdline_matches_domain(cmdline: Iterable[str], domain: str) -> bool:
    """True if a QEMU ``-name`` argument names *domain*."""
    wanted = f"{constants.QEMU_GUEST_NAME_PREFIX}{domain}"
    for arg in cmdline:
        if wanted in arg.split(","):
            return True
    return False


class ProcessIsolationDetector:
    """Find the guest's QEMU process by scanning the process table."""

    def __init__(self, proc_root: str | Path = constants.PROC_ROOT) -> None:
        self.proc_root = Path(proc_root)

    def detect(self, vmi: VirtualMachineInstance) -> ProcessIsolationResult:
        domain = domain_name(vmi)
        for proc in psutil.process_iter(["pid", "cmdline"]):
            cmdline = proc.info.get("cmdline") or []
            if cmdline_matches_domain(cmdline, domain):
                logger.debug("Found guest process", extra={"domain": domain, "pid": proc.info["pid"]})
                return ProcessIsolationResult(proc.info["pid"], self.proc_root)

        raise IsolationError(f"no running guest process for domain {domain}", {"domain": domain})
