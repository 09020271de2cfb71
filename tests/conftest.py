"""Shared pytest fixtures for vmi-prep tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import psutil
import pytest

from vmi_prep.exceptions import SELinuxUnavailableError
from vmi_prep.models import VirtualMachineInstance
from vmi_prep.selinux import SELinux

# ============================================================================
# Shared Skip Markers
# ============================================================================

skip_unless_linux = pytest.mark.skipif(
    not psutil.LINUX,
    reason="This test requires Linux (sysfs, /proc, chown semantics)",
)

# ============================================================================
# Capability fakes
# ============================================================================


class RecordingOwnershipManager:
    """OwnershipManager fake that records every path it is asked to re-own.

    Paths listed in ``fail_on`` raise the configured error instead.
    """

    def __init__(self, fail_on: set[Path] | None = None, error: OSError | None = None) -> None:
        self.calls: list[Path] = []
        self.fail_on = fail_on or set()
        self.error = error or PermissionError(1, "Operation not permitted")

    def set_file_ownership(self, path: str | Path) -> None:
        path = Path(path)
        if path in self.fail_on:
            raise self.error
        self.calls.append(path)


class FakeSELinux:
    """SELinuxFacility fake.

    mode=None simulates a node without SELinux tooling.
    """

    def __init__(self, mode: str | None = "enforcing", relabel_error: Exception | None = None) -> None:
        self.mode = mode
        self.relabel_error = relabel_error
        self.detect_calls = 0
        self.relabels: list[tuple[str, bool, Path]] = []

    def detect(self) -> tuple[SELinux, bool]:
        self.detect_calls += 1
        if self.mode is None:
            raise SELinuxUnavailableError("getenforce not found")
        handle = SELinux(self.mode)
        return handle, handle.enabled

    def relabel(self, context: str, permissive: bool, *paths: str | Path) -> None:
        if self.relabel_error is not None:
            raise self.relabel_error
        self.relabels.extend((context, permissive, Path(p)) for p in paths)


# ============================================================================
# Instance builders
# ============================================================================


def make_vmi(
    *,
    name: str = "testvmi",
    namespace: str = "default",
    networks: list[dict[str, Any]] | None = None,
    interfaces: list[dict[str, Any]] | None = None,
    volumes: list[dict[str, Any]] | None = None,
    volume_status: list[dict[str, Any]] | None = None,
) -> VirtualMachineInstance:
    """Build a VirtualMachineInstance from KubeVirt-shaped dicts."""
    return VirtualMachineInstance.model_validate(
        {
            "metadata": {"name": name, "namespace": namespace},
            "spec": {
                "domain": {"devices": {"interfaces": interfaces or []}},
                "networks": networks or [],
                "volumes": volumes or [],
            },
            "status": {"volumeStatus": volume_status or []},
        }
    )


def pvc_volume(name: str, claim: str | None = None) -> dict[str, Any]:
    return {"name": name, "persistentVolumeClaim": {"claimName": claim or f"{name}-pvc"}}


def pvc_status(name: str, mode: str | None) -> dict[str, Any]:
    info: dict[str, Any] = {} if mode is None else {"volumeMode": mode}
    return {"name": name, "persistentVolumeClaimInfo": info}


def host_disk_volume(name: str, path: str = "/data/disk.img") -> dict[str, Any]:
    return {"name": name, "hostDisk": {"path": path, "type": "DiskOrCreate", "capacity": "1Gi"}}


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def mount_root(tmp_path: Path) -> Path:
    """Empty directory standing in for /proc/<pid>/root of the guest."""
    root = tmp_path / "root"
    root.mkdir()
    return root


@pytest.fixture
def ownership() -> RecordingOwnershipManager:
    return RecordingOwnershipManager()


@pytest.fixture
def selinux() -> FakeSELinux:
    return FakeSELinux()
