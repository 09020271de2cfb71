"""vmi-prep: prepare a virtual machine instance to run as an unprivileged process.

Two independent pieces sharing the VirtualMachineInstance model:

Kactus network annotation (pure, no I/O):
    ```python
    from vmi_prep import VirtualMachineInstance, generate_kactus_cni_annotation

    vmi = VirtualMachineInstance.model_validate_json(raw)
    annotation = generate_kactus_cni_annotation(vmi)  # "" when no kactus networks
    ```

Non-root preparation (re-own devices and disks through the guest mount root):
    ```python
    from vmi_prep import NonRootPreparer, ProcessIsolationDetector, Settings

    settings = Settings()
    preparer = NonRootPreparer.from_settings(settings)
    preparer.setup(vmi, ProcessIsolationDetector(settings.proc_root))
    ```

Stages, in order: block devices, host disks (+ SELinux relabel), macvtap tap
devices, VFIO groups.  The first failure stops the run.
"""

from vmi_prep.annotations import generate_kactus_cni_annotation
from vmi_prep.exceptions import (
    AnnotationError,
    HostDiskError,
    IsolationError,
    MissingVolumeStatusError,
    OwnershipPreparationError,
    PrepError,
    RelabelError,
    SELinuxUnavailableError,
    TapDeviceError,
)
from vmi_prep.isolation import (
    IsolationDetector,
    IsolationResult,
    ProcessIsolationDetector,
    ProcessIsolationResult,
    StaticIsolationResult,
)
from vmi_prep.models import KactusNetworkAnnotation, VirtualMachineInstance
from vmi_prep.nonroot import NonRootPreparer
from vmi_prep.ownership import FileOwnershipManager, OwnershipManager
from vmi_prep.selinux import CommandSELinux, SELinux, SELinuxFacility
from vmi_prep.settings import Settings

__all__ = [
    "AnnotationError",
    "CommandSELinux",
    "FileOwnershipManager",
    "HostDiskError",
    "IsolationDetector",
    "IsolationError",
    "IsolationResult",
    "KactusNetworkAnnotation",
    "MissingVolumeStatusError",
    "NonRootPreparer",
    "OwnershipManager",
    "OwnershipPreparationError",
    "PrepError",
    "ProcessIsolationDetector",
    "ProcessIsolationResult",
    "RelabelError",
    "SELinux",
    "SELinuxFacility",
    "SELinuxUnavailableError",
    "Settings",
    "StaticIsolationResult",
    "TapDeviceError",
    "VirtualMachineInstance",
    "generate_kactus_cni_annotation",
]

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("vmi-prep")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"
