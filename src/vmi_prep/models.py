"""Data models for vmi-prep.

The virtual machine instance is parsed from its Kubernetes JSON form
(camelCase keys).  KubeVirt encodes the backing kind of a network or volume
as the presence of exactly one key (``{"name": "n", "multus": {...}}``); the
models lift that key into an explicit ``source`` field holding one variant of
a closed, discriminated union, so consumers match on ``source.kind`` instead
of probing optional attributes.
"""

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class _KubeModel(BaseModel):
    """Base for Kubernetes-shaped models: camelCase aliases, immutable."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


def _lift_single_key(data: dict[str, Any], key: str, *, target: str, kind: str) -> dict[str, Any]:
    body = data[key] or {}
    lifted = {k: v for k, v in data.items() if k != key}
    lifted[target] = {**body, "kind": kind}
    return lifted


# ============================================================================
# Metadata
# ============================================================================


class ObjectMeta(_KubeModel):
    """Subset of Kubernetes object metadata used for naming."""

    name: str = ""
    namespace: str = ""
    uid: str = ""


# ============================================================================
# Networks
# ============================================================================


class PodNetworkSource(_KubeModel):
    """Default pod network."""

    kind: Literal["pod"] = "pod"


class MultusNetworkSource(_KubeModel):
    """Generic multi-network attachment (Multus NetworkAttachmentDefinition)."""

    kind: Literal["multus"] = "multus"
    network_name: str
    default: bool = False


class KactusNetworkSource(_KubeModel):
    """Network backed by the Kactus CRD network kind."""

    kind: Literal["kactus"] = "kactus"
    network_name: str
    default: bool = False


NetworkSource = Annotated[
    PodNetworkSource | MultusNetworkSource | KactusNetworkSource,
    Field(discriminator="kind"),
]

NETWORK_SOURCE_KINDS: tuple[str, ...] = ("pod", "multus", "kactus")


class Network(_KubeModel):
    """Declared network: a unique name plus exactly one backing source."""

    name: str
    source: NetworkSource

    @model_validator(mode="before")
    @classmethod
    def _lift_source(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "source" in data:
            return data
        present = [kind for kind in NETWORK_SOURCE_KINDS if kind in data]
        if len(present) > 1:
            raise ValueError(f"network must declare exactly one source, got {present}")
        if not present:
            return data
        return _lift_single_key(data, present[0], target="source", kind=present[0])


# ============================================================================
# Interfaces
# ============================================================================


class InterfaceBinding(str, Enum):
    """Core binding method of a declared interface."""

    BRIDGE = "bridge"
    SLIRP = "slirp"
    MASQUERADE = "masquerade"
    SRIOV = "sriov"
    MACVTAP = "macvtap"
    PASST = "passt"


class PluginBinding(_KubeModel):
    """Reference to a network binding plugin registered on the cluster."""

    name: str


class Interface(_KubeModel):
    """Device-level interface config, keyed by the network name it attaches to.

    ``method`` holds the core binding lifted from its single key; ``binding``
    is the plugin reference KubeVirt carries under that literal key.
    """

    name: str
    mac_address: str | None = None
    model: str | None = None
    method: InterfaceBinding | None = None
    binding: PluginBinding | None = None

    @model_validator(mode="before")
    @classmethod
    def _lift_method(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        present = [b.value for b in InterfaceBinding if b.value in data]
        if len(present) > 1:
            raise ValueError(f"interface must declare at most one binding, got {present}")
        lifted = {k: v for k, v in data.items() if k not in present}
        if present:
            lifted["method"] = present[0]
        return lifted

    @property
    def is_macvtap(self) -> bool:
        return self.method == InterfaceBinding.MACVTAP


class Devices(_KubeModel):
    interfaces: tuple[Interface, ...] = ()


class DomainSpec(_KubeModel):
    devices: Devices = Field(default_factory=Devices)


# ============================================================================
# Volumes
# ============================================================================


class PersistentVolumeClaimVolumeSource(_KubeModel):
    kind: Literal["persistentVolumeClaim"] = "persistentVolumeClaim"
    claim_name: str
    read_only: bool = False


class HostDiskVolumeSource(_KubeModel):
    """Disk image file on the node, mounted into the guest's private disk dir."""

    kind: Literal["hostDisk"] = "hostDisk"
    path: str
    type: str = "Disk"
    capacity: str | None = None


class OtherVolumeSource(_KubeModel):
    """Any volume kind that needs no ownership handling (containerDisk, cloudInit...)."""

    kind: Literal["other"] = "other"
    type_name: str


VolumeSource = Annotated[
    PersistentVolumeClaimVolumeSource | HostDiskVolumeSource | OtherVolumeSource,
    Field(discriminator="kind"),
]


class Volume(_KubeModel):
    name: str
    source: VolumeSource

    @model_validator(mode="before")
    @classmethod
    def _lift_source(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "source" in data:
            return data
        keys = [k for k in data if k != "name"]
        if len(keys) > 1:
            raise ValueError(f"volume must declare exactly one source, got {keys}")
        if not keys:
            return data
        key = keys[0]
        if key in ("persistentVolumeClaim", "hostDisk"):
            return _lift_single_key(data, key, target="source", kind=key)
        return {"name": data.get("name"), "source": {"kind": "other", "type_name": key}}


# ============================================================================
# Spec / Status / Instance
# ============================================================================


class VirtualMachineInstanceSpec(_KubeModel):
    domain: DomainSpec = Field(default_factory=DomainSpec)
    networks: tuple[Network, ...] = ()
    volumes: tuple[Volume, ...] = ()


class VolumeMode(str, Enum):
    """Observed persistent volume mode."""

    BLOCK = "Block"
    FILESYSTEM = "Filesystem"


class PersistentVolumeClaimInfo(_KubeModel):
    volume_mode: VolumeMode | None = None


class VolumeStatus(_KubeModel):
    name: str
    persistent_volume_claim_info: PersistentVolumeClaimInfo | None = None


class VirtualMachineInstanceStatus(_KubeModel):
    volume_status: tuple[VolumeStatus, ...] = ()


class VirtualMachineInstance(_KubeModel):
    """Declarative virtual machine instance (read-only input)."""

    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: VirtualMachineInstanceSpec = Field(default_factory=VirtualMachineInstanceSpec)
    status: VirtualMachineInstanceStatus = Field(default_factory=VirtualMachineInstanceStatus)


# ============================================================================
# Derived values
# ============================================================================


class KactusNetworkAnnotation(BaseModel):
    """One entry of the Kactus CNI network annotation.

    Serialized with Go ``omitempty`` semantics: ``name`` is always present,
    the other keys only when non-empty / true.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    network_name: str = Field(alias="name")
    if_mac: str = Field(default="", alias="ifMac")
    is_primary: bool = Field(default=False, alias="isPrimary")
    namespace: str = ""
