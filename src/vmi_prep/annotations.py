"""Kactus CNI network annotation for a virtual machine instance.

Every network backed by the Kactus CRD kind becomes one entry of a JSON array
that the Kactus CNI plugin reads from the workload's annotations.  Entries
keep the declaration order of ``spec.networks``; nothing is sorted or
de-duplicated.  Pure computation, no I/O.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import TypeAdapter
from pydantic_core import PydanticSerializationError

from vmi_prep._logging import get_logger
from vmi_prep.exceptions import AnnotationError
from vmi_prep.models import KactusNetworkAnnotation, KactusNetworkSource

if TYPE_CHECKING:
    from vmi_prep.models import Interface, Network, VirtualMachineInstance

logger = get_logger(__name__)

_POOL_ADAPTER: TypeAdapter[list[KactusNetworkAnnotation]] = TypeAdapter(list[KactusNetworkAnnotation])


class KactusNetworkAnnotationPool:
    """Ordered collection of annotation entries."""

    def __init__(self) -> None:
        self._pool: list[KactusNetworkAnnotation] = []

    def add(self, annotation: KactusNetworkAnnotation) -> None:
        self._pool.append(annotation)

    def is_empty(self) -> bool:
        return not self._pool

    def __len__(self) -> int:
        return len(self._pool)

    def to_json(self) -> str:
        """Serialize the pool as a compact JSON array.

        Raises:
            AnnotationError: Pool could not be serialized
        """
        try:
            raw = _POOL_ADAPTER.dump_json(self._pool, by_alias=True, exclude_defaults=True)
        except PydanticSerializationError as e:
            raise AnnotationError(
                f"failed to create JSON list from kactus interface pool {self._pool}",
                {"pool": list(self._pool)},
            ) from e
        return raw.decode()


def get_namespace_and_network_name(vmi: VirtualMachineInstance, full_network_name: str) -> tuple[str, str]:
    """Split ``namespace/name``; unqualified names live in the instance's namespace."""
    if "/" in full_network_name:
        namespace, network_name = full_network_name.split("/", 1)
        return namespace, network_name
    return vmi.metadata.namespace, full_network_name


def get_iface_by_name(vmi: VirtualMachineInstance, name: str) -> Interface | None:
    for iface in vmi.spec.domain.devices.interfaces:
        if iface.name == name:
            return iface
    return None


def new_kactus_annotation_data(vmi: VirtualMachineInstance, network: Network) -> KactusNetworkAnnotation:
    source = network.source
    if not isinstance(source, KactusNetworkSource):
        raise TypeError(f"network {network.name!r} is not backed by kactus")

    iface = get_iface_by_name(vmi, network.name)
    namespace, network_name = get_namespace_and_network_name(vmi, source.network_name)
    return KactusNetworkAnnotation(
        network_name=network_name,
        if_mac=(iface.mac_address or "") if iface is not None else "",
        is_primary=source.default,
        namespace=namespace,
    )


def generate_kactus_cni_annotation(vmi: VirtualMachineInstance) -> str:
    """Build the Kactus network annotation for *vmi*.

    Returns:
        JSON array of annotation entries, or ``""`` when no network uses the
        Kactus driver.

    Raises:
        AnnotationError: Serialization failed
    """
    pool = KactusNetworkAnnotationPool()

    for network in vmi.spec.networks:
        if network.source.kind == "kactus":
            pool.add(new_kactus_annotation_data(vmi, network))

    if pool.is_empty():
        return ""

    logger.debug(
        "Generated kactus network annotation",
        extra={"vmi": vmi.metadata.name, "namespace": vmi.metadata.namespace, "networks": len(pool)},
    )
    return pool.to_json()
