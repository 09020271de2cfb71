"""Unit tests for VirtualMachineInstance parsing.

KubeVirt encodes a network's or volume's kind as the presence of one key;
these tests pin how those keys are lifted into the discriminated ``source``.
"""

import pytest
from pydantic import ValidationError

from vmi_prep.models import (
    HostDiskVolumeSource,
    Interface,
    InterfaceBinding,
    KactusNetworkAnnotation,
    KactusNetworkSource,
    MultusNetworkSource,
    Network,
    OtherVolumeSource,
    PersistentVolumeClaimVolumeSource,
    PodNetworkSource,
    VirtualMachineInstance,
    Volume,
    VolumeMode,
)
from tests.conftest import make_vmi, pvc_status

# ============================================================================
# Networks
# ============================================================================


class TestNetwork:
    """Tests for lifting a network's source key."""

    def test_pod_network(self) -> None:
        """A 'pod' key becomes the pod variant."""
        network = Network.model_validate({"name": "default", "pod": {}})
        assert isinstance(network.source, PodNetworkSource)
        assert network.source.kind == "pod"

    def test_multus_network(self) -> None:
        """Multus keeps its network name and default flag."""
        network = Network.model_validate({"name": "n1", "multus": {"networkName": "ns/macvtap", "default": True}})
        assert isinstance(network.source, MultusNetworkSource)
        assert network.source.network_name == "ns/macvtap"
        assert network.source.default is True

    def test_kactus_network_default_flag_defaults_false(self) -> None:
        """An omitted 'default' on a Kactus network is False."""
        network = Network.model_validate({"name": "k1", "kactus": {"networkName": "net1"}})
        assert isinstance(network.source, KactusNetworkSource)
        assert network.source.default is False

    def test_explicit_source(self) -> None:
        """Python callers can pass the variant directly."""
        network = Network(name="k1", source=KactusNetworkSource(network_name="net1"))
        assert network.source.kind == "kactus"

    def test_missing_source_rejected(self) -> None:
        """A network must declare a source."""
        with pytest.raises(ValidationError):
            Network.model_validate({"name": "n1"})

    def test_unknown_source_rejected(self) -> None:
        """Network kinds outside pod/multus/kactus are rejected."""
        with pytest.raises(ValidationError):
            Network.model_validate({"name": "n1", "genie": {"networkName": "x"}})

    def test_two_sources_rejected(self) -> None:
        """A network with two source keys is rejected."""
        with pytest.raises(ValidationError, match="exactly one source"):
            Network.model_validate({"name": "n1", "pod": {}, "kactus": {"networkName": "x"}})


# ============================================================================
# Interfaces
# ============================================================================


class TestInterface:
    """Tests for lifting an interface's binding method."""

    def test_macvtap_binding(self) -> None:
        """A 'macvtap' key marks the interface as macvtap."""
        iface = Interface.model_validate({"name": "n1", "macvtap": {}, "macAddress": "02:00:00:00:00:01"})
        assert iface.method == InterfaceBinding.MACVTAP
        assert iface.is_macvtap
        assert iface.mac_address == "02:00:00:00:00:01"

    def test_bridge_is_not_macvtap(self) -> None:
        """Other core bindings are recorded but are not macvtap."""
        iface = Interface.model_validate({"name": "n1", "bridge": {}})
        assert iface.method == InterfaceBinding.BRIDGE
        assert not iface.is_macvtap

    def test_no_binding(self) -> None:
        """An interface may declare no binding at all."""
        iface = Interface.model_validate({"name": "n1"})
        assert iface.method is None
        assert iface.binding is None
        assert iface.mac_address is None

    def test_two_bindings_rejected(self) -> None:
        """Two core binding keys are rejected."""
        with pytest.raises(ValidationError, match="at most one binding"):
            Interface.model_validate({"name": "n1", "bridge": {}, "macvtap": {}})

    def test_plugin_binding(self) -> None:
        """A binding-plugin reference parses and is not macvtap."""
        iface = Interface.model_validate({"name": "n1", "binding": {"name": "passt"}, "macAddress": "aa"})
        assert iface.binding is not None
        assert iface.binding.name == "passt"
        assert iface.method is None
        assert not iface.is_macvtap

    def test_plugin_binding_in_instance(self) -> None:
        """An instance using a binding plugin still parses end to end."""
        vmi = make_vmi(
            networks=[{"name": "k1", "kactus": {"networkName": "net1"}}],
            interfaces=[{"name": "k1", "binding": {"name": "managedtap"}}],
        )
        assert vmi.spec.domain.devices.interfaces[0].binding.name == "managedtap"


# ============================================================================
# Volumes
# ============================================================================


class TestVolume:
    """Tests for lifting a volume's source key."""

    def test_pvc(self) -> None:
        """A PVC volume keeps its claim name."""
        volume = Volume.model_validate({"name": "disk0", "persistentVolumeClaim": {"claimName": "pvc0"}})
        assert isinstance(volume.source, PersistentVolumeClaimVolumeSource)
        assert volume.source.claim_name == "pvc0"

    def test_host_disk(self) -> None:
        """A host-disk volume keeps its path; capacity is optional."""
        volume = Volume.model_validate({"name": "hd", "hostDisk": {"path": "/data/disk.img", "type": "Disk"}})
        assert isinstance(volume.source, HostDiskVolumeSource)
        assert volume.source.path == "/data/disk.img"
        assert volume.source.capacity is None

    def test_other_kind_recorded(self) -> None:
        """Volume kinds not handled here keep only their key name."""
        volume = Volume.model_validate({"name": "cd", "containerDisk": {"image": "quay.io/x"}})
        assert isinstance(volume.source, OtherVolumeSource)
        assert volume.source.type_name == "containerDisk"

    def test_two_sources_rejected(self) -> None:
        """A volume with two source keys is rejected."""
        with pytest.raises(ValidationError):
            Volume.model_validate({"name": "v", "hostDisk": {"path": "/x"}, "emptyDisk": {}})


# ============================================================================
# Instance
# ============================================================================


class TestVirtualMachineInstance:
    """Tests for the top-level instance model."""

    def test_full_instance(self) -> None:
        """Metadata, spec and status all parse from camelCase input."""
        vmi = make_vmi(
            namespace="tenant-a",
            networks=[{"name": "k1", "kactus": {"networkName": "net1"}}],
            interfaces=[{"name": "k1", "macvtap": {}}],
            volumes=[{"name": "disk0", "persistentVolumeClaim": {"claimName": "pvc0"}}],
            volume_status=[pvc_status("disk0", "Block")],
        )
        assert vmi.metadata.namespace == "tenant-a"
        assert len(vmi.spec.networks) == 1
        assert vmi.spec.domain.devices.interfaces[0].is_macvtap
        assert vmi.status.volume_status[0].persistent_volume_claim_info is not None
        assert vmi.status.volume_status[0].persistent_volume_claim_info.volume_mode == VolumeMode.BLOCK

    def test_empty_instance(self) -> None:
        """Every collection defaults to empty."""
        vmi = make_vmi()
        assert vmi.spec.networks == ()
        assert vmi.spec.volumes == ()
        assert vmi.status.volume_status == ()

    def test_frozen(self) -> None:
        """Instances are immutable."""
        vmi = make_vmi()
        with pytest.raises(ValidationError):
            vmi.metadata.namespace = "other"  # type: ignore[misc]

    def test_parse_json(self) -> None:
        """A raw Kubernetes JSON document parses, ignoring unknown fields."""
        raw = (
            '{"apiVersion": "kubevirt.io/v1", "kind": "VirtualMachineInstance",'
            ' "metadata": {"name": "vm", "namespace": "ns", "uid": "abc"},'
            ' "spec": {"networks": [{"name": "default", "pod": {}}]}}'
        )
        vmi = VirtualMachineInstance.model_validate_json(raw)
        assert vmi.metadata.uid == "abc"
        assert vmi.spec.networks[0].source.kind == "pod"


class TestKactusNetworkAnnotation:
    """Tests for the annotation entry model."""

    def test_defaults(self) -> None:
        """Only the network name is required."""
        annotation = KactusNetworkAnnotation(network_name="net1")
        assert annotation.if_mac == ""
        assert annotation.is_primary is False
        assert annotation.namespace == ""

    def test_alias_input(self) -> None:
        """Wire names ('name', 'ifMac', 'isPrimary') are accepted."""
        annotation = KactusNetworkAnnotation.model_validate({"name": "net1", "ifMac": "aa", "isPrimary": True})
        assert annotation.network_name == "net1"
        assert annotation.if_mac == "aa"
        assert annotation.is_primary is True
