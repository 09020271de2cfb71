"""Tests for ownership.py with real filesystem paths."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from vmi_prep.ownership import FileOwnershipManager, OwnershipManager
from tests.conftest import RecordingOwnershipManager, skip_unless_linux


class TestFileOwnershipManager:
    """Tests for FileOwnershipManager against real files."""

    def test_defaults_to_qemu_user(self) -> None:
        """The default owner is the qemu user and group (107)."""
        manager = FileOwnershipManager()
        assert (manager.uid, manager.gid) == (107, 107)

    def test_already_owned_is_noop(self, tmp_path: Path) -> None:
        """A path already owned by the target is not chowned."""
        target = tmp_path / "disk.img"
        target.touch()
        st = target.stat()
        manager = FileOwnershipManager(st.st_uid, st.st_gid)

        with patch("vmi_prep.ownership.os.chown") as chown:
            manager.set_file_ownership(target)

        chown.assert_not_called()

    def test_chowns_when_owner_differs(self, tmp_path: Path) -> None:
        """A path owned by someone else is chowned to the target."""
        target = tmp_path / "disk.img"
        target.touch()
        st = target.stat()
        manager = FileOwnershipManager(st.st_uid + 1, st.st_gid)

        with patch("vmi_prep.ownership.os.chown") as chown:
            manager.set_file_ownership(target)

        chown.assert_called_once_with(target, st.st_uid + 1, st.st_gid)

    def test_missing_path_raises(self, tmp_path: Path) -> None:
        """A missing path raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            FileOwnershipManager().set_file_ownership(tmp_path / "nope")

    @skip_unless_linux
    def test_unprivileged_chown_fails(self, tmp_path: Path) -> None:
        """Without CAP_CHOWN, giving a file away fails with PermissionError."""
        if os.geteuid() == 0:
            pytest.skip("running as root")
        target = tmp_path / "disk.img"
        target.touch()

        with pytest.raises(PermissionError):
            FileOwnershipManager(0, 0).set_file_ownership(target)


class TestOwnershipManagerProtocol:
    """Tests for the OwnershipManager protocol."""

    def test_implementations_satisfy_protocol(self) -> None:
        """Real and recording managers both satisfy the protocol."""
        assert isinstance(FileOwnershipManager(), OwnershipManager)
        assert isinstance(RecordingOwnershipManager(), OwnershipManager)
