"""SELinux detection and relabeling.

Detection shells out to ``getenforce`` (first candidate path that exists);
relabeling shells out to ``chcon``.  A node without SELinux tooling is not an
error for callers: detect() raises SELinuxUnavailableError and the caller
skips relabeling.

In permissive mode a failed relabel is logged and skipped, because the
kernel would not enforce the label anyway.  In enforcing mode it raises.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from vmi_prep import constants
from vmi_prep._logging import get_logger
from vmi_prep.exceptions import SELinuxUnavailableError

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = get_logger(__name__)

MODE_ENFORCING = "enforcing"
MODE_PERMISSIVE = "permissive"
MODE_DISABLED = "disabled"
_KNOWN_MODES = frozenset({MODE_ENFORCING, MODE_PERMISSIVE, MODE_DISABLED})


class SELinux:
    """Detected SELinux state of the node."""

    __slots__ = ("getenforce_path", "mode")

    def __init__(self, mode: str, getenforce_path: Path | None = None) -> None:
        self.mode = mode
        self.getenforce_path = getenforce_path

    @property
    def enabled(self) -> bool:
        return self.mode != MODE_DISABLED

    def is_permissive(self) -> bool:
        return self.mode == MODE_PERMISSIVE

    def __repr__(self) -> str:
        return f"SELinux(mode={self.mode!r})"


class SELinuxFacility(Protocol):
    def detect(self) -> tuple[SELinux, bool]:
        """Return the SELinux handle and whether SELinux is enabled.

        Raises:
            SELinuxUnavailableError: tooling missing or unusable
        """
        ...

    def relabel(self, context: str, permissive: bool, *paths: str | Path) -> None: ...


class CommandSELinux:
    """SELinux facility backed by getenforce/chcon."""

    def __init__(
        self,
        getenforce_paths: Iterable[str | Path] = constants.GETENFORCE_PATHS,
        chcon_bin: str | Path = constants.CHCON_BIN,
        timeout: float = constants.SELINUX_COMMAND_TIMEOUT_SECONDS,
    ) -> None:
        self.getenforce_paths = tuple(Path(p) for p in getenforce_paths)
        self.chcon_bin = Path(chcon_bin)
        self.timeout = timeout

    def _find_getenforce(self) -> Path:
        for candidate in self.getenforce_paths:
            if candidate.is_file():
                return candidate
        raise SELinuxUnavailableError(
            "getenforce not found",
            {"searched": [str(p) for p in self.getenforce_paths]},
        )

    def detect(self) -> tuple[SELinux, bool]:
        getenforce = self._find_getenforce()
        try:
            proc = subprocess.run(
                [str(getenforce)],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            raise SELinuxUnavailableError(
                f"getenforce exited with {e.returncode}",
                {"path": str(getenforce), "stderr": (e.stderr or "").strip()},
            ) from e
        except (OSError, subprocess.TimeoutExpired) as e:
            raise SELinuxUnavailableError(f"failed to run getenforce: {e}", {"path": str(getenforce)}) from e

        mode = proc.stdout.strip().lower()
        if mode not in _KNOWN_MODES:
            raise SELinuxUnavailableError(
                f"unexpected getenforce output: {proc.stdout.strip()!r}",
                {"path": str(getenforce)},
            )
        handle = SELinux(mode, getenforce)
        logger.debug("Detected SELinux mode", extra={"mode": handle.mode})
        return handle, handle.enabled

    def relabel(self, context: str, permissive: bool, *paths: str | Path) -> None:
        """Apply *context* to each path.

        Raises:
            subprocess.CalledProcessError: chcon failed (enforcing mode only)
            OSError: chcon could not be executed (enforcing mode only)
            subprocess.TimeoutExpired: chcon hung (enforcing mode only)
        """
        for path in paths:
            try:
                subprocess.run(
                    [str(self.chcon_bin), context, str(path)],
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                    check=True,
                )
            except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
                if not permissive:
                    raise
                logger.warning(
                    "Failed to relabel file, continuing in permissive mode",
                    extra={"path": str(path), "context": context, "error": str(e)},
                )
