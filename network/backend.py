# network/backend.py
"""
Network backends: the pluggable part of the re-addressing workflow.

Three variants are supported, selected by what is present on the host:

- interfaces file + ifupdown2 (``ifreload -a``), the Proxmox default
- legacy interfaces file without a live-reload tool (reboot required)
- netplan (``netplan generate`` / ``netplan apply``), Ubuntu

Backends render new configuration into ``.new`` files next to the live
ones; installing them is the Applier's job.
"""
from __future__ import annotations
import os
import shutil
import subprocess
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from config import Settings
from errors import PreconditionError
from logger import log
from network.interfaces import get_live_ip
from state import CurrentNetwork, NetworkConfig

STAGED_SUFFIX = ".new"


@dataclass(frozen=True)
class StagedFile:
    target: Path
    staged: Path
    content: str
    mode: Optional[int] = None


@dataclass(frozen=True)
class ConfigArtifact:
    interface: str
    ip_address: str
    files: Tuple[StagedFile, ...]

    @property
    def targets(self) -> List[Path]:
        return [f.target for f in self.files]


def staged_path(target: Path) -> Path:
    return target.with_name(target.name + STAGED_SUFFIX)


def write_staged(target: Path, content: str, mode: Optional[int] = None) -> StagedFile:
    path = staged_path(target)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    if mode is not None:
        os.chmod(path, mode)
    log.info("Staged %s -> %s", target, path)
    return StagedFile(target=target, staged=path, content=content, mode=mode)


def install_file(staged: StagedFile) -> None:
    """Replace the live file with the staged content in one rename."""
    target = staged.target
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
    try:
        with os.fdopen(fd, "w") as f:
            f.write(staged.content)
        if staged.mode is not None:
            os.chmod(tmp, staged.mode)
        elif target.exists():
            shutil.copymode(target, tmp)
        else:
            os.chmod(tmp, 0o644)
        os.replace(tmp, target)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
    log.info("Installed %s", target)


class NetworkBackend(ABC):
    name = "base"
    uses_bridge = False

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    @abstractmethod
    def live_reload(self) -> bool:
        """True when reload() can apply changes without a reboot."""

    @abstractmethod
    def backup_paths(self) -> Tuple[List[Path], List[Path]]:
        """Return (required, optional) files to snapshot before staging."""

    @abstractmethod
    def stage(self, config: NetworkConfig, current: CurrentNetwork) -> List[StagedFile]:
        ...

    @abstractmethod
    def reload(self) -> bool:
        ...

    def live_ip(self, iface: str) -> Optional[str]:
        return get_live_ip(iface)

    def manual_steps(self, artifact: ConfigArtifact) -> List[str]:
        steps = [f"cp {f.staged} {f.target}" for f in artifact.files]
        return steps + ["reboot"]

    def _run(self, cmd: List[str], timeout: int = 120) -> bool:
        log.info("Running: %s", " ".join(cmd))
        try:
            subprocess.run(cmd, check=True, capture_output=True, text=True, timeout=timeout)
            return True
        except subprocess.CalledProcessError as e:
            log.error("%s failed (exit %s): %s", cmd[0], e.returncode, (e.stderr or "").strip())
        except subprocess.TimeoutExpired:
            log.error("%s timed out after %ss", cmd[0], timeout)
        except OSError as e:
            log.error("%s could not be run: %s", cmd[0], e)
        return False


def detect_backend(settings: Settings) -> NetworkBackend:
    """Pick the backend from settings.backend or from what the host has."""
    from network.ifupdown import InterfacesBackend
    from network.netplan import NetplanBackend

    choice = settings.backend
    if choice == "ifupdown":
        return InterfacesBackend(settings)
    if choice == "netplan":
        return NetplanBackend(settings)

    has_netplan = shutil.which("netplan") is not None
    if has_netplan and any(settings.netplan_dir.glob("*.yaml")):
        backend = NetplanBackend(settings)
    elif settings.interfaces_file.is_file():
        backend = InterfacesBackend(settings)
    elif has_netplan:
        backend = NetplanBackend(settings)
    else:
        raise PreconditionError(
            f"No network configuration found: neither {settings.interfaces_file} "
            f"nor a netplan installation is present."
        )
    log.info("Using %s network backend", backend.name)
    return backend
