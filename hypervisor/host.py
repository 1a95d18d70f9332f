# hypervisor/host.py
from __future__ import annotations
import enum
import shutil
import subprocess
from pathlib import Path
from typing import List
from logger import log

CLUSTER_STEPS = [
    "Update /etc/pve/corosync.conf (on ONE node with quorum)",
    "Increment config_version in corosync.conf",
    "Update /etc/hosts on ALL nodes",
    "Update /etc/pve/priv/known_hosts",
    "Restart pve-cluster and corosync services",
]


class HostAction(enum.Enum):
    SHUTDOWN = "1"
    REBOOT = "2"
    EXIT = "3"

    @property
    def label(self) -> str:
        return {
            HostAction.SHUTDOWN: "Shutdown the system",
            HostAction.REBOOT: "Reboot the system",
            HostAction.EXIT: "Exit without shutdown/reboot",
        }[self]

    @property
    def command(self) -> List[str]:
        return {
            HostAction.SHUTDOWN: ["shutdown", "-h", "now"],
            HostAction.REBOOT: ["reboot"],
            HostAction.EXIT: [],
        }[self]


def is_proxmox(version_file: Path) -> bool:
    return Path(version_file).exists()


def is_clustered(corosync_conf: Path) -> bool:
    return Path(corosync_conf).exists()


def cluster_status() -> str:
    """Output of `pvecm status`, or an empty string when unavailable."""
    if shutil.which("pvecm") is None:
        return ""
    try:
        result = subprocess.run(
            ["pvecm", "status"], capture_output=True, text=True, timeout=15
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        log.warning("pvecm status failed: %s", e)
        return ""
    return result.stdout.strip()


def perform(action: HostAction) -> None:
    """Fire-and-forget shutdown or reboot. EXIT does nothing."""
    if not action.command:
        return
    log.info("Running: %s", " ".join(action.command))
    subprocess.Popen(
        action.command,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )
