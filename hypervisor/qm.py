# hypervisor/qm.py
from __future__ import annotations
import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Optional
from logger import log

QM = "qm"


@dataclass
class VMHandle:
    vmid: int
    name: str
    status: str

    def display_str(self) -> str:
        return f"VM {self.vmid}: {self.name} (Status: {self.status})"


def parse_qm_list(output: str) -> List[VMHandle]:
    """Parse `qm list`: a header row, then VMID NAME STATUS MEM BOOTDISK PID."""
    vms = []
    for line in output.splitlines()[1:]:
        parts = line.split()
        if len(parts) < 3 or not parts[0].isdigit():
            continue
        vms.append(VMHandle(vmid=int(parts[0]), name=parts[1], status=parts[2]))
    return vms


def parse_qm_status(output: str) -> Optional[str]:
    """`qm status <id>` prints 'status: running'."""
    parts = output.split()
    if len(parts) >= 2 and parts[0] == "status:":
        return parts[1]
    return None


class QmClient:
    """Thin wrapper over the Proxmox `qm` CLI."""

    def __init__(self, binary: str = QM, request_timeout: int = 30) -> None:
        self.binary = binary
        self.request_timeout = request_timeout

    def available(self) -> bool:
        return shutil.which(self.binary) is not None

    def _run(self, *args: str, timeout: Optional[int] = None) -> subprocess.CompletedProcess:
        return subprocess.run(
            [self.binary, *args],
            capture_output=True, text=True, timeout=timeout or self.request_timeout,
        )

    def list_vms(self) -> List[VMHandle]:
        try:
            result = self._run("list")
        except (OSError, subprocess.TimeoutExpired) as e:
            log.warning("qm list failed: %s", e)
            return []
        if result.returncode != 0:
            log.warning("qm list failed: %s", result.stderr.strip())
            return []
        return parse_qm_list(result.stdout)

    def status(self, vmid: int) -> Optional[str]:
        try:
            result = self._run("status", str(vmid))
        except (OSError, subprocess.TimeoutExpired) as e:
            log.debug("qm status %s failed: %s", vmid, e)
            return None
        if result.returncode != 0:
            return None
        return parse_qm_status(result.stdout)

    def shutdown(self, vmid: int) -> bool:
        """Send the ACPI shutdown request. True if it was delivered."""
        try:
            result = self._run("shutdown", str(vmid))
        except subprocess.TimeoutExpired:
            # qm waits for the guest; the request itself has gone out.
            log.debug("qm shutdown %s still waiting after %ss", vmid, self.request_timeout)
            return True
        except OSError as e:
            log.warning("qm shutdown %s failed: %s", vmid, e)
            return False
        if result.returncode != 0:
            log.debug("qm shutdown %s: %s", vmid, result.stderr.strip())
        return result.returncode == 0

    def stop(self, vmid: int) -> bool:
        try:
            result = self._run("stop", str(vmid))
        except (OSError, subprocess.TimeoutExpired) as e:
            log.warning("qm stop %s failed: %s", vmid, e)
            return False
        return result.returncode == 0
