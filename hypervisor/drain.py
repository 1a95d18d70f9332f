# hypervisor/drain.py
from __future__ import annotations
import enum
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from errors import Cancelled
from hypervisor.qm import QmClient, VMHandle
from logger import log

POLL_INTERVAL = 5
VM_TIMEOUT = 120
PROGRESS_EVERY = 30
STOP_SETTLE = 2


class DrainOutcome(enum.Enum):
    GRACEFUL = "graceful"
    FORCED = "forced stop"
    FORCED_AFTER_REQUEST_FAILURE = "forced stop (shutdown request failed)"
    STOP_FAILED = "stop failed"


@dataclass
class VMResult:
    vm: VMHandle
    outcome: DrainOutcome
    waited: int = 0

    def __str__(self) -> str:
        return f"VM {self.vm.vmid} ({self.vm.name}): {self.outcome.value} after {self.waited}s"


@dataclass
class DrainReport:
    results: List[VMResult] = field(default_factory=list)
    skipped: bool = False

    def by_outcome(self, outcome: DrainOutcome) -> List[VMResult]:
        return [r for r in self.results if r.outcome == outcome]

    @property
    def all_stopped(self) -> bool:
        return not self.by_outcome(DrainOutcome.STOP_FAILED)

    def summary(self) -> str:
        if self.skipped:
            return "VM drain skipped: qm not available"
        if not self.results:
            return "No running VMs found"
        counts = ", ".join(
            f"{len(self.by_outcome(o))} {o.value}"
            for o in DrainOutcome if self.by_outcome(o)
        )
        return f"{len(self.results)} VM(s) processed: {counts}"


class DrainController:
    """Stop running VMs one at a time: graceful first, forced on timeout.

    Serial on purpose: at most one guest is shutting down at any time and
    log lines come out per VM in order. Worst-case wall time is
    len(vms) * per_vm_timeout.
    """

    def __init__(
        self,
        client: QmClient,
        poll_interval: int = POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.client = client
        self.poll_interval = poll_interval
        self.sleep = sleep
        self.cancel = cancel or threading.Event()

    @property
    def available(self) -> bool:
        return self.client.available()

    def list_running(self) -> List[VMHandle]:
        if not self.available:
            return []
        return [vm for vm in self.client.list_vms() if vm.status == "running"]

    def drain_all(self, handles: Sequence[VMHandle], per_vm_timeout: int = VM_TIMEOUT) -> DrainReport:
        if not self.available:
            log.warning("Proxmox (qm) command not found. Skipping VM shutdown.")
            return DrainReport(skipped=True)

        report = DrainReport()
        for vm in handles:
            report.results.append(self._drain_one(vm, per_vm_timeout))
        log.info("All VMs have been processed: %s", report.summary())
        return report

    def _drain_one(self, vm: VMHandle, timeout: int) -> VMResult:
        log.info("Shutting down VM %s (%s)...", vm.vmid, vm.name)
        if not self.client.shutdown(vm.vmid):
            log.warning("Failed to send shutdown signal to VM %s. Forcing stop...", vm.vmid)
            return self._force(vm, DrainOutcome.FORCED_AFTER_REQUEST_FAILURE, 0)

        elapsed = 0
        next_report = PROGRESS_EVERY
        while elapsed < timeout and not self.cancel.is_set():
            vm.status = self.client.status(vm.vmid) or vm.status
            if vm.status == "stopped":
                log.info("VM %s shutdown successfully (%ss)", vm.vmid, elapsed)
                return VMResult(vm, DrainOutcome.GRACEFUL, elapsed)
            self.sleep(self.poll_interval)
            elapsed += self.poll_interval
            if elapsed >= next_report:
                log.info("Still waiting for VM %s... (%ss/%ss)", vm.vmid, elapsed, timeout)
                next_report += PROGRESS_EVERY

        if self.cancel.is_set():
            raise Cancelled(f"VM drain interrupted while waiting for VM {vm.vmid}")

        vm.status = self.client.status(vm.vmid) or vm.status
        if vm.status == "stopped":
            log.info("VM %s shutdown successfully (%ss)", vm.vmid, elapsed)
            return VMResult(vm, DrainOutcome.GRACEFUL, elapsed)

        log.warning(
            "VM %s did not shutdown gracefully after %ss. Forcing stop...", vm.vmid, elapsed
        )
        return self._force(vm, DrainOutcome.FORCED, elapsed)

    def _force(self, vm: VMHandle, outcome: DrainOutcome, waited: int) -> VMResult:
        if self.client.stop(vm.vmid):
            self.sleep(STOP_SETTLE)
            vm.status = "stopped"
            log.info("VM %s force stopped", vm.vmid)
            return VMResult(vm, outcome, waited)
        log.error("Failed to force stop VM %s", vm.vmid)
        return VMResult(vm, DrainOutcome.STOP_FAILED, waited)
