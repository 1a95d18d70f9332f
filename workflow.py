# workflow.py
"""
The re-addressing run: collect -> back up and stage -> apply -> drain VMs
-> host action. Every stage is separated by an operator gate; declining a
gate before the apply stage leaves the host untouched.
"""
from __future__ import annotations
import asyncio
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional

from collector import detect_current, prompt_new
from config import Settings
from errors import ApplyFailed, Cancelled, InvalidChoice, ReaddressError
from hypervisor import host
from hypervisor.drain import DrainController, DrainReport
from hypervisor.host import HostAction
from hypervisor.qm import QmClient
from logger import log
from network.apply import Applier, ApplyResult, ApplyState
from network.backend import ConfigArtifact, NetworkBackend, detect_backend
from network.backup import Backup, create_backup, latest_backup, load_backup
from network.checks import build_check_matrix, run_all_checks
from network.hosts import stage_hosts
from network.interfaces import list_interfaces
from prompts import Prompter
from state import CurrentNetwork, NetworkConfig, RunState, Stage

CHECK_TIMEOUT = 5


class Workflow:
    def __init__(
        self,
        prompter: Prompter,
        settings: Settings,
        backend: Optional[NetworkBackend] = None,
        qm: Optional[QmClient] = None,
        sleep: Callable[[float], None] = time.sleep,
        host_action: Callable[[HostAction], None] = host.perform,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.prompter = prompter
        self.settings = settings
        self.backend = backend
        self.qm = qm or QmClient()
        self.sleep = sleep
        self.host_action = host_action
        self.cancel = cancel or threading.Event()
        self.state = RunState()

    def _gate(self, question: str, reason: str) -> None:
        if not self.prompter.confirm(question):
            raise Cancelled(reason)

    def run(self) -> int:
        """Execute every stage. Returns the process exit code."""
        try:
            self.preflight()
            backend = self.backend or detect_backend(self.settings)
            self.backend = backend

            log.info("Step 1: Network Configuration")
            current = detect_current(backend, self.settings)
            ifaces = list_interfaces()
            self.prompter.show("Network interfaces", "\n".join(i.display_str() for i in ifaces))
            names = [i.name for i in ifaces]
            config = prompt_new(self.prompter, current, names, self.settings.default_dns)
            if config is None:
                return 0
            self.state.config = config
            self.state.advance(Stage.COLLECTED)

            log.info("Step 2: Backing up and staging configuration")
            backup = self.backup(backend)
            artifact = self.stage(backend, config, current)

            log.info("Step 3: Applying network configuration")
            result = self.apply(backend, artifact, backup)
            self.post_checks(config, result)

            log.info("Step 4: Shutting down virtual machines")
            self.drain()

            return self.finish()
        except Cancelled as e:
            log.warning("%s", e)
            return Cancelled.exit_code
        except ReaddressError as e:
            log.error("%s", e)
            if isinstance(e, ApplyFailed) and not e.rolled_back and self.state.can_rollback:
                log.info(
                    "Backup kept at %s; run with --restore %s to put it back",
                    self.state.backup.path, self.state.backup.path,
                )
            return e.exit_code

    # -- Preflight ---------------------------------------------------------

    def preflight(self) -> None:
        s = self.settings
        if not host.is_proxmox(s.pve_version_file):
            log.warning("This doesn't appear to be a Proxmox VE system")
            self._gate("Continue anyway?", "Exiting")

        if not host.is_clustered(s.corosync_conf):
            log.info("No cluster configuration detected - standalone server")
            return

        log.warning("CLUSTER DETECTED: this server is part of a Proxmox cluster")
        steps = "\n".join(f"  {i}. {step}" for i, step in enumerate(host.CLUSTER_STEPS, 1))
        self.prompter.show(
            "Cluster detected",
            "Changing the IP address of a clustered node requires additional steps:\n"
            f"{steps}\n\n"
            "This tool only handles the network interface configuration.\n"
            "You MUST manually update cluster configuration files!\n\n"
            "For clusters, it's often safer to remove the node from the cluster,\n"
            "change the IP address, then re-join the cluster with the new IP.",
        )
        self._gate(
            "Do you understand the risks and want to continue?",
            "Exiting to prevent cluster corruption",
        )
        status = host.cluster_status()
        if status:
            self.prompter.show("Current cluster status", status)

    # -- Mutator -----------------------------------------------------------

    def backup(self, backend: NetworkBackend) -> Backup:
        s = self.settings
        required, optional = backend.backup_paths()
        optional = list(optional) + [s.hosts_file, s.resolv_conf, s.issue_file, s.corosync_conf]
        backup = create_backup(required, optional, root=s.backup_root)
        self.state.backup = backup
        self.state.advance(Stage.BACKED_UP)
        return backup

    def stage(
        self, backend: NetworkBackend, config: NetworkConfig, current: CurrentNetwork
    ) -> ConfigArtifact:
        files = backend.stage(config, current)
        for f in files:
            self.prompter.show(f"New configuration for {f.target}", f.content)

        if current.hostname:
            hosts = stage_hosts(
                self.settings.hosts_file, current.ip_address or None,
                config.ip_address, current.hostname, current.fqdn,
            )
            self.prompter.show(f"New {hosts.target} content", hosts.content)
            if self.prompter.confirm(f"Update {hosts.target} file?"):
                files.append(hosts)
            else:
                log.warning("%s not updated", hosts.target)
                hosts.staged.unlink()

        artifact = ConfigArtifact(
            interface=config.target_interface,
            ip_address=config.ip_address,
            files=tuple(files),
        )
        self.state.artifact = artifact
        self.state.advance(Stage.STAGED)
        return artifact

    # -- Applier -----------------------------------------------------------

    def apply(
        self, backend: NetworkBackend, artifact: ConfigArtifact, backup: Backup
    ) -> ApplyResult:
        if backend.live_reload:
            log.warning("If this is a remote connection, you may lose connectivity!")
            log.warning("Make sure you have console access available.")
        if not self.prompter.confirm(
            "Apply network configuration now? This will change the IP address."
        ):
            staged = ", ".join(str(f.staged) for f in artifact.files)
            log.warning("Network configuration not applied. Configuration saved to %s", staged)
            log.info("To apply manually:")
            for i, step in enumerate(backend.manual_steps(artifact), 1):
                log.info("  %d. %s", i, step)
            result = ApplyResult(state=ApplyState.STAGED, requested_ip=artifact.ip_address)
            self.state.apply_result = result
            return result

        applier = Applier(backend, settle_delay=self.settings.settle_delay, sleep=self.sleep)
        try:
            result = applier.apply(artifact, backup)
        except ApplyFailed:
            self.state.apply_result = ApplyResult(
                state=applier.state, requested_ip=artifact.ip_address
            )
            raise
        self.state.apply_result = result
        self.state.advance(Stage.APPLIED)
        if result.state == ApplyState.PENDING_REBOOT:
            log.info("Configuration saved. Reboot required to apply changes.")
        return result

    def post_checks(self, config: NetworkConfig, result: ApplyResult) -> None:
        """Advisory reachability checks; never change the outcome."""
        if not (self.settings.run_checks and result.applied):
            return
        checks = build_check_matrix(
            gateway=config.gateway,
            new_ip=config.ip_address,
            dns_servers=config.dns_servers,
            proxmox=host.is_proxmox(self.settings.pve_version_file),
        )
        results = asyncio.run(run_all_checks(checks, timeout=CHECK_TIMEOUT))
        self.prompter.show("Post-apply checks", "\n".join(str(r) for r in results))
        if not all(r.passed for r in results):
            log.warning("Some post-apply checks failed; verify connectivity manually.")

    # -- Drain -------------------------------------------------------------

    def drain(self) -> Optional[DrainReport]:
        if not self.prompter.confirm("Shutdown Proxmox VMs now?"):
            log.warning("VM shutdown skipped")
            return None

        controller = DrainController(
            self.qm,
            poll_interval=self.settings.poll_interval,
            sleep=self.sleep,
            cancel=self.cancel,
        )
        if not controller.available:
            report = controller.drain_all([])
        else:
            running = controller.list_running()
            if not running:
                log.info("No running VMs found")
                report = DrainReport()
            else:
                log.info("Found %d running VM(s)", len(running))
                self.prompter.show(
                    "VMs to be shutdown", "\n".join(f"  {vm.display_str()}" for vm in running)
                )
                if not self.prompter.confirm("Proceed with VM shutdown?"):
                    log.warning("VM shutdown cancelled")
                    return None
                report = controller.drain_all(running, per_vm_timeout=self.settings.vm_timeout)
                self.prompter.show(
                    "VM shutdown report", "\n".join(f"  {r}" for r in report.results)
                )
        self.state.drain_report = report
        self.state.advance(Stage.DRAINED)
        return report

    # -- Host action -------------------------------------------------------

    def finish(self) -> int:
        log.info("Step 5: Host System Shutdown/Reboot")
        options = [(a.value, a.label) for a in HostAction]
        answer = self.prompter.choose("Select an option:", options).strip()
        try:
            action = HostAction(answer)
        except ValueError:
            raise InvalidChoice(
                f"Invalid choice {answer!r}. Exiting without shutdown or reboot"
            )

        self.state.advance(Stage.FINISHED)
        if action == HostAction.EXIT:
            log.info("Exiting without shutdown or reboot")
            return 0

        verb = "shutdown" if action == HostAction.SHUTDOWN else "reboot"
        log.info("Initiating system %s in %s seconds...", verb, self.settings.host_action_delay)
        log.warning("Press Ctrl+C to cancel")
        self.sleep(self.settings.host_action_delay)
        self.host_action(action)
        return 0


def restore_backup(
    settings: Settings,
    path: Optional[Path] = None,
    backend: Optional[NetworkBackend] = None,
) -> int:
    """Offline recovery: put a backup back and reload networking."""
    try:
        backup = load_backup(path) if path else latest_backup(settings.backup_root)
        backend = backend or detect_backend(settings)
    except ReaddressError as e:
        log.error("%s", e)
        return e.exit_code

    # Cluster files are only copied for reference; pmxcfs owns them.
    pve_dir = Path(settings.pve_dir)
    targets: List[Path] = [
        p for p in backup.files + backup.absent if pve_dir not in p.parents
    ]
    log.info("Restoring backup %s (%s)", backup.path, backup.created.isoformat())
    backup.restore(targets)

    if not backend.live_reload:
        log.warning("Files restored. Reboot required to apply them.")
        return 0
    if not backend.reload():
        log.error("Files restored but networking reload failed")
        return 1
    log.info("Backup restored and networking reloaded")
    return 0
