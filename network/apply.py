# network/apply.py
from __future__ import annotations
import enum
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from errors import ApplyFailed
from logger import log
from network.backend import ConfigArtifact, NetworkBackend, install_file
from network.backup import Backup

SETTLE_DELAY = 2.0


class ApplyState(enum.Enum):
    STAGED = "staged"
    APPLYING = "applying"
    VERIFIED = "verified"
    MISMATCH = "mismatch"            # reload succeeded, live IP differs
    ROLLED_BACK = "rolled back"
    PENDING_REBOOT = "pending reboot"


@dataclass
class ApplyResult:
    state: ApplyState
    requested_ip: str
    live_ip: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        return self.state in (ApplyState.VERIFIED, ApplyState.MISMATCH)


class Applier:
    """Swap staged files in, reload, verify; restore the backup on failure."""

    def __init__(
        self,
        backend: NetworkBackend,
        settle_delay: float = SETTLE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.backend = backend
        self.settle_delay = settle_delay
        self.sleep = sleep
        self.state = ApplyState.STAGED

    def apply(self, artifact: ConfigArtifact, backup: Backup) -> ApplyResult:
        missing = [t for t in artifact.targets if not backup.covers(t)]
        if missing:
            # Refuse to touch anything we could not put back.
            raise ApplyFailed(
                f"Backup {backup.path} does not cover {', '.join(map(str, missing))}",
                rolled_back=False,
            )

        self.state = ApplyState.APPLYING
        if not self.backend.live_reload:
            self._install(artifact, backup)
            self.state = ApplyState.PENDING_REBOOT
            log.warning(
                "%s cannot reload networking live. Configuration saved; "
                "reboot required to apply changes.", self.backend.name
            )
            return ApplyResult(state=self.state, requested_ip=artifact.ip_address)

        self._install(artifact, backup)
        log.warning("Network connectivity will be interrupted briefly")
        if not self.backend.reload():
            log.error("Failed to apply network configuration")
            self._rollback(artifact, backup)
            raise ApplyFailed(
                f"Network reload failed; configuration restored from {backup.path}"
            )
        log.info("Network configuration applied successfully")

        self.sleep(self.settle_delay)
        live = self.backend.live_ip(artifact.interface)
        result = ApplyResult(
            state=ApplyState.VERIFIED, requested_ip=artifact.ip_address, live_ip=live
        )
        if live == artifact.ip_address:
            log.info("New IP address verified: %s", live)
        else:
            result.state = ApplyState.MISMATCH
            msg = f"IP address check shows: {live or 'none'} (expected: {artifact.ip_address})"
            result.warnings.append(msg)
            log.warning(msg)
        self.state = result.state
        return result

    def _install(self, artifact: ConfigArtifact, backup: Backup) -> None:
        try:
            for staged in artifact.files:
                install_file(staged)
        except OSError as e:
            log.error("Could not install new configuration: %s", e)
            self._rollback(artifact, backup, reload=False)
            raise ApplyFailed(f"Could not install new configuration: {e}") from e

    def _rollback(self, artifact: ConfigArtifact, backup: Backup, reload: bool = True) -> None:
        log.warning("Restoring backup from %s...", backup.path)
        backup.restore(artifact.targets)
        if reload and self.backend.live_reload:
            if self.backend.reload():
                log.info("Backup restored and networking reloaded")
            else:
                log.error("Reload after restore also failed; check the console")
        self.state = ApplyState.ROLLED_BACK
