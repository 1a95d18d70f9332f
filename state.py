# state.py
from __future__ import annotations
import enum
from dataclasses import dataclass, field
from typing import Optional, List, Tuple, Any


@dataclass(frozen=True)
class NetworkConfig:
    interface: str
    ip_address: str
    netmask: str
    prefix_len: int
    gateway: str
    bridge: Optional[str] = None
    physical: Optional[str] = None
    dns_servers: Tuple[str, ...] = ()

    @property
    def target_interface(self) -> str:
        return self.bridge or self.interface

    @property
    def cidr(self) -> str:
        return f"{self.ip_address}/{self.prefix_len}"


@dataclass
class CurrentNetwork:
    """Best-effort snapshot of the live settings; any field may be empty."""
    interface: str = ""
    bridge: Optional[str] = None
    physical: Optional[str] = None
    ip_address: str = ""
    prefix_len: Optional[int] = None
    gateway: str = ""
    dns_servers: List[str] = field(default_factory=list)
    hostname: str = ""
    fqdn: str = ""


class Stage(enum.IntEnum):
    STARTED = 0
    COLLECTED = 1
    BACKED_UP = 2
    STAGED = 3
    APPLIED = 4
    DRAINED = 5
    FINISHED = 6


@dataclass
class RunState:
    stage: Stage = Stage.STARTED
    config: Optional[NetworkConfig] = None
    backup: Any = None          # network.backup.Backup
    artifact: Any = None        # network.backend.ConfigArtifact
    apply_result: Any = None    # network.apply.ApplyResult
    drain_report: Any = None    # hypervisor.drain.DrainReport

    def advance(self, stage: Stage) -> None:
        self.stage = stage

    @property
    def can_rollback(self) -> bool:
        return self.backup is not None and self.stage >= Stage.STAGED
