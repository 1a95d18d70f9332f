# config.py
from __future__ import annotations
import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List

import yaml

from logger import log

CONFIG_PATH = Path("/etc/pve-readdress.yaml")

BACKENDS = ("auto", "ifupdown", "netplan")


@dataclass
class Settings:
    backend: str = "auto"
    vm_timeout: int = 120
    poll_interval: int = 5
    settle_delay: float = 2.0
    host_action_delay: int = 10
    run_checks: bool = True
    default_dns: List[str] = field(default_factory=lambda: ["8.8.8.8", "8.8.4.4"])
    backup_root: Path = Path("/root")
    interfaces_file: Path = Path("/etc/network/interfaces")
    netplan_dir: Path = Path("/etc/netplan")
    cloud_cfg_dir: Path = Path("/etc/cloud/cloud.cfg.d")
    hosts_file: Path = Path("/etc/hosts")
    resolv_conf: Path = Path("/etc/resolv.conf")
    issue_file: Path = Path("/etc/issue")
    pve_dir: Path = Path("/etc/pve")
    lock_file: Path = Path("/run/pve-readdress.lock")

    @property
    def corosync_conf(self) -> Path:
        return self.pve_dir / "corosync.conf"

    @property
    def pve_version_file(self) -> Path:
        return self.pve_dir / ".version"


_PATH_FIELDS = {f.name for f in dataclasses.fields(Settings) if f.type in ("Path", Path)}


def _coerce(name: str, value):
    if name in _PATH_FIELDS:
        return Path(value)
    if name == "default_dns" and isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    return value


def load_settings(path: Optional[Path] = None, **overrides) -> Settings:
    """Build Settings from defaults, the YAML file (if any), then overrides.

    Overrides whose value is None are ignored so argparse defaults can be
    passed straight through.
    """
    path = Path(path) if path else CONFIG_PATH
    values = {}
    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping at top level")
        known = {f.name for f in dataclasses.fields(Settings)}
        for key, value in data.items():
            key = str(key).replace("-", "_")
            if key not in known:
                log.warning("Ignoring unknown setting %r in %s", key, path)
                continue
            values[key] = _coerce(key, value)
        log.info("Loaded settings from %s", path)

    for key, value in overrides.items():
        if value is not None:
            values[key] = _coerce(key, value)

    settings = Settings(**values)
    if settings.backend not in BACKENDS:
        raise ValueError(
            f"backend must be one of {', '.join(BACKENDS)}, got {settings.backend!r}"
        )
    return settings
