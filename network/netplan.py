# network/netplan.py
from __future__ import annotations
import shutil
from pathlib import Path
from typing import Optional, List, Tuple

import yaml

from config import Settings
from errors import PreconditionError
from logger import log
from network.backend import ConfigArtifact, NetworkBackend, StagedFile, write_staged
from state import CurrentNetwork, NetworkConfig

# Checked in order when no file mentions the interface.
KNOWN_FILES = ("00-installer-config.yaml", "50-cloud-init.yaml", "01-netcfg.yaml")
DEFAULT_FILE = "00-installer-config.yaml"
CLOUD_INIT_DISABLE = "99-disable-network-config.cfg"
CLOUD_INIT_DISABLE_CONTENT = "network: {config: disabled}\n"


def render_netplan(config: NetworkConfig, existing: Optional[str]) -> str:
    """Rewrite only the target interface entry of a netplan document."""
    doc = yaml.safe_load(existing) if existing else None
    if not isinstance(doc, dict):
        doc = {}
    network = doc.setdefault("network", {})
    network.setdefault("version", 2)
    network.setdefault("renderer", "networkd")

    iface = config.target_interface
    section = "ethernets"
    if iface in (network.get("bridges") or {}):
        section = "bridges"
    elif iface in (network.get("bonds") or {}):
        section = "bonds"
    elif iface in (network.get("vlans") or {}):
        section = "vlans"
    if not isinstance(network.get(section), dict):
        network[section] = {}
    entry = network[section].get(iface) or {}

    entry.pop("gateway4", None)
    entry["dhcp4"] = False
    entry["addresses"] = [config.cidr]
    routes = [r for r in entry.get("routes") or [] if r.get("to") not in ("default", "0.0.0.0/0")]
    entry["routes"] = [{"to": "default", "via": config.gateway}] + routes
    nameservers = entry.get("nameservers") or {}
    if config.dns_servers:
        nameservers["addresses"] = list(config.dns_servers)
    else:
        nameservers.pop("addresses", None)
    if nameservers:
        entry["nameservers"] = nameservers
    else:
        entry.pop("nameservers", None)
    network[section][iface] = entry

    return yaml.safe_dump(doc, default_flow_style=False, sort_keys=False)


class NetplanBackend(NetworkBackend):
    name = "netplan"

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self.netplan_dir = Path(settings.netplan_dir)

    @property
    def live_reload(self) -> bool:
        return shutil.which("netplan") is not None

    def locate_file(self, iface: Optional[str] = None) -> Path:
        """The YAML file that configures `iface`, else the first known file."""
        unreadable = set()
        for f in sorted(self.netplan_dir.glob("*.yaml")):
            try:
                doc = yaml.safe_load(f.read_text()) or {}
            except (OSError, yaml.YAMLError) as e:
                log.warning("Skipping unreadable netplan file %s: %s", f, e)
                unreadable.add(f)
                continue
            if not iface:
                continue
            network = doc.get("network") or {} if isinstance(doc, dict) else {}
            for section in ("ethernets", "bridges", "bonds", "vlans"):
                if iface in (network.get(section) or {}):
                    return f
        for name in KNOWN_FILES:
            path = self.netplan_dir / name
            if path.is_file() and path not in unreadable:
                return path
        path = self.netplan_dir / DEFAULT_FILE
        if path in unreadable:
            # stage() raises PreconditionError for it
            return path
        log.warning("No existing netplan configuration found. Creating new file: %s", path)
        return path

    def _cloud_init_file(self) -> Optional[Path]:
        cfg_dir = Path(self.settings.cloud_cfg_dir)
        return cfg_dir / CLOUD_INIT_DISABLE if cfg_dir.is_dir() else None

    def backup_paths(self) -> Tuple[List[Path], List[Path]]:
        if not self.netplan_dir.is_dir():
            return [self.netplan_dir], []
        optional = sorted(self.netplan_dir.glob("*.yaml"))
        optional.append(self.netplan_dir / DEFAULT_FILE)
        cloud = self._cloud_init_file()
        if cloud is not None:
            optional.append(cloud)
        return [], optional

    def stage(self, config: NetworkConfig, current: CurrentNetwork) -> List[StagedFile]:
        path = self.locate_file(config.target_interface)
        log.info("Using netplan file: %s", path)
        existing = path.read_text() if path.is_file() else None
        try:
            content = render_netplan(config, existing)
        except yaml.YAMLError as e:
            raise PreconditionError(f"{path}: invalid netplan YAML: {e}") from e
        staged = [write_staged(path, content, mode=0o600)]

        cloud = self._cloud_init_file()
        if cloud is not None:
            staged.append(write_staged(cloud, CLOUD_INIT_DISABLE_CONTENT))
            log.info("Cloud-init network management will be disabled via %s", cloud)
        return staged

    def reload(self) -> bool:
        if not self._run(["netplan", "generate"]):
            log.error("Netplan configuration validation failed")
            return False
        return self._run(["netplan", "apply"])

    def manual_steps(self, artifact: ConfigArtifact) -> List[str]:
        steps = [f"cp {f.staged} {f.target}" for f in artifact.files]
        return steps + ["netplan apply"]
