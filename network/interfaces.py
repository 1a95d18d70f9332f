# network/interfaces.py
from __future__ import annotations
import os
import re
import socket
import subprocess
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, List, Tuple
from logger import log

SYS_NET = "/sys/class/net"
BRIDGE_RE = re.compile(r"^vmbr\d+$")
PHYSICAL_RE = re.compile(r"^(en\w+|eth\d+)$")


@dataclass
class InterfaceInfo:
    name: str
    operstate: str          # "up" | "down" | "unknown"
    kind: str               # "bridge" | "physical" | "loopback" | "virtual"
    mac: str
    ip_addresses: List[str]  # CIDR notation

    @property
    def ipv4(self) -> Optional[str]:
        """First IPv4 address without prefix, or None."""
        if not self.ip_addresses:
            return None
        return self.ip_addresses[0].split("/")[0]

    @property
    def prefix_len(self) -> Optional[int]:
        if not self.ip_addresses:
            return None
        return int(self.ip_addresses[0].split("/")[1])

    def display_str(self) -> str:
        state = self.operstate.upper()
        ips = ", ".join(self.ip_addresses) if self.ip_addresses else "no IP"
        return (
            f"{self.name:<12} {self.kind:<9} {state:<6}  {self.mac}  [{ips}]"
        )


def _read_sysfs(iface: str, attr: str, default: Optional[str] = None) -> Optional[str]:
    path = os.path.join(SYS_NET, iface, attr)
    try:
        with open(path) as f:
            return f.read().strip()
    except OSError:
        return default


def _get_kind(iface: str) -> str:
    if iface == "lo":
        return "loopback"
    if os.path.isdir(os.path.join(SYS_NET, iface, "bridge")):
        return "bridge"
    if os.path.exists(os.path.join(SYS_NET, iface, "device")):
        return "physical"
    return "virtual"


def _get_ip_addresses(iface: str) -> List[str]:
    try:
        result = subprocess.run(
            ["ip", "-j", "addr", "show", iface],
            capture_output=True, text=True, timeout=2
        )
        data = json.loads(result.stdout)
        addrs = []
        for entry in data:
            for ai in entry.get("addr_info", []):
                if ai.get("family") == "inet":
                    addrs.append(f"{ai['local']}/{ai['prefixlen']}")
        return addrs
    except Exception as e:
        log.debug(f"ip addr failed for {iface}: {e}")
        return []


def get_interface_info(iface: str) -> InterfaceInfo:
    operstate = _read_sysfs(iface, "operstate", "unknown")
    mac = _read_sysfs(iface, "address", "")
    return InterfaceInfo(
        name=iface,
        operstate=operstate or "unknown",
        kind=_get_kind(iface),
        mac=mac or "",
        ip_addresses=_get_ip_addresses(iface),
    )


def list_interfaces(exclude_lo: bool = True) -> List[InterfaceInfo]:
    """Return all interfaces from /sys/class/net, sorted by name."""
    try:
        ifaces = sorted(os.listdir(SYS_NET))
    except OSError:
        return []
    result = []
    for name in ifaces:
        if exclude_lo and name == "lo":
            continue
        result.append(get_interface_info(name))
    return result


def bridge_members(bridge: str) -> List[str]:
    try:
        return sorted(os.listdir(os.path.join(SYS_NET, bridge, "brif")))
    except OSError:
        return []


def detect_bridge(ifaces: List[InterfaceInfo]) -> Optional[str]:
    """First vmbrN carrying an IPv4 address, else the first vmbrN."""
    bridges = [i for i in ifaces if BRIDGE_RE.match(i.name)]
    for i in bridges:
        if i.ip_addresses:
            return i.name
    return bridges[0].name if bridges else None


def detect_physical(ifaces: List[InterfaceInfo], bridge: Optional[str] = None) -> Optional[str]:
    if bridge:
        for member in bridge_members(bridge):
            if PHYSICAL_RE.match(member):
                return member
    for i in ifaces:
        if PHYSICAL_RE.match(i.name):
            return i.name
    return None


def default_route() -> Tuple[Optional[str], Optional[str]]:
    """Return (gateway, device) of the IPv4 default route."""
    try:
        result = subprocess.run(
            ["ip", "-j", "route", "show", "default"],
            capture_output=True, text=True, timeout=2
        )
        routes = json.loads(result.stdout or "[]")
    except Exception as e:
        log.debug(f"ip route failed: {e}")
        return None, None
    for r in routes:
        if r.get("gateway"):
            return r["gateway"], r.get("dev")
    return None, None


def get_live_ip(iface: str) -> Optional[str]:
    addrs = _get_ip_addresses(iface)
    return addrs[0].split("/")[0] if addrs else None


def read_nameservers(resolv_conf: Path) -> List[str]:
    servers = []
    try:
        text = Path(resolv_conf).read_text()
    except OSError:
        return servers
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "nameserver":
            servers.append(parts[1])
    return servers


def host_names() -> Tuple[str, str]:
    """Return (hostname, fqdn)."""
    hostname = socket.gethostname().split(".")[0]
    fqdn = socket.getfqdn() or hostname
    return hostname, fqdn
