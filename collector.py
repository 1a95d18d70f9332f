# collector.py
from __future__ import annotations
from typing import Callable, Optional, Sequence, Tuple

from config import Settings
from errors import PreconditionError
from logger import log
from network.backend import NetworkBackend
from network.interfaces import (
    BRIDGE_RE, bridge_members, default_route, detect_bridge, detect_physical,
    host_names, list_interfaces, read_nameservers, PHYSICAL_RE,
)
from prompts import Prompter
from state import CurrentNetwork, NetworkConfig
from validators import (
    parse_mask, prefix_to_mask, split_dns, validate_dns,
    validate_gateway_in_subnet, validate_ip, validate_mask,
)

DEFAULT_MASK = "255.255.255.0"
NO_DNS = "none"


def detect_current(backend: NetworkBackend, settings: Settings) -> CurrentNetwork:
    """Read the live host for best-effort defaults."""
    ifaces = list_interfaces()
    gateway, route_dev = default_route()
    bridge = detect_bridge(ifaces) if backend.uses_bridge else None
    physical = detect_physical(ifaces, bridge)
    interface = bridge or route_dev or physical
    if not interface:
        raise PreconditionError("Could not detect primary network interface")
    if bridge:
        log.info("Detected bridge interface: %s", bridge)
    else:
        log.info("Detected network interface: %s", interface)
    if physical:
        log.info("Physical interface: %s", physical)

    info = next((i for i in ifaces if i.name == interface), None)
    hostname, fqdn = host_names()
    current = CurrentNetwork(
        interface=interface,
        bridge=bridge,
        physical=physical,
        ip_address=(info.ipv4 if info else None) or "",
        prefix_len=info.prefix_len if info else None,
        gateway=gateway or "",
        # 127.0.0.53 is the systemd-resolved stub, not a real upstream
        dns_servers=[s for s in read_nameservers(settings.resolv_conf) if not s.startswith("127.")],
        hostname=hostname,
        fqdn=fqdn,
    )
    if current.ip_address:
        log.info("Current IP address: %s/%s", current.ip_address, current.prefix_len)
    if current.gateway:
        log.info("Current gateway: %s", current.gateway)
    return current


def _ask(
    prompter: Prompter,
    field: str,
    default: Optional[str],
    validate: Callable[[str], Tuple[bool, str]],
) -> str:
    """Prompt until `validate` accepts. There is no retry limit."""
    while True:
        value = prompter.prompt(field, default).strip()
        if not value:
            prompter.error(f"{field} is required.")
            continue
        ok, msg = validate(value)
        if ok:
            return value
        log.debug("Rejected %s: %r (%s)", field, value, msg)
        prompter.error(f"{msg} Please try again.")


def _validate_dns_list(raw: str) -> Tuple[bool, str]:
    if raw.lower() == NO_DNS:
        return True, ""
    for server in split_dns(raw):
        ok, msg = validate_dns(server)
        if not ok:
            return False, msg
    return True, ""


def _bridge_for(iface: str, current: CurrentNetwork) -> Tuple[Optional[str], Optional[str]]:
    """Return (bridge, physical port) when `iface` should be written as a bridge."""
    if current.bridge is None:
        return None, None
    if iface == current.bridge:
        return iface, current.physical
    if BRIDGE_RE.match(iface):
        ports = [m for m in bridge_members(iface) if PHYSICAL_RE.match(m)]
        return iface, ports[0] if ports else None
    return None, None


def summary_text(config: NetworkConfig, current: CurrentNetwork) -> str:
    lines = []
    if config.bridge:
        lines.append(f"  Bridge: {config.bridge}")
        lines.append(f"  Physical Interface: {config.physical or '-'}")
    else:
        lines.append(f"  Interface: {config.interface}")
    if current.ip_address:
        lines.append(f"  Current IP: {current.ip_address}/{current.prefix_len}")
    lines.append(f"  New IP: {config.cidr} ({config.netmask})")
    lines.append(f"  Gateway: {config.gateway}")
    lines.append(f"  DNS: {', '.join(config.dns_servers) or '-'}")
    return "\n".join(lines)


def prompt_new(
    prompter: Prompter,
    current: CurrentNetwork,
    interfaces: Sequence[str],
    default_dns: Sequence[str] = (),
) -> Optional[NetworkConfig]:
    """Gather and validate the target configuration.

    Returns None when the operator rejects the summary.
    """
    known = set(interfaces)
    iface = _ask(
        prompter, "Interface to re-address", current.interface or None,
        lambda v: (v in known, f"Unknown interface '{v}'."),
    )

    mask_default = prefix_to_mask(current.prefix_len) if current.prefix_len is not None else DEFAULT_MASK
    while True:
        ip = _ask(prompter, "Enter new IP address", current.ip_address or None, validate_ip)
        mask_raw = _ask(prompter, "Enter subnet mask (e.g., 255.255.255.0)", mask_default, validate_mask)
        mask, prefix = parse_mask(mask_raw)
        ok, msg = validate_ip(ip, prefix_len=prefix)
        if ok:
            break
        prompter.error(msg)

    gateway_default = current.gateway or None
    gateway = _ask(
        prompter, "Enter gateway IP address", gateway_default,
        lambda v: validate_gateway_in_subnet(v, ip, prefix),
    )

    dns_default = ", ".join(current.dns_servers or default_dns) or NO_DNS
    dns_raw = _ask(
        prompter, f"Enter DNS servers (comma-separated, \"{NO_DNS}\" for none)",
        dns_default, _validate_dns_list,
    )
    dns = [] if dns_raw.lower() == NO_DNS else split_dns(dns_raw)

    bridge, physical = _bridge_for(iface, current)
    config = NetworkConfig(
        interface=iface,
        ip_address=ip,
        netmask=mask,
        prefix_len=prefix,
        gateway=gateway,
        bridge=bridge,
        physical=physical,
        dns_servers=tuple(dns),
    )

    prompter.show("Configuration Summary", summary_text(config, current))
    if not prompter.confirm("Is this configuration correct?"):
        log.warning("Configuration cancelled by user")
        return None
    log.info(
        "Network config: iface=%s ip=%s gw=%s dns=%s",
        config.target_interface, config.cidr, config.gateway, list(config.dns_servers),
    )
    return config
