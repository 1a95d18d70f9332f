# network/ifupdown.py
from __future__ import annotations
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from config import Settings
from logger import log
from network.backend import ConfigArtifact, NetworkBackend, StagedFile, write_staged
from state import CurrentNetwork, NetworkConfig

HEADER = "# Network configuration generated by pve-readdress\n"
INDENT = "\t"
AUTO = "auto"
DEFAULT_BRIDGE_OPTS = ["bridge-stp off", "bridge-fd 0"]
# Options of the target stanza that are rebuilt from the new address.
REGENERATED_OPTS = ("address", "netmask", "broadcast", "network", "gateway", "dns-nameservers")

_STANZA_WORDS = ("auto", "iface", "mapping", "source", "source-directory", "rename")


def _is_stanza_start(line: str) -> bool:
    if not line or line[0].isspace() or line.startswith("#"):
        return False
    word = line.split()[0]
    return word in _STANZA_WORDS or word.startswith("allow-")


def parse_stanzas(text: str) -> Tuple[List[str], List[List[str]]]:
    """Split an interfaces file into (preamble, stanzas).

    A stanza is a top-level keyword line plus every following indented,
    comment or blank line. Lines keep their line endings.
    """
    preamble: List[str] = []
    stanzas: List[List[str]] = []
    for line in text.splitlines(keepends=True):
        if _is_stanza_start(line):
            stanzas.append([line])
        elif stanzas:
            stanzas[-1].append(line)
        else:
            preamble.append(line)
    return preamble, stanzas


def _strip_trailing_blank(lines: List[str]) -> List[str]:
    lines = list(lines)
    while lines and not lines[-1].strip():
        lines.pop()
    if lines and not lines[-1].endswith("\n"):
        lines[-1] += "\n"
    return lines


def _split_stanzas(
    stanzas: List[List[str]], managed: set, target: str
) -> Tuple[List[List[str]], List[str]]:
    """Return (kept stanzas, option/comment lines of the old target stanza)."""
    kept: List[List[str]] = []
    target_lines: List[str] = []
    for stanza in stanzas:
        words = stanza[0].split()
        keyword = words[0]
        if keyword == "auto" or keyword.startswith("allow-"):
            names = [n for n in words[1:] if n not in managed]
            if not names:
                continue
            if len(names) != len(words) - 1:
                stanza = [f"{keyword} {' '.join(names)}\n"] + stanza[1:]
            kept.append(stanza)
        elif keyword == "iface" and len(words) >= 3 and words[1] in managed and words[2] == "inet":
            if words[1] == target:
                target_lines = [l for l in stanza[1:] if l.strip()]
        else:
            kept.append(stanza)
    return kept, target_lines


def render_interfaces(
    config: NetworkConfig, existing: str, generated: Optional[datetime] = None
) -> str:
    """Regenerate the managed stanzas and splice in everything else.

    Regenerated: header, lo, the bridge port (when bridged) and the target
    stanza. Kept verbatim: every other stanza, including inet6 stanzas of
    the managed interfaces and source lines. bridge-* options and comment
    lines of the old target stanza are carried into the new one. Any other
    option of it is dropped with a warning.
    """
    generated = generated or datetime.now()
    target = config.target_interface
    _, stanzas = parse_stanzas(existing)

    physical = config.physical
    managed = {"lo", target}
    if config.bridge and physical:
        managed.add(physical)

    kept, target_lines = _split_stanzas(stanzas, managed, target)

    bridge_opts: List[str] = []
    comments: List[str] = []
    dropped: List[str] = []
    for line in target_lines:
        stripped = line.strip()
        if stripped.startswith("#"):
            comments.append(stripped)
        elif stripped.startswith("bridge-") or stripped.startswith("bridge_"):
            bridge_opts.append(stripped)
        elif stripped.split()[0] not in REGENERATED_OPTS:
            dropped.append(stripped)
    if dropped:
        log.warning(
            "Options of the old %s stanza not carried over: %s", target, "; ".join(dropped)
        )

    out = [HEADER, f"# Generated: {generated:%Y-%m-%d %H:%M:%S}\n", "\n"]
    out += ["auto lo\n", "iface lo inet loopback\n", "\n"]

    if config.bridge:
        if physical:
            out += [f"auto {physical}\n", f"iface {physical} inet manual\n", "\n"]
        if not bridge_opts:
            bridge_opts = [f"bridge-ports {physical or 'none'}"] + DEFAULT_BRIDGE_OPTS

    out.append(f"auto {target}\n")
    out.append(f"iface {target} inet static\n")
    out.append(f"{INDENT}address {config.cidr}\n")
    out.append(f"{INDENT}gateway {config.gateway}\n")
    if config.dns_servers:
        out.append(f"{INDENT}dns-nameservers {' '.join(config.dns_servers)}\n")
    if config.bridge:
        out += [f"{INDENT}{opt}\n" for opt in bridge_opts]
    out += [f"{c}\n" for c in comments]

    prev_auto = False
    for stanza in kept:
        lines = _strip_trailing_blank(stanza)
        # auto/allow lines stay glued to the stanza that follows them
        if not prev_auto:
            out.append("\n")
        out += lines
        word = lines[0].split()[0]
        prev_auto = word == "auto" or word.startswith("allow-")
    return "".join(out)


class InterfacesBackend(NetworkBackend):
    uses_bridge = True

    def __init__(self, settings: Settings, reload_tool: Optional[str] = AUTO) -> None:
        super().__init__(settings)
        if reload_tool == AUTO:
            reload_tool = shutil.which("ifreload")
        self.reload_tool = reload_tool

    @property
    def name(self) -> str:
        return "ifupdown2" if self.reload_tool else "ifupdown (legacy)"

    @property
    def live_reload(self) -> bool:
        return bool(self.reload_tool)

    def backup_paths(self) -> Tuple[List[Path], List[Path]]:
        return [self.settings.interfaces_file], []

    def stage(self, config: NetworkConfig, current: CurrentNetwork) -> List[StagedFile]:
        existing = self.settings.interfaces_file.read_text()
        content = render_interfaces(config, existing)
        log.info("Network configuration written for %s", config.target_interface)
        return [write_staged(self.settings.interfaces_file, content)]

    def reload(self) -> bool:
        if not self.reload_tool:
            return False
        return self._run([self.reload_tool, "-a"])

    def manual_steps(self, artifact: ConfigArtifact) -> List[str]:
        steps = [f"cp {f.staged} {f.target}" for f in artifact.files]
        return steps + ["ifreload -a    (or reboot)"]
