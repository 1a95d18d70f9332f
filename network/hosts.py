# network/hosts.py
from __future__ import annotations
from pathlib import Path
from typing import List, Optional, Tuple

from network.backend import StagedFile, write_staged


def _split_entry(line: str) -> Tuple[List[str], str]:
    """Return (tokens, comment) for one hosts line; comment keeps its '#'."""
    body, sep, comment = line.partition("#")
    return body.split(), (sep + comment).rstrip("\n")


def rewrite_hosts(
    text: str,
    current_ip: Optional[str],
    new_ip: str,
    hostname: str,
    fqdn: Optional[str] = None,
) -> str:
    """Point the host's own entry at `new_ip`, leaving everything else alone.

    Lines whose address is `current_ip` get the new address with the rest
    of the line unchanged. Other entries naming the host lose those names
    (and disappear if nothing is left). If no entry maps the host to
    `new_ip` afterwards, one is inserted after the last 127.* entry.
    """
    fqdn = fqdn or hostname
    own = {hostname, fqdn}
    lines = text.splitlines(keepends=True)
    out: List[str] = []
    host_mapped = False

    for line in lines:
        tokens, comment = _split_entry(line)
        if not tokens:
            out.append(line)
            continue
        addr, names = tokens[0], tokens[1:]

        names_host = bool(own & set(names))

        if current_ip and addr == current_ip:
            if names_host and host_mapped:
                # second entry for the host: keep only the other names
                names = [n for n in names if n not in own]
                if names:
                    out.append(_format(new_ip, names, comment, line))
                continue
            host_mapped = host_mapped or names_host
            lead = line[: len(line) - len(line.lstrip())]
            rest = line.lstrip()[len(addr):]
            out.append(f"{lead}{new_ip}{rest}")
            continue

        if names_host:
            if addr == new_ip and not host_mapped:
                host_mapped = True
                out.append(line)
                continue
            names = [n for n in names if n not in own]
            if names:
                out.append(_format(addr, names, comment, line))
            continue

        out.append(line)

    if not host_mapped:
        entry = f"{new_ip}\t{fqdn} {hostname}\n" if fqdn != hostname else f"{new_ip}\t{hostname}\n"
        idx = 0
        for i, line in enumerate(out):
            tokens, _ = _split_entry(line)
            if tokens and tokens[0].startswith("127."):
                idx = i + 1
        if idx and not out[idx - 1].endswith("\n"):
            out[idx - 1] += "\n"
        out.insert(idx, entry)
    return "".join(out)


def _format(addr: str, names: List[str], comment: str, original: str) -> str:
    line = f"{addr}\t{' '.join(names)}"
    if comment:
        line += f" {comment}"
    return line + ("\n" if original.endswith("\n") else "")


def stage_hosts(
    hosts_file: Path,
    current_ip: Optional[str],
    new_ip: str,
    hostname: str,
    fqdn: Optional[str] = None,
) -> StagedFile:
    text = hosts_file.read_text() if hosts_file.is_file() else ""
    return write_staged(hosts_file, rewrite_hosts(text, current_ip, new_ip, hostname, fqdn))
