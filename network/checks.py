# network/checks.py
from __future__ import annotations
import asyncio
from dataclasses import dataclass
from typing import Optional, List, Sequence
from logger import log

PVE_WEB_PORT = 8006


@dataclass
class CheckResult:
    label: str
    target: str
    port: Optional[int]
    passed: bool
    error: str = ""

    @property
    def status_icon(self) -> str:
        return "✓" if self.passed else "✗"

    def __str__(self) -> str:
        port_str = f":{self.port}" if self.port else ""
        status = "PASS" if self.passed else f"FAIL ({self.error})"
        return f"[{self.status_icon}] {self.label}: {self.target}{port_str} -> {status}"


async def check_tcp(
    host: str, port: int, *, label: str, timeout: float = 10.0
) -> CheckResult:
    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port), timeout=timeout
        )
        writer.close()
        await writer.wait_closed()
        log.info("TCP check PASS: %s:%s", host, port)
        return CheckResult(label=label, target=host, port=port, passed=True)
    except asyncio.TimeoutError:
        log.warning("TCP check TIMEOUT: %s:%s", host, port)
        return CheckResult(label=label, target=host, port=port,
                           passed=False, error="timeout")
    except ConnectionRefusedError:
        log.warning("TCP check REFUSED: %s:%s", host, port)
        return CheckResult(label=label, target=host, port=port,
                           passed=False, error="connection refused")
    except OSError as e:
        log.warning("TCP check FAILED: %s:%s: %s", host, port, e)
        return CheckResult(label=label, target=host, port=port,
                           passed=False, error=str(e))


async def check_icmp(host: str, *, label: str, timeout: float = 5.0, count: int = 3) -> CheckResult:
    """ICMP ping via 'ping -c<count> -W<timeout>'."""
    try:
        proc = await asyncio.create_subprocess_exec(
            "ping", f"-c{count}", f"-W{int(timeout)}", host,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        returncode = await asyncio.wait_for(proc.wait(), timeout=timeout * count + 2)
        passed = (returncode == 0)
        log.info("ICMP check %s: %s", "PASS" if passed else "FAIL", host)
        return CheckResult(label=label, target=host, port=None, passed=passed,
                           error="" if passed else "no response")
    except asyncio.TimeoutError:
        log.warning("ICMP check TIMEOUT: %s", host)
        return CheckResult(label=label, target=host, port=None,
                           passed=False, error="timeout")
    except OSError as e:
        log.warning("ICMP check ERROR: %s: %s", host, e)
        return CheckResult(label=label, target=host, port=None,
                           passed=False, error=str(e))


def build_check_matrix(
    gateway: str,
    new_ip: str,
    dns_servers: Sequence[str] = (),
    proxmox: bool = False,
) -> List[dict]:
    """
    Returns list of post-apply check descriptors.
    Each dict: {label, host, port (None=ICMP), type ('tcp'|'icmp')}
    """
    checks: List[dict] = [{
        "label": "Gateway reachability",
        "host": gateway, "port": None, "type": "icmp",
    }]

    for server in dns_servers:
        checks.append({
            "label": f"DNS server ICMP ({server})",
            "host": server, "port": None, "type": "icmp",
        })

    if proxmox:
        checks.append({
            "label": "Proxmox web interface",
            "host": new_ip, "port": PVE_WEB_PORT, "type": "tcp",
        })

    return checks


async def run_all_checks(checks: List[dict], timeout: float = 10.0) -> List[CheckResult]:
    """Run every check concurrently. Results come back in check order."""

    async def _run_one(c: dict) -> CheckResult:
        if c["type"] == "icmp":
            return await check_icmp(c["host"], label=c["label"], timeout=timeout)
        return await check_tcp(c["host"], c["port"], label=c["label"], timeout=timeout)

    return list(await asyncio.gather(*(_run_one(c) for c in checks)))
