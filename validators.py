# validators.py
from __future__ import annotations
import ipaddress
import re
from typing import List, Tuple

from errors import InvalidMask

# One group: "0" or 1-3 digits without a leading zero.
_OCTET_RE = re.compile(r"0|[1-9][0-9]{0,2}")

# Mask octet -> number of leading one bits.
MASK_BITS = {255: 8, 254: 7, 252: 6, 248: 5, 240: 4, 224: 3, 192: 2, 128: 1, 0: 0}


def is_dotted_quad(address: str) -> bool:
    parts = address.split(".")
    if len(parts) != 4:
        return False
    for part in parts:
        if not _OCTET_RE.fullmatch(part) or int(part) > 255:
            return False
    return True


def validate_ip(address: str, prefix_len: int = None) -> Tuple[bool, str]:
    if not is_dotted_quad(address):
        return False, f"'{address}' is not a valid IPv4 address."

    if prefix_len is not None and prefix_len < 31:
        ip = ipaddress.IPv4Address(address)
        net = ipaddress.IPv4Network(f"{address}/{prefix_len}", strict=False)
        if ip == net.network_address:
            return False, f"{address} is the network address of {net}."
        if ip == net.broadcast_address:
            return False, f"{address} is the broadcast address of {net}."

    return True, ""


def mask_to_prefix(mask: str) -> int:
    """Convert a dotted subnet mask to a prefix length.

    Raises InvalidMask for malformed masks, octets outside MASK_BITS and
    non-contiguous masks such as 255.0.255.0.
    """
    if not is_dotted_quad(mask):
        raise InvalidMask(f"Invalid subnet mask: {mask}")
    prefix = 0
    seen_partial = False
    for octet in (int(p) for p in mask.split(".")):
        if octet not in MASK_BITS:
            raise InvalidMask(f"Invalid subnet mask: {mask}")
        if seen_partial and octet != 0:
            raise InvalidMask(f"Subnet mask {mask} is not contiguous.")
        if octet != 255:
            seen_partial = True
        prefix += MASK_BITS[octet]
    return prefix


def prefix_to_mask(prefix_len: int) -> str:
    return str(ipaddress.IPv4Network(f"0.0.0.0/{prefix_len}").netmask)


def parse_mask(value: str) -> Tuple[str, int]:
    """Accept '255.255.255.0', '24' or '/24'. Returns (mask, prefix_len)."""
    value = value.strip()
    bare = value[1:] if value.startswith("/") else value
    if bare.isdigit():
        prefix = int(bare)
        if not 0 <= prefix <= 32:
            raise InvalidMask(f"Prefix length must be 0-32, got {bare}.")
        return prefix_to_mask(prefix), prefix
    return value, mask_to_prefix(value)


def validate_mask(value: str) -> Tuple[bool, str]:
    try:
        parse_mask(value)
    except InvalidMask as e:
        return False, str(e)
    return True, ""


def validate_gateway_in_subnet(
    gateway: str, host_ip: str, prefix_len: int
) -> Tuple[bool, str]:
    if not is_dotted_quad(gateway):
        return False, f"'{gateway}' is not a valid gateway IP address."
    try:
        gw = ipaddress.IPv4Address(gateway)
        net = ipaddress.IPv4Network(f"{host_ip}/{prefix_len}", strict=False)
    except ValueError as e:
        return False, str(e)

    if gw not in net:
        return False, f"Gateway {gateway} is not in subnet {net}."
    if gateway == host_ip:
        return False, "Gateway must differ from the host address."
    return True, ""


def validate_dns(address: str) -> Tuple[bool, str]:
    if is_dotted_quad(address):
        return True, ""
    return False, f"'{address}' is not a valid DNS server IP."


def split_dns(raw: str) -> List[str]:
    """Split a comma and/or whitespace separated server list."""
    return [s for s in re.split(r"[,\s]+", raw.strip()) if s]
