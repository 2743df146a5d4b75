"""Local network interface helpers."""
from __future__ import annotations

import ipaddress

import ifaddr


def get_external_ipv4_addresses() -> list[str]:
    """Return non-loopback IPv4 addresses of the local network interfaces."""
    addresses: list[str] = []
    for adapter in ifaddr.get_adapters():
        for ip in adapter.ips:
            # IPv6 entries are (address, flowinfo, scope_id) tuples
            if not isinstance(ip.ip, str):
                continue
            if ipaddress.IPv4Address(ip.ip).is_loopback:
                continue
            if ip.ip not in addresses:
                addresses.append(ip.ip)
    return addresses
