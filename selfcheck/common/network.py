"""Local network address lookup."""

import ipaddress
import socket

import psutil


def get_local_ipv4_address() -> str | None:
    """
    Return the IPv4 address of the first interface that is up and not loopback.

    Returns:
        Dotted-quad address, or None if no such interface exists
    """
    stats = psutil.net_if_stats()

    for iface, addrs in psutil.net_if_addrs().items():
        iface_stats = stats.get(iface)
        if iface_stats is None or not iface_stats.isup:
            continue

        for addr in addrs:
            if addr.family != socket.AF_INET:
                continue
            if ipaddress.ip_address(addr.address).is_loopback:
                continue
            return addr.address

    return None
