"""Local interface and address enumeration.

Snapshots are taken fresh on every call so callers always see the current
OS topology. Nothing here is cached.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
from dataclasses import dataclass, field
from typing import List, Optional, Union

import psutil  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def parse_address(address: str) -> Optional[IPAddress]:
    """Brief: Parse an address string, dropping any IPv6 `%scope` suffix.

    Inputs:
      - address: Textual IPv4/IPv6 address (e.g. `fe80::1%eth0`).

    Outputs:
      - IPv4Address | IPv6Address, or None when the text is not an address.

    Example:
      >>> str(parse_address("fe80::1%eth0"))
      'fe80::1'
    """

    try:
        return ipaddress.ip_address(str(address).split("%", 1)[0])
    except ValueError:
        return None


def address_scope(address: str) -> Optional[str]:
    """Brief: Return the `%scope` zone of an IPv6 address, or None.

    Example:
      >>> address_scope("fe80::1%eth0")
      'eth0'
    """

    _, sep, scope = str(address).partition("%")
    return scope if sep and scope else None


@dataclass(frozen=True)
class AddressEntry:
    """Brief: One address bound to an interface together with its prefix.

    Inputs:
      - ip: Local address.
      - prefix_length: Subnet prefix length in bits.

    Outputs:
      - AddressEntry instance.
    """

    ip: IPAddress
    prefix_length: int

    @property
    def network(self) -> Union[ipaddress.IPv4Network, ipaddress.IPv6Network]:
        return ipaddress.ip_network(f"{self.ip}/{self.prefix_length}", strict=False)

    def contains(self, address: Union[str, IPAddress]) -> bool:
        """Return True when `address` lies inside this entry's subnet."""
        addr = parse_address(str(address)) if isinstance(address, str) else address
        if addr is None or addr.version != self.ip.version:
            return False
        return addr in self.network


@dataclass
class Interface:
    """Brief: Snapshot of a network interface.

    Inputs:
      - name: OS interface name.
      - can_multicast: Whether the interface is flagged multicast-capable.
      - entries: Address entries bound to the interface.
      - index: OS interface index (0 when unknown).

    Outputs:
      - Interface instance.
    """

    name: str
    can_multicast: bool
    entries: List[AddressEntry] = field(default_factory=list)
    index: int = 0

    @property
    def addresses(self) -> List[IPAddress]:
        return [e.ip for e in self.entries]

    @property
    def has_ipv4(self) -> bool:
        return any(a.version == 4 for a in self.addresses)

    @property
    def has_ipv6(self) -> bool:
        return any(a.version == 6 for a in self.addresses)

    def owns_scope(self, scope: str) -> bool:
        """Return True when `scope` names this interface, by name or index."""
        if scope == self.name:
            return True
        return scope.isdigit() and self.index != 0 and int(scope) == self.index

    def first_ipv4(self) -> Optional[ipaddress.IPv4Address]:
        for addr in self.addresses:
            if isinstance(addr, ipaddress.IPv4Address):
                return addr
        return None


def _prefix_length(netmask: Optional[str], version: int) -> int:
    """Brief: Convert a psutil netmask into a prefix length.

    Inputs:
      - netmask: Dotted IPv4 mask, IPv6 mask, or None.
      - version: IP version of the owning address.

    Outputs:
      - int: Prefix length; a host route when the mask is missing.
    """

    full = 32 if version == 4 else 128
    if not netmask:
        return full
    mask = parse_address(netmask)
    if mask is None or mask.version != version:
        return full
    return bin(int(mask)).count("1")


def _can_multicast(stats: object) -> bool:
    """Brief: Read the multicast flag from psutil interface stats.

    psutil exposes a comma-separated `flags` string on POSIX systems. Where
    it is missing the interface is treated as multicast-capable when up.
    """

    flags = getattr(stats, "flags", None)
    if isinstance(flags, str) and flags:
        return "multicast" in flags.split(",")
    return bool(getattr(stats, "isup", False))


def _interface_index(name: str) -> int:
    try:
        return socket.if_nametoindex(name)
    except (OSError, AttributeError):
        return 0


def all_interfaces() -> List[Interface]:
    """Brief: Enumerate local interfaces with their IPv4/IPv6 address entries.

    Inputs:
      - None

    Outputs:
      - list[Interface]: One entry per interface psutil reports. Interfaces
        without any IP address are included with an empty entry list.
    """

    addrs = psutil.net_if_addrs()
    stats = psutil.net_if_stats()

    interfaces: List[Interface] = []
    for name, snics in addrs.items():
        entries: List[AddressEntry] = []
        for snic in snics:
            if snic.family not in (socket.AF_INET, socket.AF_INET6):
                continue
            ip = parse_address(snic.address)
            if ip is None:
                continue
            entries.append(AddressEntry(ip, _prefix_length(snic.netmask, ip.version)))
        st = stats.get(name)
        interfaces.append(
            Interface(
                name=name,
                can_multicast=_can_multicast(st) if st is not None else False,
                entries=entries,
                index=_interface_index(name),
            )
        )
    return interfaces


def local_hostname() -> str:
    """Brief: Return the lower-cased machine name without any domain part.

    Example:
      - `Laptop.example.com` -> `laptop`
    """

    name = socket.gethostname().split(".", 1)[0].strip().lower()
    return name or "localhost"
