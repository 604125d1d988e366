"""
Brief: Tests for interface enumeration on top of psutil.

Inputs:
  - None

Outputs:
  - None
"""

import ipaddress
import socket
from collections import namedtuple

import pytest

from mdnsresponder import network
from mdnsresponder.network import AddressEntry, Interface, address_scope, parse_address

snic = namedtuple("snic", "family address netmask broadcast ptp")
snicstats = namedtuple("snicstats", "isup duplex speed mtu flags")


@pytest.fixture
def fake_psutil(monkeypatch):
    addrs = {
        "lo": [
            snic(socket.AF_INET, "127.0.0.1", "255.0.0.0", None, None),
            snic(socket.AF_INET6, "::1", "ffff:ffff:ffff:ffff:ffff:ffff:ffff:ffff", None, None),
        ],
        "eth0": [
            snic(getattr(socket, "AF_PACKET", -1), "aa:bb:cc:dd:ee:ff", None, None, None),
            snic(socket.AF_INET, "192.168.1.10", "255.255.255.0", None, None),
            snic(socket.AF_INET6, "fe80::10%eth0", "ffff:ffff:ffff:ffff::", None, None),
        ],
        "dummy0": [snic(socket.AF_INET, "10.9.9.9", None, None, None)],
    }
    stats = {
        "lo": snicstats(True, 0, 0, 65536, "up,loopback,running"),
        "eth0": snicstats(True, 2, 1000, 1500, "up,broadcast,running,multicast"),
    }
    monkeypatch.setattr(network.psutil, "net_if_addrs", lambda: addrs)
    monkeypatch.setattr(network.psutil, "net_if_stats", lambda: stats)
    monkeypatch.setattr(network, "_interface_index", lambda name: {"lo": 1, "eth0": 2}.get(name, 0))


def test_parse_address_strips_scope() -> None:
    assert parse_address("fe80::1%eth0") == ipaddress.ip_address("fe80::1")
    assert parse_address("10.0.0.1") == ipaddress.ip_address("10.0.0.1")
    assert parse_address("laptop.local") is None


def test_address_entry_contains() -> None:
    entry = AddressEntry(ipaddress.ip_address("192.168.1.10"), 24)
    assert entry.contains("192.168.1.200")
    assert not entry.contains("192.168.2.1")
    assert not entry.contains("fe80::1")
    assert not entry.contains("garbage")
    v6 = AddressEntry(ipaddress.ip_address("fe80::10"), 64)
    assert v6.contains("fe80::99%wlan0")


def test_all_interfaces_maps_psutil_snapshot(fake_psutil) -> None:
    """
    Brief: all_interfaces() builds entries, prefixes and multicast flags.

    Inputs:
      - fake_psutil fixture

    Outputs:
      - None: Asserts per-interface snapshot contents
    """
    by_name = {i.name: i for i in network.all_interfaces()}

    eth0 = by_name["eth0"]
    assert eth0.can_multicast is True
    assert eth0.index == 2
    assert [(str(e.ip), e.prefix_length) for e in eth0.entries] == [
        ("192.168.1.10", 24),
        ("fe80::10", 64),
    ]
    assert eth0.has_ipv4 and eth0.has_ipv6
    assert str(eth0.first_ipv4()) == "192.168.1.10"

    lo = by_name["lo"]
    assert lo.can_multicast is False
    assert [e.prefix_length for e in lo.entries] == [8, 128]

    # No stats entry: not multicast-capable; missing netmask means host route
    dummy = by_name["dummy0"]
    assert dummy.can_multicast is False
    assert dummy.entries[0].prefix_length == 32
    assert not dummy.has_ipv6
    assert dummy.first_ipv4() is not None


def test_can_multicast_without_flags_falls_back_to_isup() -> None:
    legacy = namedtuple("legacy", "isup duplex speed mtu")
    assert network._can_multicast(legacy(True, 0, 0, 1500)) is True
    assert network._can_multicast(legacy(False, 0, 0, 1500)) is False


def test_local_hostname_drops_domain(monkeypatch) -> None:
    monkeypatch.setattr(network.socket, "gethostname", lambda: "laptop.example.com")
    assert network.local_hostname() == "laptop"
    monkeypatch.setattr(network.socket, "gethostname", lambda: "")
    assert network.local_hostname() == "localhost"


def test_local_hostname_is_lower_cased(monkeypatch) -> None:
    monkeypatch.setattr(network.socket, "gethostname", lambda: "Laptop.Example.com")
    assert network.local_hostname() == "laptop"


def test_address_scope_and_interface_ownership() -> None:
    assert address_scope("fe80::1%wlan0") == "wlan0"
    assert address_scope("fe80::1%3") == "3"
    assert address_scope("fe80::1") is None
    assert address_scope("fe80::1%") is None

    wlan0 = Interface(name="wlan0", can_multicast=True, index=3)
    assert wlan0.owns_scope("wlan0")
    assert wlan0.owns_scope("3")
    assert not wlan0.owns_scope("eth0")
    assert not Interface(name="eth0", can_multicast=True).owns_scope("0")
