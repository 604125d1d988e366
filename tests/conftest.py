"""
Brief: Global pytest configuration and shared fakes for responder tests.

Inputs:
  - None

Outputs:
  - Fixtures providing fake timers, event loops, sockets and interfaces so
    tests never touch the real network.
"""

import ipaddress
import os
import signal
import sys
from typing import Dict, List, Optional, Tuple

import pytest

# Ensure 'src' is on sys.path so 'mdnsresponder' package is importable in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from mdnsresponder.network import AddressEntry, Interface  # noqa: E402


def _alarm_handler(signum, frame):
    """
    Brief: Signal handler that raises TimeoutError when alarm triggers.

    Inputs:
      - signum: signal number (int)
      - frame: current frame (ignored)

    Outputs:
      - None: Raises TimeoutError to fail the test
    """
    raise TimeoutError("Test exceeded 10 seconds")


if hasattr(signal, "SIGALRM"):
    signal.signal(signal.SIGALRM, _alarm_handler)


@pytest.fixture(autouse=True)
def enforce_test_timeout():
    """
    Brief: Enforce a hard 10-second timeout for each test.

    Inputs:
      - None

    Outputs:
      - None: Cancels alarm after test
    """
    if hasattr(signal, "SIGALRM"):
        signal.alarm(10)
        try:
            yield
        finally:
            signal.alarm(0)
    else:
        yield


class FakeTimer:
    """Brief: Stand-in for scheduler.Timer that records arming and fires on demand."""

    def __init__(self, callback=None):
        self.callback = callback
        self.delay: Optional[float] = None
        self.starts = 0
        self.cancels = 0

    @property
    def active(self) -> bool:
        return self.delay is not None

    def start(self, delay: float) -> None:
        self.starts += 1
        self.delay = delay

    def cancel(self) -> None:
        self.cancels += 1
        self.delay = None

    def fire(self) -> None:
        assert self.delay is not None, "timer fired while not armed"
        self.delay = None
        if self.callback is not None:
            self.callback()


class _FakeHandle:
    def __init__(self, loop, delay, callback, args):
        self.loop = loop
        self.delay = delay
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def run(self) -> None:
        self.callback(*self.args)


class FakeLoop:
    """Brief: Minimal asyncio loop double for add_reader/call_later users."""

    def __init__(self):
        self.readers: Dict[int, Tuple] = {}
        self.handles: List[_FakeHandle] = []

    def add_reader(self, fd, callback, *args) -> None:
        self.readers[fd] = (callback, args)

    def remove_reader(self, fd) -> bool:
        return self.readers.pop(fd, None) is not None

    def call_later(self, delay, callback, *args):
        handle = _FakeHandle(self, delay, callback, args)
        self.handles.append(handle)
        return handle

    def pending(self) -> List[_FakeHandle]:
        return [h for h in self.handles if not h.cancelled]

    def run_pending(self, delay: float) -> None:
        """Run every non-cancelled handle scheduled with exactly `delay`."""
        for handle in list(self.pending()):
            if handle.delay == delay:
                handle.cancelled = True
                handle.run()

    def readable(self, fd) -> None:
        callback, args = self.readers[fd]
        callback(*args)


class FakeSocket:
    """Brief: Socket double recording options, binds, sends and queued reads."""

    _next_fd = 100

    def __init__(self, family, type_, *, bind_failures: int = 0, reuseaddr_error=None):
        FakeSocket._next_fd += 1
        self.fd = FakeSocket._next_fd
        self.family = family
        self.type = type_
        self.options: List[Tuple] = []
        self.bind_attempts: List[Tuple] = []
        self.bind_failures = bind_failures
        self.reuseaddr_error = reuseaddr_error
        self.bound_to = None
        self.sent: List[Tuple[bytes, Tuple]] = []
        self.inbox: List[Tuple[bytes, Tuple]] = []
        self.blocking = True
        self.closed = False
        self.reject_options: set = set()

    def fileno(self) -> int:
        return self.fd

    def setsockopt(self, level, option, value) -> None:
        import socket as _socket

        if option == _socket.SO_REUSEADDR and self.reuseaddr_error is not None:
            raise self.reuseaddr_error
        if option in self.reject_options:
            raise OSError(98, "Address already in use")
        self.options.append((level, option, value))

    def bind(self, address) -> None:
        self.bind_attempts.append(address)
        if self.bind_failures > 0:
            self.bind_failures -= 1
            raise OSError(98, "Address already in use")
        self.bound_to = address

    def setblocking(self, flag: bool) -> None:
        self.blocking = flag

    def sendto(self, data, address) -> int:
        self.sent.append((bytes(data), address))
        return len(data)

    def recvfrom(self, size):
        if not self.inbox:
            raise BlockingIOError()
        return self.inbox.pop(0)

    def close(self) -> None:
        self.closed = True


class SocketFactory:
    """Brief: Callable socket factory handing out FakeSockets per family."""

    def __init__(self, **per_family_kwargs):
        self.kwargs = per_family_kwargs
        self.created: List[FakeSocket] = []

    def __call__(self, family, type_):
        import socket as _socket

        key = "ipv4" if family == _socket.AF_INET else "ipv6"
        sock = FakeSocket(family, type_, **self.kwargs.get(key, {}))
        self.created.append(sock)
        return sock

    def by_family(self, family) -> FakeSocket:
        return [s for s in self.created if s.family == family][-1]


def make_interface(
    name: str,
    *cidrs: str,
    can_multicast: bool = True,
    index: int = 0,
) -> Interface:
    """Brief: Build an Interface from `address/prefix` strings."""
    entries = []
    for cidr in cidrs:
        iface = ipaddress.ip_interface(cidr)
        entries.append(AddressEntry(iface.ip, iface.network.prefixlen))
    return Interface(name=name, can_multicast=can_multicast, entries=entries, index=index)


@pytest.fixture
def fake_timer():
    return FakeTimer()


@pytest.fixture
def fake_loop():
    return FakeLoop()


@pytest.fixture
def lan_interfaces():
    """Brief: Loopback plus a dual-stack LAN interface and an IPv4-only VPN."""
    return [
        make_interface("lo", "127.0.0.1/8", "::1/128", can_multicast=False, index=1),
        make_interface(
            "eth0", "192.168.1.10/24", "fe80::10/64", "2001:db8:1::10/64", index=2
        ),
        make_interface("tun0", "10.8.0.2/24", index=3),
    ]
