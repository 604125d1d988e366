"""UDP endpoints for mDNS: binding, multicast membership and datagram I/O.

One socket per IP family is bound to the mDNS port. After every bind attempt
the IPv4/IPv6 groups are (re)joined on every multicast-capable interface. The
owner calls bind_all() periodically; that is the only recovery path for
sockets that failed to bind and for interfaces that come and go.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
import struct
import sys
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .config.config_schema import ResponderConfig
from .message import Protocol
from .network import Interface, all_interfaces

logger = logging.getLogger(__name__)

MAX_DATAGRAM = 9000
MULTICAST_TTL = 255

# struct ip_mreqn (group, local address, ifindex) selects the interface by index.
IP_MREQN_SUPPORTED = sys.platform.startswith("linux")

DatagramHandler = Callable[[bytes, str, int, Protocol], None]

_FAMILIES = {Protocol.IPV4: socket.AF_INET, Protocol.IPV6: socket.AF_INET6}
_ANY = {Protocol.IPV4: "0.0.0.0", Protocol.IPV6: "::"}


@dataclass
class SocketBinding:
    """Brief: Per-family socket state.

    Inputs:
      - protocol: Family tag delivered with every datagram from this socket.
      - sock: Socket handle, or None until first created.
      - bound: Whether the socket is bound to the mDNS port.

    Outputs:
      - SocketBinding instance.
    """

    protocol: Protocol
    sock: Optional[socket.socket] = None
    bound: bool = False

    @property
    def label(self) -> str:
        return "IPv4" if self.protocol is Protocol.IPV4 else "IPv6"


class NetworkBinder:
    """
    Owns the IPv4 and IPv6 mDNS sockets.

    Inputs:
      - config: ResponderConfig supplying the port and groups.
      - on_datagram: Called as (data, source_address, source_port, protocol)
        for every datagram read.
      - loop: asyncio event loop used for reader registration.
      - on_error: Optional error sink for bind failures.
      - interfaces: Callable returning a fresh interface snapshot.
      - socket_factory: Callable creating a socket for (family, type).

    Example use:
        >>> binder = NetworkBinder(ResponderConfig(), handler, loop=loop)  # doctest: +SKIP
        >>> binder.bind_all()  # doctest: +SKIP
    """

    def __init__(
        self,
        config: ResponderConfig,
        on_datagram: DatagramHandler,
        *,
        loop: asyncio.AbstractEventLoop,
        on_error: Optional[Callable[[str], None]] = None,
        interfaces: Callable[[], List[Interface]] = all_interfaces,
        socket_factory: Callable[[int, int], socket.socket] = socket.socket,
    ) -> None:
        self.config = config
        self._on_datagram = on_datagram
        self._loop = loop
        self._on_error = on_error
        self._interfaces = interfaces
        self._socket_factory = socket_factory
        self.bindings: Dict[Protocol, SocketBinding] = {
            Protocol.IPV4: SocketBinding(Protocol.IPV4),
            Protocol.IPV6: SocketBinding(Protocol.IPV6),
        }

    def is_bound(self, protocol: Protocol) -> bool:
        return self.bindings[protocol].bound

    @property
    def any_bound(self) -> bool:
        return any(b.bound for b in self.bindings.values())

    def bind_all(self) -> bool:
        """Brief: Bind any unbound socket, then rejoin multicast groups.

        Inputs:
          - None

        Outputs:
          - bool: True when at least one socket is bound afterwards.
        """

        for binding in self.bindings.values():
            if not binding.bound:
                self._bind(binding)
        if self.any_bound:
            self._join_groups()
        return self.any_bound

    def send(self, protocol: Protocol, data: bytes, address: str, port: int) -> bool:
        """Brief: Fire-and-forget a datagram over the given family's socket.

        Outputs:
          - bool: True when the datagram was handed to the OS.
        """

        binding = self.bindings[protocol]
        if not binding.bound or binding.sock is None:
            logger.debug("Not sending to %s: %s socket is not bound", address, binding.label)
            return False
        try:
            binding.sock.sendto(data, (address, port))
        except OSError as exc:
            logger.debug("Send to %s:%d failed: %s", address, port, exc)
            return False
        return True

    def close(self) -> None:
        for binding in self.bindings.values():
            if binding.sock is None:
                continue
            if binding.bound:
                self._loop.remove_reader(binding.sock.fileno())
            binding.sock.close()
            binding.sock = None
            binding.bound = False

    def _report(self, text: str) -> None:
        if self._on_error is not None:
            self._on_error(text)
        else:
            logger.error(text)

    def _create_socket(self, binding: SocketBinding) -> Optional[socket.socket]:
        try:
            sock = self._socket_factory(_FAMILIES[binding.protocol], socket.SOCK_DGRAM)
        except OSError as exc:
            self._report(f"Unable to create {binding.label} socket: {exc}")
            return None
        try:
            if binding.protocol is Protocol.IPV6:
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 1)
            if hasattr(socket, "SO_REUSEPORT"):
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
        except OSError as exc:
            logger.debug("Socket option on %s socket rejected: %s", binding.label, exc)
        return sock

    def _bind(self, binding: SocketBinding) -> bool:
        if binding.sock is None:
            binding.sock = self._create_socket(binding)
            if binding.sock is None:
                return False
        sock = binding.sock
        address = (_ANY[binding.protocol], self.config.port)

        try:
            sock.bind(address)
        except OSError as first:
            logger.debug("Shared bind of %s socket failed: %s", binding.label, first)
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            except OSError as exc:
                self._report(f"Unable to set SO_REUSEADDR on {binding.label} socket: {exc}")
            try:
                sock.bind(address)
            except OSError as exc:
                self._report(
                    f"Unable to bind {binding.label} socket to port {self.config.port}: {exc}"
                )
                return False

        binding.bound = True
        self._configure(binding)
        self._loop.add_reader(sock.fileno(), self._on_readable, binding)
        logger.info("Bound %s socket to port %d", binding.label, self.config.port)
        return True

    def _configure(self, binding: SocketBinding) -> None:
        sock = binding.sock
        if sock is None:
            return
        sock.setblocking(False)
        try:
            if binding.protocol is Protocol.IPV4:
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, MULTICAST_TTL)
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_LOOP, 1)
            else:
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_MULTICAST_HOPS, MULTICAST_TTL)
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_MULTICAST_LOOP, 1)
        except OSError as exc:
            logger.debug("Multicast options on %s socket rejected: %s", binding.label, exc)

    def _join_groups(self) -> None:
        ipv4 = self.bindings[Protocol.IPV4]
        ipv6 = self.bindings[Protocol.IPV6]
        for interface in self._interfaces():
            if not interface.can_multicast:
                continue
            # Both joins are gated on the interface owning an IPv6 address.
            if ipv4.bound and interface.has_ipv6:
                self._join(ipv4, interface, self._ipv4_membership(interface))
            if ipv6.bound and interface.has_ipv6:
                self._join(ipv6, interface, self._ipv6_membership(interface))

    def _ipv4_membership(self, interface: Interface) -> bytes:
        group = ipaddress.IPv4Address(self.config.ipv4_group)
        local = interface.first_ipv4() or ipaddress.IPv4Address(0)
        if IP_MREQN_SUPPORTED and interface.index:
            return struct.pack("=4s4si", group.packed, local.packed, interface.index)
        return group.packed + local.packed

    def _ipv6_membership(self, interface: Interface) -> bytes:
        group = ipaddress.IPv6Address(self.config.ipv6_group)
        return struct.pack("=16sI", group.packed, interface.index)

    def _join(self, binding: SocketBinding, interface: Interface, mreq: bytes) -> None:
        if binding.sock is None:
            return
        if binding.protocol is Protocol.IPV4:
            level, option = socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP
        else:
            level = socket.IPPROTO_IPV6
            option = getattr(socket, "IPV6_JOIN_GROUP", None) or socket.IPV6_ADD_MEMBERSHIP
        try:
            binding.sock.setsockopt(level, option, mreq)
        except OSError as exc:
            # Repeated cycles re-join groups we are already a member of.
            logger.debug(
                "%s group join on %s not applied: %s", binding.label, interface.name, exc
            )
            return
        logger.debug("Joined %s mDNS group on %s", binding.label, interface.name)

    def _on_readable(self, binding: SocketBinding) -> None:
        if binding.sock is None:
            return
        try:
            data, source = binding.sock.recvfrom(MAX_DATAGRAM)
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            logger.debug("Read from %s socket failed: %s", binding.label, exc)
            return
        self._on_datagram(data, str(source[0]), int(source[1]), binding.protocol)
