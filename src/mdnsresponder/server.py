from __future__ import annotations

import asyncio
import logging
import socket
from typing import Callable, List

from . import codec
from .binder import NetworkBinder
from .config.config_schema import ResponderConfig
from .hostname import HostnameClaimer
from .message import MdnsMessage, Protocol
from .network import Interface, all_interfaces, local_hostname
from .records import RecordGenerator
from .responder import QueryResponder
from .scheduler import Timer

logger = logging.getLogger("mdnsresponder.server")

ErrorHandler = Callable[[str], None]


class MdnsServer:
    """
    mDNS host responder: claims `<machine>.local.` and answers A/AAAA queries.

    Every inbound datagram is decoded, tagged with its source and routed to
    the HostnameClaimer until the name is confirmed, then to the
    QueryResponder. A rebind timer re-runs socket binding and multicast joins
    every `rebind_interval` seconds for the life of the server.

    Inputs:
      - config: Frozen ResponderConfig.
      - loop: asyncio event loop that drives sockets and timers.
      - interfaces: Callable returning a fresh interface snapshot.
      - socket_factory: Callable creating sockets for the binder.

    Example use:
        >>> loop = asyncio.new_event_loop()  # doctest: +SKIP
        >>> server = MdnsServer(ResponderConfig(), loop)  # doctest: +SKIP
        >>> server.start()  # doctest: +SKIP
        >>> loop.run_forever()  # doctest: +SKIP
    """

    def __init__(
        self,
        config: ResponderConfig,
        loop: asyncio.AbstractEventLoop,
        *,
        interfaces: Callable[[], List[Interface]] = all_interfaces,
        socket_factory: Callable[[int, int], socket.socket] = socket.socket,
    ) -> None:
        self.config = config
        self._loop = loop
        self._error_handlers: List[ErrorHandler] = []

        self.binder = NetworkBinder(
            config,
            self.handle_datagram,
            loop=loop,
            on_error=self.report_error,
            interfaces=interfaces,
            socket_factory=socket_factory,
        )
        self.rebind_timer = Timer(loop, self._on_rebind_timeout, name="rebind")
        self.probe_timer = Timer(loop, self._on_probe_timeout, name="probe")
        self.claimer = HostnameClaimer(
            config,
            self.send_message,
            self.probe_timer,
            self._local_name,
            on_error=self.report_error,
        )
        self.responder = QueryResponder(
            config,
            RecordGenerator(config.ttl, interfaces),
            self.send_message,
        )

    @property
    def hostname(self) -> str:
        return self.claimer.hostname

    @property
    def confirmed(self) -> bool:
        return self.claimer.confirmed

    def add_error_handler(self, handler: ErrorHandler) -> None:
        self._error_handlers.append(handler)

    def report_error(self, text: str) -> None:
        """Brief: Deliver a human-readable error event to every registered sink."""
        logger.error(text)
        for handler in list(self._error_handlers):
            handler(text)

    def start(self) -> None:
        self._on_rebind_timeout()

    def close(self) -> None:
        self.rebind_timer.cancel()
        self.probe_timer.cancel()
        self.binder.close()

    def send_message(self, message: MdnsMessage) -> None:
        self.binder.send(message.protocol, codec.encode(message), message.address, message.port)

    def handle_datagram(self, data: bytes, address: str, port: int, protocol: Protocol) -> None:
        """Brief: Decode one datagram and route it to the claimer or responder.

        Inputs:
          - data: Raw datagram bytes.
          - address: Source address.
          - port: Source port.
          - protocol: Family tag of the receiving socket.

        Outputs:
          - None
        """

        message = codec.decode(data, address=address, port=port, protocol=protocol)
        if message is None:
            return
        if self.claimer.confirmed:
            self.responder.handle_message(self.claimer.hostname, message)
        else:
            self.claimer.handle_message(message)

    def _local_name(self) -> str:
        return self.config.hostname or local_hostname()

    def _on_rebind_timeout(self) -> None:
        if self.binder.bind_all():
            # Probing starts (or restarts) on each cycle until a name sticks.
            self.claimer.start()
        self.rebind_timer.start(self.config.rebind_interval)

    def _on_probe_timeout(self) -> None:
        self.claimer.on_probe_timeout()
