from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dnslib import QTYPE

from .config.config_schema import MDNS_IPV4_GROUP, MDNS_IPV6_GROUP, MDNS_PORT

TYPE_A = int(QTYPE.A)
TYPE_AAAA = int(QTYPE.AAAA)
ADDRESS_TYPES = (TYPE_A, TYPE_AAAA)


class Protocol(enum.Enum):
    """IP family a message was received on or is to be sent over."""

    IPV4 = 4
    IPV6 = 6

    @property
    def record_type(self) -> int:
        return TYPE_A if self is Protocol.IPV4 else TYPE_AAAA


def same_name(a: str, b: str) -> bool:
    """Brief: Case-insensitive DNS name comparison tolerant of a missing root dot.

    Example:
      >>> same_name("Laptop.local.", "laptop.local")
      True
    """

    return a.rstrip(".").lower() == b.rstrip(".").lower()


@dataclass(frozen=True)
class MdnsQuery:
    """A single question: owner name and record type."""

    name: str
    type: int


@dataclass(frozen=True)
class MdnsRecord:
    """Brief: A resource record as seen by the responder.

    Inputs:
      - name: Owner name, dot-terminated.
      - type: Numeric record type (see dnslib QTYPE).
      - ttl: Time to live in seconds.
      - address: Textual address for A/AAAA records, None for others.

    Outputs:
      - MdnsRecord instance.
    """

    name: str
    type: int
    ttl: int
    address: Optional[str] = None


@dataclass
class MdnsMessage:
    """Brief: Structured mDNS message plus its transport envelope.

    Inputs:
      - protocol: IP family of the socket the message travels over.
      - address: Peer address (source on receive, destination on send).
      - port: Peer UDP port.
      - transaction_id: DNS header id.
      - is_response: QR flag.
      - queries: Ordered questions.
      - records: Ordered answer, authority and additional records.

    Outputs:
      - MdnsMessage instance.
    """

    protocol: Protocol = Protocol.IPV4
    address: str = ""
    port: int = MDNS_PORT
    transaction_id: int = 0
    is_response: bool = False
    queries: List[MdnsQuery] = field(default_factory=list)
    records: List[MdnsRecord] = field(default_factory=list)

    def add_query(self, query: MdnsQuery) -> None:
        self.queries.append(query)

    def add_record(self, record: MdnsRecord) -> None:
        self.records.append(record)

    def reply(
        self,
        *,
        mdns_port: int = MDNS_PORT,
        groups: Optional[Dict[Protocol, str]] = None,
    ) -> "MdnsMessage":
        """Brief: Build the reply envelope for this request.

        Inputs:
          - mdns_port: The well-known mDNS port.
          - groups: Multicast group per protocol (defaults to the standard
            mDNS groups).

        Outputs:
          - MdnsMessage: Empty response with the same protocol and id. A
            request sent from the mDNS port is answered on the multicast
            group; any other source port gets a unicast reply that echoes
            the request's questions.
        """

        groups = groups or {
            Protocol.IPV4: MDNS_IPV4_GROUP,
            Protocol.IPV6: MDNS_IPV6_GROUP,
        }
        reply = MdnsMessage(
            protocol=self.protocol,
            transaction_id=self.transaction_id,
            is_response=True,
        )
        if self.port == mdns_port:
            reply.address = groups[self.protocol]
            reply.port = mdns_port
        else:
            reply.address = self.address
            reply.port = self.port
            reply.queries = list(self.queries)
        return reply
