"""Wire codec between MdnsMessage and DNS packets, backed by dnslib."""

from __future__ import annotations

import ipaddress
import logging
from typing import Optional

from dnslib import AAAA, CLASS, QTYPE, RR, A, DNSHeader, DNSQuestion, DNSRecord

from .message import TYPE_A, TYPE_AAAA, MdnsMessage, MdnsQuery, MdnsRecord, Protocol

logger = logging.getLogger(__name__)

# Top bit of the record class marks a unique record (RFC 6762 section 10.2).
CACHE_FLUSH = 0x8000


def _as_ipv4(address: str) -> ipaddress.IPv4Address:
    """Brief: Coerce an address into IPv4 for an A record.

    IPv6 addresses are mapped back through their IPv4-mapped form; anything
    else encodes as the unspecified address.
    """

    addr = ipaddress.ip_address(address)
    if isinstance(addr, ipaddress.IPv4Address):
        return addr
    return addr.ipv4_mapped or ipaddress.IPv4Address(0)


def _as_ipv6(address: str) -> ipaddress.IPv6Address:
    """Coerce an address into IPv6 for an AAAA record (IPv4 becomes ::ffff:a.b.c.d)."""
    addr = ipaddress.ip_address(address)
    if isinstance(addr, ipaddress.IPv6Address):
        return addr
    return ipaddress.IPv6Address(b"\x00" * 10 + b"\xff\xff" + addr.packed)


def _to_rr(record: MdnsRecord) -> RR:
    if record.type == TYPE_A:
        rdata = A(tuple(_as_ipv4(record.address or "0.0.0.0").packed))
    elif record.type == TYPE_AAAA:
        rdata = AAAA(tuple(_as_ipv6(record.address or "::").packed))
    else:
        raise ValueError(f"cannot encode record type {QTYPE.get(record.type, record.type)}")
    return RR(
        rname=record.name,
        rtype=record.type,
        rclass=int(CLASS.IN) | CACHE_FLUSH,
        ttl=record.ttl,
        rdata=rdata,
    )


def encode(message: MdnsMessage) -> bytes:
    """Brief: Pack a message into DNS wire format.

    Inputs:
      - message: MdnsMessage to serialize. Records go into the answer
        section; responses are flagged authoritative.

    Outputs:
      - bytes: Packed DNS message.

    Example:
      >>> msg = MdnsMessage(queries=[MdnsQuery("laptop.local.", TYPE_A)])
      >>> DNSRecord.parse(encode(msg)).q.qname == "laptop.local."
      True
    """

    header = DNSHeader(
        id=message.transaction_id,
        qr=1 if message.is_response else 0,
        aa=1 if message.is_response else 0,
    )
    record = DNSRecord(header)
    for q in message.queries:
        record.add_question(DNSQuestion(q.name, q.type))
    for r in message.records:
        record.add_answer(_to_rr(r))
    return record.pack()


def _record_address(rr: RR) -> Optional[str]:
    if rr.rtype in (TYPE_A, TYPE_AAAA):
        return str(rr.rdata)
    return None


def decode(
    data: bytes,
    *,
    address: str = "",
    port: int = 0,
    protocol: Protocol = Protocol.IPV4,
) -> Optional[MdnsMessage]:
    """Brief: Parse a DNS packet into an MdnsMessage tagged with its source.

    Inputs:
      - data: Raw datagram.
      - address: Source address of the datagram.
      - port: Source UDP port.
      - protocol: Family of the socket that received it.

    Outputs:
      - MdnsMessage, or None when the packet cannot be parsed.
    """

    try:
        packet = DNSRecord.parse(data)
    except Exception as exc:  # malformed or foreign traffic on the shared group
        logger.debug("Dropping undecodable datagram from %s: %s", address, exc)
        return None

    message = MdnsMessage(
        protocol=protocol,
        address=address,
        port=port,
        transaction_id=packet.header.id,
        is_response=bool(packet.header.qr),
    )
    for q in packet.questions:
        message.add_query(MdnsQuery(str(q.qname), int(q.qtype)))
    for rr in list(packet.rr) + list(packet.auth) + list(packet.ar):
        message.add_record(
            MdnsRecord(
                name=str(rr.rname),
                type=int(rr.rtype),
                ttl=int(rr.ttl),
                address=_record_address(rr),
            )
        )
    return message
