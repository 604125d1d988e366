from __future__ import annotations

import logging
from typing import Callable, List, Optional

from .message import TYPE_A, TYPE_AAAA, MdnsRecord
from .network import Interface, address_scope, all_interfaces, parse_address

logger = logging.getLogger(__name__)

_FAMILY_FOR_TYPE = {TYPE_A: 4, TYPE_AAAA: 6}


class RecordGenerator:
    """
    Builds the address record to send a given querier.

    The answering interface is the one whose subnet contains the querier's
    address. The record carries the address of that matching subnet entry,
    provided the interface owns at least one address of the requested family.

    Inputs:
      - ttl: TTL applied to generated records.
      - interfaces: Callable returning a fresh interface snapshot.

    Example use:
        >>> gen = RecordGenerator(3600)
        >>> gen.generate("laptop.local.", "192.0.2.99", TYPE_A)  # doctest: +SKIP
    """

    def __init__(
        self,
        ttl: int,
        interfaces: Callable[[], List[Interface]] = all_interfaces,
    ) -> None:
        self.ttl = ttl
        self._interfaces = interfaces

    def generate(self, hostname: str, querier: str, rtype: int) -> Optional[MdnsRecord]:
        """Brief: Build an A or AAAA record for `hostname` aimed at `querier`.

        Inputs:
          - hostname: Confirmed hostname (dot-terminated).
          - querier: Source address of the query.
          - rtype: TYPE_A or TYPE_AAAA.

        Outputs:
          - MdnsRecord, or None when no interface whose subnet contains the
            querier owns an address of the requested family. A matched
            interface without that family hands the search on to the next
            interface. A querier carrying a `%scope` zone is only matched
            against the interface that zone names.
        """

        family = _FAMILY_FOR_TYPE.get(rtype)
        source = parse_address(querier)
        if family is None or source is None:
            return None

        interfaces = self._interfaces()
        scope = address_scope(querier)
        if scope is not None and any(i.owns_scope(scope) for i in interfaces):
            # Link-local subnets repeat on every interface; the zone picks one.
            interfaces = [i for i in interfaces if i.owns_scope(scope)]

        for interface in interfaces:
            for entry in interface.entries:
                if not entry.contains(source):
                    continue
                if any(a.version == family for a in interface.addresses):
                    return MdnsRecord(
                        name=hostname,
                        type=rtype,
                        ttl=self.ttl,
                        address=str(entry.ip),
                    )
                logger.debug(
                    "Interface %s serves %s but has no IPv%d address",
                    interface.name,
                    querier,
                    family,
                )
                break
        logger.debug("No interface can answer querier %s for type %d", querier, rtype)
        return None
