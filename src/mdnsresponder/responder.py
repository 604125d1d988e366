from __future__ import annotations

import logging
from typing import Callable, Optional

from .config.config_schema import ResponderConfig
from .message import TYPE_A, TYPE_AAAA, MdnsMessage, Protocol, same_name
from .records import RecordGenerator

logger = logging.getLogger(__name__)


class QueryResponder:
    """
    Answers A/AAAA queries for the confirmed hostname.

    A reply is only sent when at least one record could be generated; an
    unanswerable query produces silence rather than an empty response.

    Inputs:
      - config: ResponderConfig supplying the port and multicast groups.
      - generator: RecordGenerator used to pick the answering address.
      - send: Callable that transmits an outbound MdnsMessage.
    """

    def __init__(
        self,
        config: ResponderConfig,
        generator: RecordGenerator,
        send: Callable[[MdnsMessage], None],
    ) -> None:
        self.config = config
        self.generator = generator
        self._send = send
        self._groups = {
            Protocol.IPV4: config.ipv4_group,
            Protocol.IPV6: config.ipv6_group,
        }

    def handle_message(self, hostname: str, message: MdnsMessage) -> Optional[MdnsMessage]:
        """Brief: Answer a query message that names `hostname`.

        Inputs:
          - hostname: Confirmed hostname.
          - message: Decoded inbound message.

        Outputs:
          - MdnsMessage: The reply that was sent, or None when nothing was sent.
        """

        if message.is_response:
            return None

        want_a = False
        want_aaaa = False
        for query in message.queries:
            if same_name(query.name, hostname):
                want_a = want_a or query.type == TYPE_A
                want_aaaa = want_aaaa or query.type == TYPE_AAAA
        if not (want_a or want_aaaa):
            return None

        reply = message.reply(mdns_port=self.config.port, groups=self._groups)
        for wanted, rtype in ((want_a, TYPE_A), (want_aaaa, TYPE_AAAA)):
            if not wanted:
                continue
            record = self.generator.generate(hostname, message.address, rtype)
            if record is not None:
                reply.add_record(record)

        if not reply.records:
            logger.debug("No usable address for %s asking about %s", message.address, hostname)
            return None

        logger.debug(
            "Answering %s with %d record(s) via %s:%d",
            message.address,
            len(reply.records),
            reply.address,
            reply.port,
        )
        self._send(reply)
        return reply
