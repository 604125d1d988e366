"""Hostname claiming: probe for a `.local.` name and rename on conflict."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol as TypingProtocol

from .config.config_schema import ResponderConfig
from .message import ADDRESS_TYPES, MdnsMessage, MdnsQuery, Protocol, same_name

logger = logging.getLogger(__name__)

LOCAL_SUFFIX = ".local."


class ClaimStatus(enum.Enum):
    IDLE = "idle"
    PROBING = "probing"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class ProbeTimer(TypingProtocol):
    def start(self, delay: float) -> None: ...

    def cancel(self) -> None: ...


@dataclass
class HostnameState:
    """Brief: Current hostname candidate and claim progress.

    Inputs:
      - name: Candidate name, dot-terminated (e.g. `laptop-2.local.`).
      - suffix: Disambiguation suffix; None until the first conflict.
      - status: Claim progress.

    Outputs:
      - HostnameState instance.
    """

    name: str = ""
    suffix: Optional[int] = None
    status: ClaimStatus = ClaimStatus.IDLE

    @property
    def confirmed(self) -> bool:
        return self.status is ClaimStatus.CONFIRMED


def candidate_name(local_name: str, suffix: Optional[int] = None) -> str:
    """Brief: Build the `.local.` candidate for a machine name and suffix.

    Example:
      >>> candidate_name("laptop", 3)
      'laptop-3.local.'
    """

    if suffix is None:
        return f"{local_name}{LOCAL_SUFFIX}"
    return f"{local_name}-{suffix}{LOCAL_SUFFIX}"


class HostnameClaimer:
    """
    Conflict-resolution state machine for the host's `.local.` name.

    While probing, every response that asserts a live A/AAAA record for the
    candidate forces a rename to the next numeric suffix and a fresh probe.
    When the probe window passes unchallenged the name is confirmed and never
    changes again.

    Inputs:
      - config: ResponderConfig with probe_window, max_suffix and groups.
      - send: Callable that transmits an outbound MdnsMessage.
      - timer: Single-shot timer whose callback must invoke on_probe_timeout().
      - local_name: Callable returning the bare machine name.
      - on_error: Optional error sink for unrecoverable claim failures.
      - on_confirmed: Optional callback receiving the confirmed name.
    """

    def __init__(
        self,
        config: ResponderConfig,
        send: Callable[[MdnsMessage], None],
        timer: ProbeTimer,
        local_name: Callable[[], str],
        *,
        on_error: Optional[Callable[[str], None]] = None,
        on_confirmed: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.config = config
        self.state = HostnameState()
        self._send = send
        self._timer = timer
        self._local_name = local_name
        self._on_error = on_error
        self._on_confirmed = on_confirmed
        self._base = ""

    @property
    def hostname(self) -> str:
        return self.state.name

    @property
    def confirmed(self) -> bool:
        return self.state.confirmed

    def start(self) -> None:
        """(Re)start probing from the bare machine name. No-op once settled."""
        if self.state.status in (ClaimStatus.CONFIRMED, ClaimStatus.FAILED):
            return
        self._base = self._local_name()
        self.state.suffix = None
        self.state.name = candidate_name(self._base)
        self.state.status = ClaimStatus.PROBING
        logger.info("Probing for hostname %s", self.state.name)
        self._probe()

    def on_probe_timeout(self) -> None:
        if self.state.status is not ClaimStatus.PROBING:
            return
        self.state.status = ClaimStatus.CONFIRMED
        logger.info("Hostname confirmed: %s", self.state.name)
        if self._on_confirmed is not None:
            self._on_confirmed(self.state.name)

    def handle_message(self, message: MdnsMessage) -> bool:
        """Brief: Inspect an inbound message for a claim on the candidate name.

        Inputs:
          - message: Decoded inbound message.

        Outputs:
          - bool: True when the message caused a rename (or a failure).
        """

        if self.state.status is not ClaimStatus.PROBING or not message.is_response:
            return False

        for record in message.records:
            if (
                record.type in ADDRESS_TYPES
                and record.ttl
                and same_name(record.name, self.state.name)
            ):
                logger.info(
                    "Hostname %s already claimed by %s", self.state.name, message.address
                )
                self._rename()
                return True
        return False

    def _rename(self) -> None:
        suffix = 2 if self.state.suffix is None else self.state.suffix + 1
        if suffix > self.config.max_suffix:
            self._timer.cancel()
            self.state.status = ClaimStatus.FAILED
            self._report(
                f"Unable to claim a hostname for {self._base}: "
                f"all suffixes up to {self.config.max_suffix} are in use"
            )
            return
        self.state.suffix = suffix
        self.state.name = candidate_name(self._base, suffix)
        logger.info("Retrying with hostname %s", self.state.name)
        self._probe()

    def _probe(self) -> None:
        # A over IPv4 and AAAA over IPv6, each to its family's group
        for protocol, group in (
            (Protocol.IPV4, self.config.ipv4_group),
            (Protocol.IPV6, self.config.ipv6_group),
        ):
            probe = MdnsMessage(protocol=protocol, address=group, port=self.config.port)
            probe.add_query(MdnsQuery(self.state.name, protocol.record_type))
            self._send(probe)
        self._timer.start(self.config.probe_window)

    def _report(self, text: str) -> None:
        if self._on_error is not None:
            self._on_error(text)
        else:
            logger.error(text)
