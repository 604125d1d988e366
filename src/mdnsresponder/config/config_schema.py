"""Typed configuration model for the mDNS host responder.

The responder reads every protocol constant (port, multicast groups, TTLs and
timer intervals) from a single frozen ``ResponderConfig`` handed to
``MdnsServer`` at construction time.
"""

from __future__ import annotations

import ipaddress
from typing import Optional

from pydantic import BaseModel, Field, validator

MDNS_PORT = 5353
MDNS_IPV4_GROUP = "224.0.0.251"
MDNS_IPV6_GROUP = "ff02::fb"
DEFAULT_TTL = 60 * 60
PROBE_WINDOW = 2.0
REBIND_INTERVAL = 60.0
MAX_SUFFIX = 1000


class ConfigError(ValueError):
    """Brief: Raised when the responder configuration is invalid.

    Inputs:
      - message: Human-readable description of the problem.

    Outputs:
      - Exception instance
    """


class ResponderConfig(BaseModel):
    """Brief: Immutable responder settings.

    Inputs:
      - hostname: Optional machine name override (without `.local.`). When
        None the OS hostname is used.
      - port: UDP port for all mDNS traffic (5353).
      - ipv4_group: IPv4 mDNS multicast group.
      - ipv6_group: IPv6 mDNS multicast group.
      - ttl: TTL in seconds applied to generated address records.
      - probe_window: Seconds a probe must go unchallenged before the name is
        confirmed.
      - rebind_interval: Seconds between bind/rejoin cycles.
      - max_suffix: Highest disambiguation suffix tried before giving up.

    Outputs:
      - ResponderConfig instance.
    """

    hostname: Optional[str] = None
    port: int = Field(default=MDNS_PORT, ge=1, le=65535)
    ipv4_group: str = MDNS_IPV4_GROUP
    ipv6_group: str = MDNS_IPV6_GROUP
    ttl: int = Field(default=DEFAULT_TTL, ge=1)
    probe_window: float = Field(default=PROBE_WINDOW, gt=0)
    rebind_interval: float = Field(default=REBIND_INTERVAL, gt=0)
    max_suffix: int = Field(default=MAX_SUFFIX, ge=2)

    @validator("hostname", pre=True)
    def _normalize_hostname(cls, v):  # type: ignore[no-untyped-def]
        """Brief: Strip whitespace, trailing dots and a `.local` suffix.

        Inputs:
          - v: Configured hostname or None.

        Outputs:
          - Optional[str]: Bare machine name, or None when blank.

        Example:
          - `laptop.local.` -> `laptop`
        """

        if v is None:
            return None
        s = str(v).strip().rstrip(".")
        if s.lower().endswith(".local"):
            s = s[: -len(".local")]
        if not s:
            return None
        if "." in s:
            raise ValueError("hostname must be a single DNS label")
        return s

    @validator("ipv4_group")
    def _check_ipv4_group(cls, v):  # type: ignore[no-untyped-def]
        addr = ipaddress.ip_address(str(v))
        if addr.version != 4 or not addr.is_multicast:
            raise ValueError("ipv4_group must be an IPv4 multicast address")
        return str(addr)

    @validator("ipv6_group")
    def _check_ipv6_group(cls, v):  # type: ignore[no-untyped-def]
        addr = ipaddress.ip_address(str(v))
        if addr.version != 6 or not addr.is_multicast:
            raise ValueError("ipv6_group must be an IPv6 multicast address")
        return str(addr)

    class Config:
        frozen = True
        extra = "forbid"
