"""Node facts used to derive a default identity."""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass

logger = logging.getLogger(__name__)


def _primary_ipv4(timeout: float = 1.0) -> str | None:
    """Return the address of the interface holding the default route.

    Connecting a UDP socket sends no packets; it only asks the kernel which
    source address it would use.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    except OSError as e:
        logger.debug(f"No IPv4 socket available: {e}")
        return None
    try:
        sock.settimeout(timeout)
        sock.connect(("192.0.2.1", 80))
        address = sock.getsockname()[0]
    except OSError as e:
        logger.debug(f"Could not determine primary address: {e}")
        return None
    finally:
        sock.close()
    if address.startswith("0.") or address == "127.0.0.1":
        return None
    return address


@dataclass(frozen=True)
class NodeFacts:
    fqdn: str
    ipaddress: str | None = None

    @classmethod
    def gather(cls) -> "NodeFacts":
        """Collect facts from the running host."""
        fqdn = socket.getfqdn() or socket.gethostname()
        return cls(fqdn=fqdn, ipaddress=_primary_ipv4())

    @property
    def canonical_identity(self) -> str:
        """Primary address when known, host name otherwise."""
        return self.ipaddress or self.fqdn
