"""Free TCP port discovery for the backend process."""

from __future__ import annotations

import logging
import socket
from typing import Iterable, Optional

from mcp_desktop.exceptions import PortUnavailableError
from mcp_desktop.models import PortRange

logger = logging.getLogger(__name__)

DEFAULT_START = 18060
FALLBACK_START = 8080
RANGE_SIZE = 100


def is_port_available(port: int, host: str = "0.0.0.0") -> bool:
    """Bind a throwaway listening socket and release it immediately."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            s.listen(1)
        except (OSError, OverflowError) as e:
            logger.debug("Port %d unavailable: %s", port, e)
            return False
    return True


def find_available_port(
    preferred_start: int = DEFAULT_START,
    ranges: Optional[Iterable[PortRange]] = None,
) -> int:
    """Return the first bindable port, trying each range in order.

    Without explicit ``ranges`` the search covers ``preferred_start`` and the
    next 99 ports, then 8080-8179. The port is free only at probe time; the
    backend may still lose a race for it later.
    """
    if ranges is None:
        ranges = (PortRange(preferred_start, RANGE_SIZE), PortRange(FALLBACK_START, RANGE_SIZE))

    tried = []
    for port_range in ranges:
        logger.info("Searching for a free port in %s", port_range)
        for port in port_range:
            if is_port_available(port):
                logger.info("Found free port: %d", port)
                return port
        tried.append(str(port_range))
        logger.warning("All ports in %s are occupied", port_range)

    raise PortUnavailableError(
        f"No free port found in {', '.join(tried) or 'any range'}"
    )
