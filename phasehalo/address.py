"""Looking up the network address bound to an interface."""

from __future__ import annotations

import logging
import socket
from typing import Optional

import psutil

log = logging.getLogger(__name__)

_FAMILIES = (socket.AF_INET, socket.AF_INET6)


def get_interface_address(ifname: str) -> Optional[str]:
    """Numeric IPv4 or IPv6 address of interface ``ifname``.

    The first internet address the system lists for the interface is
    returned; ``None`` means none was found and the caller should fall
    back to the host name.
    """
    try:
        interfaces = psutil.net_if_addrs()
    except (OSError, psutil.Error):
        interfaces = {}
    for entry in interfaces.get(ifname, ()):
        if entry.family in _FAMILIES and entry.address:
            log.info("Using %s for server address on iface %s.", entry.address, ifname)
            return entry.address
    log.warning("Unable to get interface addresses; using hostname instead.")
    return None