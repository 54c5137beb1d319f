# -*- coding: utf-8 -*-
# fleet/identity.py
"""
Stable node identity.

Every history query is scoped by a key built from the node's public key,
its host (port stripped) and the network tag:

    ABC-10.0.0.5-MAINNET
    ABC-private-MAINNET          (masked / unroutable / missing address)
    ABC-10.0.0.5-MAINNET-1000    (capacity-sensitive variant)

The functions here never raise and never touch the network.
"""

from __future__ import annotations

import ipaddress
import re
from typing import Any, Optional

PRIVATE_HOST = "private"

# Shared address space (RFC 6598) is what carrier-grade NAT hands out.
_CGNAT = ipaddress.ip_network("100.64.0.0/10")
_HOSTNAME_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9.-]*[A-Za-z0-9])?$")


def host_only(address: Optional[str]) -> Optional[str]:
    """
    Host part of "host:port", "[v6]:port", a bare IPv6 literal or a hostname.
    Returns None when nothing usable is left.
    """
    if not address:
        return None
    addr = str(address).strip()
    if not addr:
        return None

    if addr.startswith("["):
        end = addr.find("]")
        host = addr[1:end] if end > 0 else ""
    elif addr.count(":") == 1:
        host = addr.split(":", 1)[0]
    elif addr.count(":") > 1:
        # bare IPv6, no port possible without brackets
        host = addr
    else:
        host = addr

    host = host.strip()
    if not host:
        return None

    try:
        return str(ipaddress.ip_address(host))
    except ValueError:
        pass

    if _HOSTNAME_RE.match(host):
        return host.lower()
    return None


def is_masked_address(address: Optional[str]) -> bool:
    """
    True when the address cannot identify a physical host: missing,
    unparseable, loopback, link-local, unspecified or behind CGNAT.

    RFC1918 ranges are not masked; fleets on private LANs are still
    distinguishable by their LAN address.
    """
    host = host_only(address)
    if host is None:
        return True
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return False
    if ip.is_loopback or ip.is_link_local or ip.is_unspecified:
        return True
    return ip.version == 4 and ip in _CGNAT


def stable_id(
    pubkey: str,
    address: Optional[str],
    network: str = "MAINNET",
    committed: Optional[Any] = None,
    masked: bool = False,
) -> str:
    host = PRIVATE_HOST if (masked or is_masked_address(address)) else host_only(address)
    key = "{}-{}-{}".format(pubkey, host, (network or "MAINNET").upper())
    if committed is not None:
        key = "{}-{}".format(key, _capacity_token(committed))
    return key


def _capacity_token(committed: Any) -> str:
    # 1000.0 and 1000 must produce the same key
    try:
        f = float(committed)
    except (TypeError, ValueError):
        return str(committed)
    return str(int(f)) if f.is_integer() else repr(f)
