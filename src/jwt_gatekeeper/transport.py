"""
Refusing to authenticate over plain HTTP.
"""

import ipaddress
from typing import Iterable

from .errors import InsecureTransportError


def _strip_port(host: str) -> str:
    if host.startswith("["):
        end = host.find("]")
        return host[1:end] if end != -1 else host[1:]
    if host.count(":") == 1:
        return host.split(":", 1)[0]
    return host


def is_loopback(host: str) -> bool:
    """True for localhost and any loopback address (127.0.0.0/8, ::1)."""
    host = _strip_port(host).lower()
    if host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def check_transport(
    scheme: str,
    host: str,
    secure: bool = True,
    relaxed: Iterable[str] = (),
) -> None:
    """
    Raise InsecureTransportError unless the transport is acceptable.

    Passes when ``secure`` is off, the scheme is https, the host is a
    loopback host, or the host is listed in ``relaxed``.

    Raises:
        InsecureTransportError: For plain HTTP to any other host
    """
    if not secure or scheme.lower() == "https":
        return

    hostname = _strip_port(host).lower()
    if is_loopback(hostname) or hostname in {name.lower() for name in relaxed}:
        return

    raise InsecureTransportError(scheme, host)
