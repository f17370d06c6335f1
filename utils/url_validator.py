"""
URL validation for links returned by news providers.
"""
import ipaddress
from typing import Optional
from urllib.parse import urlsplit, urlunsplit


def _is_private_host(host: str) -> bool:
    """localhost, or a loopback / private / link-local / unspecified IP literal."""
    if host == "localhost":
        return True
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return False
    return ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_unspecified


def is_valid_url(value, reject_private: bool = False) -> bool:
    """True for http(s) URLs whose hostname contains a dot.

    With ``reject_private`` (production), localhost and private IP ranges
    are refused as well.
    """
    if not value or not isinstance(value, str):
        return False

    try:
        parts = urlsplit(value.strip())
        hostname = parts.hostname
    except ValueError:
        return False

    if parts.scheme not in ("http", "https"):
        return False
    if not hostname or "." not in hostname:
        return False

    if reject_private and _is_private_host(hostname.lower()):
        return False

    return True


def normalize_url(value: str) -> Optional[str]:
    """Valid URL upgraded to https, or None. Used as the identity key for duplicates."""
    if not is_valid_url(value):
        return None

    parts = urlsplit(value.strip())
    scheme = parts.scheme
    if scheme == "http" and "localhost" not in (parts.hostname or ""):
        scheme = "https"
    path = parts.path.rstrip("/") or "/"
    return urlunsplit((scheme, parts.netloc.lower(), path, parts.query, parts.fragment))
