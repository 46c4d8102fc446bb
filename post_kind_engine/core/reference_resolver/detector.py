"""
Reference detection component.

Scans a decoded property bag for reference properties (bookmark-of, like-of,
in-reply-to, ...) and turns every candidate URL into a ResolutionTask. Values
that are not valid http(s) URLs are skipped silently: they are plain text the
author typed, not references to resolve.
"""

import ipaddress
import logging
import re
import socket
from typing import Any, Iterable, List, Optional, Tuple, Union
from urllib.parse import urlsplit

from post_kind_engine.core.reference_resolver.config import ALLOWED_PORTS
from post_kind_engine.core.reference_resolver.models import (
    PropertyBag,
    QUERY_INDICATOR,
    ReferenceProperty,
    ResolutionTask,
)

logger = logging.getLogger(__name__)

_LOCAL_HOSTNAMES = {"localhost", "localhost.localdomain"}

# Dotted decimal, octal or hex parts: the forms inet_aton understands
_NUMERIC_HOST = re.compile(r"^(0x[0-9a-f]+|[0-9]+)(\.(0x[0-9a-f]+|[0-9]+)){0,3}$")


def is_query_request(bag: Any) -> bool:
    """A bag carrying the query indicator is a read request and is never resolved."""
    return isinstance(bag, dict) and QUERY_INDICATOR in bag


def validate_url(url: Any, allowed_ports: Optional[Iterable[int]] = None) -> bool:
    """
    Check that a value is an http(s) URL safe to fetch.

    Rejects other schemes, missing hosts, embedded credentials, whitespace,
    ports outside the allowed set, localhost names (with or without a
    trailing dot), and hosts that are literal loopback, private, link-local
    or reserved addresses in any IPv4 spelling or IPv4-mapped IPv6 form.

    Args:
        url: Candidate value
        allowed_ports: Ports accepted when the URL names one explicitly

    Returns:
        True if the value may be resolved
    """
    if not isinstance(url, str) or not url:
        return False
    if url != url.strip() or any(ch.isspace() for ch in url):
        return False

    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return False

    if parts.scheme.lower() not in ("http", "https"):
        return False
    if parts.username is not None or parts.password is not None:
        return False

    host = parts.hostname
    if not host:
        return False
    host = host.rstrip(".").lower()
    if not host or host in _LOCAL_HOSTNAMES or host.endswith(".localhost"):
        return False

    if port is not None:
        ports = ALLOWED_PORTS if allowed_ports is None else frozenset(allowed_ports)
        if port not in ports:
            return False

    address = _ip_literal(host)
    if address is None:
        # A numeric host inet_aton rejects is not a usable hostname either
        return not _NUMERIC_HOST.match(host)
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return not (
        address.is_loopback
        or address.is_private
        or address.is_link_local
        or address.is_reserved
        or address.is_unspecified
        or address.is_multicast
    )


def _ip_literal(host: str) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    """
    Parse a host that is an IP literal, including the short, integer and hex
    IPv4 spellings (127.1, 2130706433, 0x7f000001) that resolvers accept.
    """
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass
    if not _NUMERIC_HOST.match(host):
        return None
    try:
        return ipaddress.IPv4Address(socket.inet_aton(host))
    except OSError:
        return None


def candidate_url(value: Any) -> Optional[Any]:
    """
    Extract the URL candidate from a single reference value.

    Scalars are their own candidate. Structured documents carry the URL in a
    jf2 `url` field or in the first `properties.url` entry of an mf2 item.
    """
    if isinstance(value, dict):
        if "url" in value:
            url = value["url"]
            if isinstance(url, list):
                return url[0] if url else None
            return url
        properties = value.get("properties")
        if isinstance(properties, dict):
            urls = properties.get("url")
            if isinstance(urls, list) and urls:
                return urls[0]
            return urls
        return None
    return value


class ReferenceDetector:
    """
    Builds the ordered work list of URLs to resolve for an item.

    Order follows the bag's key order, then element order within a list
    value, so results are deterministic for a given input.
    """

    def __init__(self, allowed_ports: Optional[Iterable[int]] = None):
        """
        Initialize the detector.

        Args:
            allowed_ports: Explicit ports accepted in URLs (defaults to ALLOWED_PORTS)
        """
        self.allowed_ports = frozenset(allowed_ports) if allowed_ports is not None else ALLOWED_PORTS

    def detect(self, bag: PropertyBag) -> List[ResolutionTask]:
        """Return the resolution tasks for a property bag."""
        tasks, _ = self.scan(bag)
        return tasks

    def scan(self, bag: PropertyBag) -> Tuple[List[ResolutionTask], int]:
        """
        Scan a property bag for reference candidates.

        Args:
            bag: Decoded property bag

        Returns:
            Tuple of (tasks, number of candidates skipped by URL validation)
        """
        if not isinstance(bag, dict) or is_query_request(bag):
            return [], 0

        tasks: List[ResolutionTask] = []
        skipped = 0

        for key, value in bag.items():
            prop = ReferenceProperty.from_key(key)
            if prop is None:
                continue

            if isinstance(value, list):
                candidates = [(i, candidate_url(v)) for i, v in enumerate(value)]
            else:
                candidates = [(None, candidate_url(value))]

            for index, url in candidates:
                if url is None:
                    continue
                if not validate_url(url, self.allowed_ports):
                    logger.debug(f"Skipping non-URL value for {key}: {url!r}")
                    skipped += 1
                    continue
                tasks.append(ResolutionTask(property=prop, index=index, url=url, order=len(tasks)))

        logger.debug(f"Detected {len(tasks)} reference URLs ({skipped} skipped)")
        return tasks, skipped
