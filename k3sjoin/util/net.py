"""Contains utility functions and types for network stuff"""

import re
from urllib.parse import urlparse

from netaddr import valid_ipv4, valid_ipv6

DEFAULT_API_PORT = 6443

HOSTNAME = re.compile(r"^(?=.{1,253}$)[a-zA-Z\d]([a-zA-Z\d-]{0,61}[a-zA-Z\d])?"
                      r"(\.[a-zA-Z\d]([a-zA-Z\d-]{0,61}[a-zA-Z\d])?)*$")


def is_port(port):
    """Checks if a port is valid"""

    return isinstance(port, int) and not isinstance(port, bool) and \
        0 < port <= 65535


def is_ip(ip):
    """Checks if an IP is a valid IPv4 or IPv6 address"""

    return valid_ipv4(ip) or valid_ipv6(ip)


def is_host(host):
    """Checks if host is an IP address or a DNS name"""

    if not isinstance(host, str) or not host:
        return False
    return bool(is_ip(host) or HOSTNAME.match(host))


class ClusterEndpoint:
    """
    The address at which the control plane accepts workers.

    Args:
        host (str): IPv4, IPv6 or DNS name
        port (int): the API server port, 6443 by default

    Raises:
        ValueError if host or port are invalid.
    """

    def __init__(self, host, port=DEFAULT_API_PORT):
        if isinstance(host, str):
            host = host.strip().strip('[]')
        if not is_host(host):
            raise ValueError(f"invalid host '{host}'")
        if not is_port(port):
            raise ValueError(f"invalid port '{port}'")
        self._host = host
        self._port = port

    @property
    def host(self):
        return self._host

    @property
    def port(self):
        return self._port

    @property
    def _netloc(self):
        if valid_ipv6(self._host):
            return "[%s]:%d" % (self._host, self._port)
        return "%s:%d" % (self._host, self._port)

    @property
    def url(self):
        """the URL workers use to reach the API server"""
        return "https://" + self._netloc

    @classmethod
    def parse(cls, value, default_port=DEFAULT_API_PORT):
        """
        Create an endpoint from ``host``, ``host:port``, ``[v6]:port`` or
        ``https://host:port``.
        """
        if isinstance(value, bytes):
            value = value.decode()
        if not isinstance(value, str) or not value.strip():
            raise ValueError("endpoint can't be empty")

        value = value.strip()
        if valid_ipv6(value.strip('[]')):
            return cls(value, default_port)

        if "://" not in value:
            value = "https://" + value
        url = urlparse(value)
        try:
            port = url.port
        except ValueError:
            raise ValueError(f"invalid port in endpoint '{value}'")
        return cls(url.hostname or "", port or default_port)

    def __str__(self):
        return self._netloc

    def __repr__(self):
        return "ClusterEndpoint(%r, %d)" % (self._host, self._port)

    def __eq__(self, other):
        if not isinstance(other, ClusterEndpoint):
            return NotImplemented
        return (self._host, self._port) == (other.host, other.port)

    def __hash__(self):
        return hash((self._host, self._port))
