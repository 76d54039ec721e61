import re
import socket
from uuid import uuid4

_URI_HOSTS = re.compile(r"^mongodb(?:\+srv)?://(?:[^@/]*@)?([^/?]+)")

WILDCARD_ADDRESSES = frozenset({"0.0.0.0", "::", "*"})


def generate_db_name() -> str:
    return str(uuid4())


def get_host(uri: str) -> str:
    """Extract the ``host:port`` token from a single-host mongodb URI."""
    match = _URI_HOSTS.match(uri)
    if match is None:
        raise ValueError(f"Not a mongodb connection string: {uri!r}")
    return match.group(1)


def connect_host(bind_ip: str) -> str:
    """
    Address a client should dial for a server bound to bind_ip.
    Wildcard binds and comma separated bind lists fall back to loopback.
    """
    if "," in bind_ip or bind_ip.strip() in WILDCARD_ADDRESSES:
        return "127.0.0.1"
    return bind_ip.strip()


def get_free_port(host: str = "127.0.0.1") -> int:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    with socket.socket(family, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]
