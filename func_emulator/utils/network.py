"""Local port helpers."""

import socket
from typing import Optional

from ..core.constants import DEFAULT_PORT, PORT_SEARCH_LIMIT


def is_port_taken(port: int, host: str = "0.0.0.0") -> bool:
    """Return True if something on this machine already listens on ``port``."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        # TIME_WAIT leftovers of a removed container must not count as taken
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError:
            return True
    return False


def find_free_port(start: int = DEFAULT_PORT, end: int = PORT_SEARCH_LIMIT) -> Optional[int]:
    """First free port in ``[start, end)``, or None."""
    for port in range(start, end):
        if not is_port_taken(port):
            return port
    return None
