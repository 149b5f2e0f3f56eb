"""Host port allocation."""

import socket


def request_open_port(host: str = "0.0.0.0") -> int:
    """Ask the OS for a currently free TCP port on the host.

    Raises:
        OSError: If no port can be bound
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]
