"""Tests for host port allocation."""

import socket

from devcontainer_runner.utils.ports import request_open_port


def test_returns_bindable_port():
    port = request_open_port("127.0.0.1")

    assert 1 <= port <= 65535
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", port))
