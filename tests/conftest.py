import socket

import pytest


@pytest.fixture
def free_port() -> int:
    """Find a free TCP port on the loopback interface."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def redirect_uri(free_port: int) -> str:
    return f"http://127.0.0.1:{free_port}/callback"
