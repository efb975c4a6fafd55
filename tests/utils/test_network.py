import socket
from unittest.mock import patch

from func_emulator.utils.network import find_free_port, is_port_taken


def test_bound_port_is_taken():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("0.0.0.0", 0))
        sock.listen()
        port = sock.getsockname()[1]
        assert is_port_taken(port)


def test_port_is_free_after_server_closed_its_connections():
    """Connections closed by the server side linger in TIME_WAIT."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    listener.bind(("0.0.0.0", 0))
    listener.listen()
    port = listener.getsockname()[1]

    client = socket.create_connection(("127.0.0.1", port))
    server_side, _ = listener.accept()
    server_side.close()
    client.close()
    listener.close()

    assert not is_port_taken(port)


def test_find_free_port_skips_taken_ports():
    with patch('func_emulator.utils.network.is_port_taken', side_effect=lambda port: port < 3002):
        assert find_free_port(3000, 3100) == 3002


def test_find_free_port_exhausted():
    with patch('func_emulator.utils.network.is_port_taken', return_value=True):
        assert find_free_port(3000, 3003) is None
