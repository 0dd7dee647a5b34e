"""Datagram transport used by the network clients."""

from __future__ import annotations

import socket

UDP_TX_PACKET_MAX_SIZE = 24

_UNSPECIFIED = "0.0.0.0"


class UdpTransport:
    """A bound UDP socket that sends datagrams and receives them one at a time."""

    def __init__(self, port: int = 0, host: str = _UNSPECIFIED) -> None:
        self._sock: socket.socket | None = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            self._sock.bind((host, port))
        except OSError:
            self._sock.close()
            self._sock = None
            raise
        self.address: tuple[str, int] = self._sock.getsockname()

    @property
    def closed(self) -> bool:
        return self._sock is None

    def _socket(self) -> socket.socket:
        if self._sock is None:
            raise RuntimeError("transport is closed")
        return self._sock

    def send(self, data: bytes, address: tuple[str, int]) -> int:
        """Send one datagram; return the number of bytes handed to the network."""
        host, port = address
        if host == _UNSPECIFIED or port == 0:
            raise ValueError(f"cannot send to {host}:{port}")
        return self._socket().sendto(bytes(data), (host, port))

    def receive(self, timeout: float | None = None) -> tuple[bytes, tuple[str, int]] | None:
        """Wait for the next datagram; return it with its sender, or None on timeout."""
        sock = self._socket()
        sock.settimeout(timeout)
        try:
            data, sender = sock.recvfrom(65535)
        except socket.timeout:
            return None
        return data, (sender[0], sender[1])

    def close(self) -> None:
        """Release the socket. Closing twice does nothing."""
        if self._sock is None:
            return
        self._sock.close()
        self._sock = None

    def __enter__(self) -> "UdpTransport":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()