"""A minimal DNS client that resolves host names to IPv4 addresses.

Only one question is asked per request: an A record of class IN, with
recursion desired. The first A answer in the reply is used.
"""

from __future__ import annotations

import struct
import time
from typing import Callable

from .udp import UdpTransport

DNS_PORT = 53
INADDR_NONE = "255.255.255.255"
DNS_HEADER_SIZE = 12
MAX_LABEL_LENGTH = 63

QUERY_FLAG = 0
RESPONSE_FLAG = 1 << 15
QUERY_RESPONSE_MASK = 1 << 15
OPCODE_STANDARD_QUERY = 0
TRUNCATION_FLAG = 1 << 9
RECURSION_DESIRED_FLAG = 1 << 8
RESP_MASK = 15
TYPE_A = 0x0001
CLASS_IN = 0x0001
LABEL_COMPRESSION_MASK = 0xC0

# Failure codes carried by DnsError.code.
TIMED_OUT = -1
INVALID_SERVER = -2
TRUNCATED = -3
INVALID_RESPONSE = -4
ERROR_IN_RESPONSE = -5
NO_ANSWERS = -6
BAD_ADDRESS_LENGTH = -9
NO_ADDRESS = -10

_WAIT_RETRIES = 3
_HEADER = struct.Struct(">HHHHHH")
_U16 = struct.Struct(">H")


class DnsError(Exception):
    """A name could not be resolved; ``code`` tells why."""

    def __init__(self, message: str, code: int = INVALID_RESPONSE) -> None:
        super().__init__(message)
        self.code = code


def inet_aton(text: str) -> str | None:
    """Return the dotted address for a numeric IPv4 string, or None.

    Up to four dot-separated decimal segments are accepted; missing trailing
    segments and empty segments count as zero.
    """
    if not text or any(char not in "0123456789." for char in text):
        return None
    parts = text.split(".")
    if len(parts) > 4:
        return None
    values = [int(part) if part else 0 for part in parts]
    if any(value > 255 for value in values):
        return None
    values += [0] * (4 - len(values))
    return ".".join(str(value) for value in values)


def build_request(hostname: str, request_id: int) -> bytes:
    """Build the query datagram asking for the A record of ``hostname``."""
    if not 0 <= request_id <= 0xFFFF:
        raise ValueError(f"request id out of range: {request_id}")
    flags = QUERY_FLAG | OPCODE_STANDARD_QUERY | RECURSION_DESIRED_FLAG
    parts = [_HEADER.pack(request_id, flags, 1, 0, 0, 0)]
    for label in hostname.split("."):
        if not label:
            continue
        encoded = label.encode("ascii")
        if len(encoded) > MAX_LABEL_LENGTH:
            raise ValueError(f"label too long: {label!r}")
        parts.append(bytes([len(encoded)]) + encoded)
    parts.append(b"\x00")
    parts.append(_U16.pack(TYPE_A) + _U16.pack(CLASS_IN))
    return b"".join(parts)


class _Reader:
    def __init__(self, data: bytes, offset: int = 0) -> None:
        self._data = data
        self._offset = offset

    def take(self, count: int) -> bytes:
        end = self._offset + count
        if end > len(self._data):
            raise DnsError("response ends early", TRUNCATED)
        chunk = self._data[self._offset:end]
        self._offset = end
        return chunk

    def u16(self) -> int:
        return _U16.unpack(self.take(2))[0]

    def skip_name(self) -> None:
        while True:
            length = self.take(1)[0]
            if length & LABEL_COMPRESSION_MASK:
                self.take(1)
                return
            if length == 0:
                return
            self.take(length)


def parse_response(data: bytes, request_id: int) -> str:
    """Return the first IPv4 address answered in a reply to ``request_id``."""
    if len(data) < DNS_HEADER_SIZE:
        raise DnsError("response shorter than a DNS header", TRUNCATED)
    reader = _Reader(data)
    answer_id, flags, questions, answers, _, _ = _HEADER.unpack(reader.take(DNS_HEADER_SIZE))

    if answer_id != request_id or (flags & QUERY_RESPONSE_MASK) != RESPONSE_FLAG:
        raise DnsError("not a response to this request", INVALID_RESPONSE)
    if flags & TRUNCATION_FLAG or flags & RESP_MASK:
        raise DnsError(f"server reported an error (flags {flags:#06x})", ERROR_IN_RESPONSE)
    if answers == 0:
        raise DnsError("response holds no answers", NO_ANSWERS)

    for _ in range(questions):
        reader.skip_name()
        reader.take(4)

    for _ in range(answers):
        reader.skip_name()
        answer_type = reader.u16()
        answer_class = reader.u16()
        reader.take(4)
        length = reader.u16()
        if answer_type == TYPE_A and answer_class == CLASS_IN:
            if length != 4:
                raise DnsError(f"A record of {length} bytes", BAD_ADDRESS_LENGTH)
            return ".".join(str(octet) for octet in reader.take(4))
        reader.take(length)

    raise DnsError("no A record among the answers", NO_ADDRESS)


class DNSClient:
    """Resolves names by asking one DNS server over UDP."""

    def __init__(
        self,
        server: str | None,
        transport_factory: Callable[[], UdpTransport] = UdpTransport,
        timeout: float = 5.0,
    ) -> None:
        self.server = None if server is None else str(server)
        self.timeout = timeout
        self._transport_factory = transport_factory

    @staticmethod
    def _next_id() -> int:
        return int(time.monotonic() * 1000) & 0xFFFF

    def get_host_by_name(self, hostname: str) -> str:
        """Return the IPv4 address of ``hostname``; numeric addresses are returned as is."""
        address = inet_aton(hostname)
        if address is not None:
            return address
        if not self.server or self.server == INADDR_NONE:
            raise DnsError("no DNS server configured", INVALID_SERVER)

        request_id = self._next_id()
        request = build_request(hostname, request_id)
        with self._transport_factory() as transport:
            transport.send(request, (self.server, DNS_PORT))
            for _ in range(_WAIT_RETRIES):
                packet = transport.receive(self.timeout)
                if packet is None:
                    continue
                data, (host, port) = packet
                if host != self.server or port != DNS_PORT:
                    raise DnsError(f"reply from unexpected {host}:{port}", INVALID_SERVER)
                return parse_response(data, request_id)
        raise DnsError(f"no reply for {hostname!r}", TIMED_OUT)