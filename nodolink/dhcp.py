"""A DHCP client that obtains an IPv4 lease by broadcast.

The client runs the usual DISCOVER / OFFER / REQUEST / ACK exchange. A NAK,
or no reply within the response timeout, starts the exchange over with a new
DISCOVER until the overall timeout runs out.
"""

from __future__ import annotations

import enum
import ipaddress
import random
import socket
import struct
import time
from dataclasses import dataclass
from typing import Callable, Union

from .udp import UdpTransport

DHCP_SERVER_PORT = 67
DHCP_CLIENT_PORT = 68

DHCP_BOOTREQUEST = 1
DHCP_BOOTREPLY = 2
DHCP_HTYPE10MB = 1
DHCP_HLENETHERNET = 6
DHCP_HOPS = 0
DHCP_FLAGSBROADCAST = 0x8000
MAGIC_COOKIE = 0x63825363
HOST_NAME = "WIZnet"

BROADCAST_ADDRESS = "255.255.255.255"
ZERO_ADDRESS = "0.0.0.0"

# Option codes.
PAD_OPTION = 0
SUBNET_MASK = 1
ROUTERS_ON_SUBNET = 3
DNS = 6
HOST_NAME_OPTION = 12
DOMAIN_NAME = 15
REQUESTED_IP = 50
LEASE_TIME = 51
MESSAGE_TYPE = 53
SERVER_IDENTIFIER = 54
PARAM_REQUEST = 55
T1_VALUE = 58
T2_VALUE = 59
CLIENT_IDENTIFIER = 61
END_OPTION = 255

OPTIONS_OFFSET = 240

_FIXED = struct.Struct(">BBBBIHH4s4s4s4s6s")
_REQUEST_HEADER = struct.Struct(">BBBBIHH16x")
_SNAME_AND_FILE = 192
_CHADDR_SIZE = 16

MacLike = Union[bytes, bytearray, str]


class MessageType(enum.IntEnum):
    DISCOVER = 1
    OFFER = 2
    REQUEST = 3
    DECLINE = 4
    ACK = 5
    NAK = 6
    RELEASE = 7
    INFORM = 8


class DhcpError(Exception):
    """A lease could not be obtained, or a reply could not be read."""


@dataclass(frozen=True)
class DhcpLease:
    """The network settings a server handed out."""

    local_ip: str = ZERO_ADDRESS
    subnet_mask: str = ZERO_ADDRESS
    gateway_ip: str = ZERO_ADDRESS
    dhcp_server_ip: str = ZERO_ADDRESS
    dns_server_ip: str = ZERO_ADDRESS


@dataclass(frozen=True)
class DhcpResponse:
    """What one server reply meant for this client.

    Options that were absent (or, for the server identifier, not accepted)
    are None.
    """

    message_type: MessageType | None
    transaction_id: int
    your_ip: str
    subnet_mask: str | None = None
    gateway_ip: str | None = None
    dns_server_ip: str | None = None
    server_ip: str | None = None


def _mac_bytes(mac: MacLike) -> bytes:
    if isinstance(mac, str):
        parts = mac.replace("-", ":").split(":")
        try:
            raw = bytes(int(part, 16) for part in parts)
        except ValueError as exc:
            raise ValueError(f"invalid MAC address: {mac!r}") from exc
        if any(len(part) not in (1, 2) for part in parts):
            raise ValueError(f"invalid MAC address: {mac!r}")
    else:
        raw = bytes(mac)
    if len(raw) != 6:
        raise ValueError(f"MAC address must be 6 bytes, got {len(raw)}")
    return raw


def _ip_bytes(address: str | None) -> bytes:
    return ipaddress.IPv4Address(address or ZERO_ADDRESS).packed


def _ip_text(raw: bytes) -> str:
    return str(ipaddress.IPv4Address(raw))


def _option(code: int, body: bytes) -> bytes:
    return bytes([code, len(body)]) + body


def build_message(
    message_type: MessageType | int,
    transaction_id: int,
    seconds_elapsed: int,
    mac: MacLike,
    requested_ip: str | None = None,
    server_ip: str | None = None,
) -> bytes:
    """Build a client message; REQUEST messages also name the offered address and server."""
    mac = _mac_bytes(mac)
    message_type = int(message_type)
    header = _REQUEST_HEADER.pack(
        DHCP_BOOTREQUEST,
        DHCP_HTYPE10MB,
        DHCP_HLENETHERNET,
        DHCP_HOPS,
        transaction_id & 0xFFFFFFFF,
        seconds_elapsed & 0xFFFF,
        DHCP_FLAGSBROADCAST,
    )
    chaddr = mac.ljust(_CHADDR_SIZE, b"\x00")
    host_name = HOST_NAME.encode("ascii") + mac[3:6]

    options = [
        struct.pack(">I", MAGIC_COOKIE),
        _option(MESSAGE_TYPE, bytes([message_type])),
        _option(CLIENT_IDENTIFIER, b"\x01" + mac),
        _option(HOST_NAME_OPTION, host_name),
    ]
    if message_type == MessageType.REQUEST:
        options.append(_option(REQUESTED_IP, _ip_bytes(requested_ip)))
        options.append(_option(SERVER_IDENTIFIER, _ip_bytes(server_ip)))
    options.append(
        _option(
            PARAM_REQUEST,
            bytes([SUBNET_MASK, ROUTERS_ON_SUBNET, DNS, DOMAIN_NAME, T1_VALUE, T2_VALUE]),
        )
    )
    options.append(bytes([END_OPTION]))
    return header + chaddr + bytes(_SNAME_AND_FILE) + b"".join(options)


def _address_option(code: int, body: bytes) -> str:
    if len(body) < 4:
        raise DhcpError(f"option {code} holds {len(body)} bytes, expected 4")
    return _ip_text(body[:4])


def parse_response(
    data: bytes,
    mac: MacLike,
    first_xid: int,
    last_xid: int,
    known_server: str | None = None,
    sender_ip: str | None = None,
) -> DhcpResponse | None:
    """Read a server reply; None when it is not a reply meant for this client.

    The server identifier is only taken over when no server is known yet or
    the reply comes from the known server.
    """
    mac = _mac_bytes(mac)
    data = bytes(data)
    if len(data) < _FIXED.size:
        raise DhcpError("reply shorter than the fixed header")
    op, _, _, _, xid, _, _, _, yiaddr, _, _, chaddr = _FIXED.unpack_from(data)
    if op != DHCP_BOOTREPLY:
        return None
    if chaddr != mac or not first_xid <= xid <= last_xid:
        return None
    if len(data) < OPTIONS_OFFSET:
        raise DhcpError("reply ends before its options")

    accept_server = known_server in (None, ZERO_ADDRESS) or known_server == sender_ip
    message_type: MessageType | None = None
    found: dict[str, str] = {}

    position = OPTIONS_OFFSET
    while position < len(data):
        code = data[position]
        position += 1
        if code in (PAD_OPTION, END_OPTION):
            continue
        if position >= len(data):
            raise DhcpError(f"option {code} has no length")
        length = data[position]
        position += 1
        body = data[position:position + length]
        if len(body) < length:
            raise DhcpError(f"option {code} ends early")
        position += length

        if code == MESSAGE_TYPE:
            if not body:
                raise DhcpError("empty message type option")
            try:
                message_type = MessageType(body[0])
            except ValueError:
                message_type = None
        elif code == SUBNET_MASK:
            found["subnet_mask"] = _address_option(code, body)
        elif code == ROUTERS_ON_SUBNET:
            found["gateway_ip"] = _address_option(code, body)
        elif code == DNS:
            found["dns_server_ip"] = _address_option(code, body)
        elif code == SERVER_IDENTIFIER and accept_server:
            found["server_ip"] = _address_option(code, body)

    return DhcpResponse(
        message_type=message_type,
        transaction_id=xid,
        your_ip=_ip_text(yiaddr),
        **found,
    )


class _BroadcastTransport(UdpTransport):
    def __init__(self, port: int = DHCP_CLIENT_PORT, host: str = ZERO_ADDRESS) -> None:
        super().__init__(port, host)
        self._socket().setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)


def _broadcast_transport() -> UdpTransport:
    return _BroadcastTransport(DHCP_CLIENT_PORT)


class _State(enum.Enum):
    START = enum.auto()
    DISCOVER = enum.auto()
    REQUEST = enum.auto()


_TIMED_OUT = object()


class DhcpClient:
    """Obtains a lease for one network interface, identified by its MAC address."""

    def __init__(
        self,
        mac: MacLike,
        transport_factory: Callable[[], UdpTransport] = _broadcast_transport,
        rng: random.Random | None = None,
    ) -> None:
        self.mac = _mac_bytes(mac)
        self._transport_factory = transport_factory
        self._rng = rng if rng is not None else random.Random()
        self._xid = 0
        self._initial_xid = 0
        self._reset()

    def _reset(self) -> None:
        self._local_ip = ZERO_ADDRESS
        self._subnet_mask = ZERO_ADDRESS
        self._gateway_ip = ZERO_ADDRESS
        self._server_ip = ZERO_ADDRESS
        self._dns_server_ip = ZERO_ADDRESS

    def _lease(self) -> DhcpLease:
        return DhcpLease(
            local_ip=self._local_ip,
            subnet_mask=self._subnet_mask,
            gateway_ip=self._gateway_ip,
            dhcp_server_ip=self._server_ip,
            dns_server_ip=self._dns_server_ip,
        )

    def _send(self, transport: UdpTransport, message_type: MessageType, elapsed: float) -> None:
        message = build_message(
            message_type,
            self._xid,
            int(elapsed),
            self.mac,
            requested_ip=self._local_ip,
            server_ip=self._server_ip,
        )
        transport.send(message, (BROADCAST_ADDRESS, DHCP_SERVER_PORT))

    def _await(self, transport: UdpTransport, response_timeout: float):
        packet = transport.receive(response_timeout)
        if packet is None:
            return _TIMED_OUT
        data, (host, port) = packet
        if port != DHCP_SERVER_PORT:
            return None
        try:
            response = parse_response(
                data, self.mac, self._initial_xid, self._xid, self._server_ip, host
            )
        except DhcpError:
            return None
        if response is None:
            return None
        self._local_ip = response.your_ip
        if response.subnet_mask is not None:
            self._subnet_mask = response.subnet_mask
        if response.gateway_ip is not None:
            self._gateway_ip = response.gateway_ip
        if response.dns_server_ip is not None:
            self._dns_server_ip = response.dns_server_ip
        if response.server_ip is not None:
            self._server_ip = response.server_ip
        return response

    def begin(self, timeout: float = 60.0, response_timeout: float = 4.0) -> DhcpLease:
        """Run the exchange and return the lease; DhcpError when time runs out."""
        self._reset()
        self._xid = self._rng.randrange(1, 2000)
        self._initial_xid = self._xid
        state = _State.START
        start = time.monotonic()

        with self._transport_factory() as transport:
            try:
                while True:
                    elapsed = time.monotonic() - start
                    if state is _State.START:
                        self._xid = (self._xid + 1) & 0xFFFFFFFF
                        self._send(transport, MessageType.DISCOVER, elapsed)
                        state = _State.DISCOVER
                    else:
                        reply = self._await(transport, response_timeout)
                        if reply is _TIMED_OUT:
                            state = _State.START
                        elif reply is not None:
                            kind = reply.message_type
                            if state is _State.DISCOVER and kind is MessageType.OFFER:
                                self._xid = reply.transaction_id
                                self._send(
                                    transport,
                                    MessageType.REQUEST,
                                    time.monotonic() - start,
                                )
                                state = _State.REQUEST
                            elif state is _State.REQUEST and kind is MessageType.ACK:
                                return self._lease()
                            elif state is _State.REQUEST and kind is MessageType.NAK:
                                state = _State.START
                    if time.monotonic() - start > timeout:
                        break
            finally:
                self._xid = (self._xid + 1) & 0xFFFFFFFF

        raise DhcpError(f"no lease obtained within {timeout} s")