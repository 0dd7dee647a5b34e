import ipaddress
import random
import struct

import pytest

from nodolink.dhcp import (
    DhcpClient,
    DhcpError,
    DhcpLease,
    MessageType,
    build_message,
    parse_response,
)

MAC = bytes([0x02, 0x00, 0x00, 0x00, 0x00, 0x01])
OTHER_MAC = bytes([0x02, 0x00, 0x00, 0x00, 0x00, 0x02])
SERVER = "192.168.1.1"
OFFERED = "192.168.1.50"
MASK = "255.255.255.0"
DNS_SERVER = "192.168.1.2"
COOKIE = b"\x63\x82\x53\x63"


def ip(text):
    return ipaddress.IPv4Address(text).packed


def opt(code, body):
    return bytes([code, len(body)]) + body


def make_reply(xid, options, mac=MAC, yiaddr=OFFERED, op=2):
    header = struct.pack(">BBBBIHH", op, 1, 6, 0, xid, 0, 0)
    header += bytes(4) + ip(yiaddr) + bytes(8)
    header += mac + bytes(10) + bytes(192) + COOKIE
    return header + options


def full_options(message_type, server=SERVER):
    return (
        opt(53, bytes([message_type]))
        + opt(1, ip(MASK))
        + opt(3, ip(SERVER))
        + opt(6, ip(DNS_SERVER))
        + opt(54, ip(server))
        + opt(51, b"\x00\x00\x0e\x10")
        + b"\xff"
    )


class FakeServer:
    def __init__(self, script):
        self.script = list(script)
        self.sent = []
        self.closed = False

    def __call__(self):
        return self

    def send(self, data, address):
        self.sent.append((bytes(data), address))
        return len(data)

    def receive(self, timeout=None):
        if not self.script:
            return None
        step = self.script.pop(0)
        if step is None:
            return None
        if isinstance(step, tuple):
            message_type, port = step
        else:
            message_type, port = step, 67
        xid = struct.unpack(">I", self.sent[-1][0][4:8])[0]
        return make_reply(xid, full_options(message_type)), (SERVER, port)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def sent_types(server):
    return [data[242] for data, _ in server.sent]


def sent_xids(server):
    return [struct.unpack(">I", data[4:8])[0] for data, _ in server.sent]


def test_discover_fixed_header():
    message = build_message(MessageType.DISCOVER, 0x01020304, 0, MAC)
    assert message[0:4] == b"\x01\x01\x06\x00"
    assert message[4:8] == b"\x01\x02\x03\x04"
    assert message[10:12] == b"\x80\x00"
    assert message[12:28] == bytes(16)
    assert message[28:34] == MAC
    assert message[34:236] == bytes(202)
    assert message[236:240] == COOKIE


def test_discover_options():
    message = build_message(MessageType.DISCOVER, 7, 0, MAC)
    options = message[240:]
    assert options.startswith(b"\x35\x01\x01")
    assert opt(61, b"\x01" + MAC) in options
    assert opt(12, b"WIZnet" + MAC[3:]) in options
    assert options.endswith(b"\x37\x06\x01\x03\x06\x0f\x3a\x3b\xff")
    assert bytes([50, 4]) not in options


def test_seconds_elapsed_is_big_endian():
    message = build_message(MessageType.DISCOVER, 1, 0x1234, MAC)
    assert message[8:10] == b"\x12\x34"


def test_request_names_address_and_server():
    discover = build_message(MessageType.DISCOVER, 1, 0, MAC)
    request = build_message(MessageType.REQUEST, 1, 0, MAC, OFFERED, SERVER)
    assert len(request) == len(discover) + 12
    assert request[242] == MessageType.REQUEST
    assert opt(50, ip(OFFERED)) + opt(54, ip(SERVER)) in request


def test_mac_accepted_as_text():
    text = ":".join(f"{b:02x}" for b in MAC)
    assert build_message(1, 5, 0, text) == build_message(1, 5, 0, MAC)


def test_invalid_mac_rejected():
    with pytest.raises(ValueError):
        build_message(1, 5, 0, b"\x01\x02")
    with pytest.raises(ValueError):
        DhcpClient("zz:00:00:00:00:01")


def test_parse_offer():
    data = make_reply(100, full_options(2))
    response = parse_response(data, MAC, 99, 101, None, SERVER)
    assert response.message_type is MessageType.OFFER
    assert response.transaction_id == 100
    assert response.your_ip == OFFERED
    assert response.subnet_mask == MASK
    assert response.gateway_ip == SERVER
    assert response.dns_server_ip == DNS_SERVER
    assert response.server_ip == SERVER


def test_parse_skips_pad_and_end_bytes():
    options = b"\x00\x00\xff" + opt(53, b"\x05") + b"\x00" + opt(1, ip(MASK))
    response = parse_response(make_reply(3, options), MAC, 3, 3)
    assert response.message_type is MessageType.ACK
    assert response.subnet_mask == MASK
    assert response.gateway_ip is None


@pytest.mark.parametrize(
    "data",
    [
        make_reply(100, full_options(2), mac=OTHER_MAC),
        make_reply(98, full_options(2)),
        make_reply(102, full_options(2)),
        make_reply(100, full_options(2), op=1),
    ],
)
def test_parse_ignores_replies_for_others(data):
    assert parse_response(data, MAC, 99, 101, None, SERVER) is None


def test_server_identifier_only_from_known_server():
    data = make_reply(5, full_options(2, server="192.168.1.9"))
    foreign = parse_response(data, MAC, 5, 5, SERVER, "192.168.1.9")
    assert foreign.server_ip is None
    same = parse_response(data, MAC, 5, 5, "192.168.1.9", "192.168.1.9")
    assert same.server_ip == "192.168.1.9"
    unknown = parse_response(data, MAC, 5, 5, "0.0.0.0", "10.0.0.1")
    assert unknown.server_ip == "192.168.1.9"


def test_parse_truncated_reply_raises():
    data = make_reply(5, full_options(2))
    with pytest.raises(DhcpError):
        parse_response(data[:20], MAC, 5, 5)
    with pytest.raises(DhcpError):
        parse_response(data[:200], MAC, 5, 5)
    with pytest.raises(DhcpError):
        parse_response(make_reply(5, b"\x01\x04\xff"), MAC, 5, 5)


def test_client_obtains_lease():
    server = FakeServer([MessageType.OFFER, MessageType.ACK])
    client = DhcpClient(MAC, server, random.Random(0))
    lease = client.begin(timeout=5.0, response_timeout=0.0)
    assert lease == DhcpLease(OFFERED, MASK, SERVER, SERVER, DNS_SERVER)
    assert sent_types(server) == [MessageType.DISCOVER, MessageType.REQUEST]
    request = server.sent[1][0]
    assert opt(50, ip(OFFERED)) + opt(54, ip(SERVER)) in request
    assert all(address == ("255.255.255.255", 67) for _, address in server.sent)
    xids = sent_xids(server)
    assert xids[0] == xids[1]
    assert server.closed


def test_client_restarts_after_nak():
    server = FakeServer(
        [MessageType.OFFER, MessageType.NAK, MessageType.OFFER, MessageType.ACK]
    )
    client = DhcpClient(MAC, server, random.Random(1))
    lease = client.begin(timeout=5.0, response_timeout=0.0)
    assert lease.local_ip == OFFERED
    assert sent_types(server) == [1, 3, 1, 3]
    xids = sent_xids(server)
    assert xids[2] == xids[1] + 1


def test_client_ignores_reply_from_wrong_port():
    server = FakeServer([(MessageType.OFFER, 1234), MessageType.OFFER, MessageType.ACK])
    client = DhcpClient(MAC, server, random.Random(2))
    lease = client.begin(timeout=5.0, response_timeout=0.0)
    assert lease.dns_server_ip == DNS_SERVER
    assert sent_types(server) == [MessageType.DISCOVER, MessageType.REQUEST]


def test_client_rediscovers_after_silence():
    server = FakeServer([None, MessageType.OFFER, MessageType.ACK])
    client = DhcpClient(MAC, server, random.Random(3))
    lease = client.begin(timeout=5.0, response_timeout=0.0)
    assert lease.subnet_mask == MASK
    assert sent_types(server) == [1, 1, 3]


def test_client_times_out():
    server = FakeServer([])
    client = DhcpClient(MAC, server, random.Random(4))
    with pytest.raises(DhcpError):
        client.begin(timeout=0.05, response_timeout=0.0)
    assert server.closed
    assert len(server.sent) >= 1
    assert set(sent_types(server)) == {MessageType.DISCOVER}


def test_initial_transaction_id_in_range():
    server = FakeServer([MessageType.OFFER, MessageType.ACK])
    client = DhcpClient(MAC, server, random.Random(5))
    client.begin(timeout=5.0, response_timeout=0.0)
    first = sent_xids(server)[0]
    assert 2 <= first <= 2000