# nodolink

Tools for working with Nodo home-automation units from Python:

- **`nodolink.kaku`**: decode and encode Klik-Aan-Klik-Uit (KAKU) pulse trains and
  read or write the text form of KAKU events, such as `Kaku A1,On` or `KakuSend B0,Off`.
- **`nodolink.config`**: read Nodo configuration files (`#define` lines): unit number,
  hardware configuration, plugins and hardware options that are switched off.
- **`nodolink.presets`**: ready-made configurations for a few Nodo Small set-ups.
- **`nodolink.dns`**: a small DNS A-record resolver, with its request builder and
  response parser exposed.
- **`nodolink.dhcp`**: a DHCP client that runs the discover, offer, request and ack
  exchange and returns the lease it obtains.
- **`nodolink.udp`**: `UdpTransport`, the UDP socket wrapper the clients use.

The package uses only the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## KAKU events

```python
from nodolink.kaku import parse_mmi, format_mmi, encode_event, decode_pulses

event = parse_mmi("KakuSend A1,On")
print(format_mmi(event))            # KakuSend A1,On

pulses = encode_event(event, 50)    # pulse lengths in units of 50 µs
received = decode_pulses(pulses, 50)
print(format_mmi(received))         # Kaku A1,On
```

Addresses run from `A1` to `P16`. Address `0` (for example `B0`) is a group
command for every address of that home code. `parse_mmi` returns `None` for a
line that is neither `Kaku` nor `KakuSend`, and raises `KakuError` when the
address or the On/Off part is missing. `decode_pulses` returns `None` for a
pulse list that is not a valid KAKU signal. A decoded signal is always of kind
`EventKind.EVENT`.

## Configuration files

```python
from nodolink.config import load_config
from nodolink.presets import available_presets, describe, preset

config = load_config("Config_01.c")
print(config.unit, config.hardware_config)
print(sorted(config.all_plugins))
print(config.hardware_enabled("ETHERNET"))   # False only if switched off

print(available_presets())      # ['opentherm-gateway', 'small-nrf24', 'small-sensor']
print(describe("small-sensor"))
small = preset("small-sensor")
```

`parse_config` reads the same format from a string. It raises `ValueError` when
`UNIT_NODO` or `HARDWARE_CONFIG` is missing or not an integer. `preset` raises
`KeyError` for an unknown name.

## Name resolution

```python
from nodolink.dns import DNSClient, DnsError, inet_aton

print(inet_aton("192.168.1.10"))    # '192.168.1.10'
print(inet_aton("nodo.local"))      # None

resolver = DNSClient("192.168.1.1")
try:
    address = resolver.get_host_by_name("nodo.example.com")
except DnsError as error:
    print(error, error.code)
```

Numeric addresses are returned without asking a server. Otherwise the client
sends one A query and waits up to three times for the given timeout (5 s by
default). Failures raise `DnsError`, and its `code` tells why. `build_request`
and `parse_response` can be used on their own.

## Address leases

```python
from nodolink.dhcp import DhcpClient, DhcpError

client = DhcpClient(bytes.fromhex("020000000001"))
try:
    lease = client.begin(timeout=60.0, response_timeout=4.0)
    print(lease.local_ip, lease.gateway_ip, lease.dns_server_ip)
except DhcpError as error:
    print(error)
```

By default the client broadcasts from UDP port 68, which usually needs
elevated privileges. You can pass another `transport_factory`. `build_message`
and `parse_response` are available for building and reading DHCP messages
directly.

## What this package does not do

There is no command-line program. The package does not drive radio transmitters
or receivers, so KAKU pulse lists have to be sent or captured by other means.
There is no TCP client or server.