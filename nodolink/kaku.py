"""Klik-Aan-Klik-Uit (KAKU) signals with manual address coding.

A signal is twelve data bits followed by a stop bit. Every data bit is four
pulses: 0 = T,3T,T,3T; 1 = T,3T,3T,T; short 0 = T,3T,T,T, with T = 350 us.
Pulse lists here hold the pulse lengths divided by the multiplier, without a
leading unused slot.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

KAKU_CODE_LENGTH = 12
KAKU_T = 350
SIGNAL_LENGTH = KAKU_CODE_LENGTH * 4 + 2
DEFAULT_MULTIPLY = 50
REPEATS = 7
DELAY = 20

EVENT_NAME = "Kaku"
COMMAND_NAME = "KakuSend"

_FIXED_BITS = 0x600
_ON_BIT = 11


class KakuError(ValueError):
    """Raised for a KAKU command line that cannot be completed."""


class EventKind(enum.Enum):
    EVENT = EVENT_NAME
    COMMAND = COMMAND_NAME


@dataclass(frozen=True)
class KakuEvent:
    """A KAKU switch action: house code A..P (0..15), unit nibble, on/off, group."""

    home: int
    unit: int = 0
    on: bool = False
    group: bool = False
    kind: EventKind = EventKind.EVENT

    def __post_init__(self) -> None:
        if not 0 <= self.home <= 0x0F:
            raise ValueError(f"home out of range: {self.home}")
        if not 0 <= self.unit <= 0x0F:
            raise ValueError(f"unit out of range: {self.unit}")

    @property
    def address(self) -> int:
        """Address as users write it: 1..16, or 0 for a group command."""
        return 0 if self.group else self.unit + 1

    @property
    def code(self) -> int:
        """Address byte: unit in the high nibble, home in the low nibble."""
        return self.home | (self.unit << 4)


def _check_multiply(multiply: int) -> None:
    if multiply <= 0:
        raise ValueError(f"multiplier must be positive: {multiply}")


def decode_pulses(pulses, multiply: int = DEFAULT_MULTIPLY) -> KakuEvent | None:
    """Decode a received pulse list; None when it is not a valid KAKU signal."""
    _check_multiply(multiply)
    pulses = list(pulses)
    if len(pulses) != SIGNAL_LENGTH:
        return None

    threshold = (KAKU_T * 2) // multiply
    bitstream = 0
    group = False
    for start in range(0, KAKU_CODE_LENGTH * 4, 4):
        a, b, c, d = pulses[start:start + 4]
        if not (a < threshold and b > threshold):
            return None
        if c < threshold and d > threshold:
            bitstream >>= 1
        elif c > threshold and d < threshold:
            bitstream = (bitstream >> 1) | (1 << (KAKU_CODE_LENGTH - 1))
        elif c < threshold and d < threshold:
            bitstream >>= 1
            group = True
        else:
            return None

    if bitstream & _FIXED_BITS != _FIXED_BITS:
        return None
    code = bitstream & 0xFF
    return KakuEvent(
        home=code & 0x0F,
        unit=code >> 4,
        on=bool((bitstream >> _ON_BIT) & 1),
        group=group,
        kind=EventKind.EVENT,
    )


def encode_event(event: KakuEvent, multiply: int = DEFAULT_MULTIPLY) -> list[int]:
    """Build the pulse list that switches receivers as the event describes."""
    _check_multiply(multiply)
    short = KAKU_T // multiply
    long = (KAKU_T * 3) // multiply
    bitstream = event.code | _FIXED_BITS | (int(event.on) << _ON_BIT)

    pulses: list[int] = []
    for bit in range(KAKU_CODE_LENGTH):
        pulses += [short, long]
        if event.group and 4 <= bit < 8:
            pulses += [short, short]
        elif (bitstream >> bit) & 1:
            pulses += [long, short]
        else:
            pulses += [short, long]
    pulses += [short, short]
    return pulses


def _arguments(text: str) -> list[str]:
    return [part for part in re.split(r"[\s,]+", text.strip()) if part]


def parse_mmi(text: str) -> KakuEvent | None:
    """Parse 'Kaku <A1..P16>,<On|Off>' or 'KakuSend ...'.

    Returns None when the line is not a KAKU event or command.
    """
    args = _arguments(text)
    if not args:
        return None
    name = args[0].lower()
    if name == EVENT_NAME.lower():
        kind = EventKind.EVENT
    elif name == COMMAND_NAME.lower():
        kind = EventKind.COMMAND
    else:
        return None

    if len(args) < 2:
        raise KakuError(f"missing address in {text!r}")
    home = 0
    address = 0
    for char in args[1].lower():
        if char.isdigit() and char.isascii():
            address = (address * 10 + int(char)) & 0xFF
        if "a" <= char <= "p":
            home = ord(char) - ord("a")

    if len(args) < 3:
        raise KakuError(f"missing On/Off in {text!r}")
    on = args[2].lower() == "on"

    if address == 0:
        return KakuEvent(home=home, unit=0, on=on, group=True, kind=kind)
    return KakuEvent(home=home, unit=(address - 1) & 0x0F, on=on, group=False, kind=kind)


def format_mmi(event: KakuEvent) -> str:
    """Render an event as the user-facing text line."""
    state = "On" if event.on else "Off"
    return f"{event.kind.value} {chr(ord('A') + event.home)}{event.address},{state}"