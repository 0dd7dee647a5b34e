"""Reading unit configuration files.

A configuration file is a list of preprocessor ``#define`` lines: the unit
number, the hardware layout, the plugins the unit knows about (``PLUGIN_nnn``),
the plugins that do their work on this unit (``PLUGIN_nnn_CORE``, optionally
with a value) and hardware options that may be switched off
(``HARDWARE_xxx false``). Lines behind ``//`` and ``/* ... */`` are ignored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import Union

Value = Union[bool, int, str, None]

_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_DEFINE = re.compile(r"^\s*#\s*define\s+([A-Za-z_]\w*)(?:\s+(.*?))?\s*$")
_INTEGER = re.compile(r"^([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)[uUlL]*$")
_PLUGIN = re.compile(r"^PLUGIN_(\d+)(_CORE)?$")
_HARDWARE_PREFIX = "HARDWARE_"
_UNIT_KEY = "UNIT_NODO"
_HARDWARE_CONFIG_KEY = "HARDWARE_CONFIG"


def _parse_value(raw: str | None) -> Value:
    if raw is None or raw == "":
        return None
    lowered = raw.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    match = _INTEGER.match(raw)
    if match is None:
        return raw
    sign, digits = match.groups()
    if digits[:2].lower() == "0x":
        number = int(digits, 16)
    elif len(digits) > 1 and digits.startswith("0"):
        number = int(digits, 8)
    else:
        number = int(digits)
    return -number if sign == "-" else number


def _defines(text: str):
    """Yield (name, value) for every active #define, in file order."""
    text = _BLOCK_COMMENT.sub(" ", text)
    for line in text.splitlines():
        line = line.split("//", 1)[0]
        match = _DEFINE.match(line)
        if match is not None:
            name, raw = match.groups()
            yield name, _parse_value(raw)


def _require_int(defines: dict[str, Value], key: str) -> int:
    if key not in defines:
        raise ValueError(f"configuration lacks {key}")
    value = defines[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    return value


def _hardware_key(name: str) -> str:
    key = name.strip().upper()
    if not key.startswith(_HARDWARE_PREFIX):
        key = _HARDWARE_PREFIX + key
    return key


@dataclass(frozen=True)
class NodoConfig:
    """The settings one configuration file gives a unit."""

    unit: int
    hardware_config: int
    plugins: frozenset[int] = frozenset()
    core_plugins: dict[int, Value] = field(default_factory=dict)
    hardware: dict[str, Value] = field(default_factory=dict)
    defines: dict[str, Value] = field(default_factory=dict)

    @property
    def all_plugins(self) -> frozenset[int]:
        """Every plugin named, whether for display or for its actual work."""
        return self.plugins | frozenset(self.core_plugins)

    def hardware_enabled(self, name: str) -> bool:
        """Whether a hardware option is on; options not switched off are on.

        ``name`` may be given with or without the ``HARDWARE_`` prefix.
        """
        key = _hardware_key(name)
        if key not in self.hardware:
            return True
        value = self.hardware[key]
        if value is None:
            return True
        return bool(value)


def parse_config(text: str) -> NodoConfig:
    """Parse the text of a configuration file."""
    defines: dict[str, Value] = {}
    plugins: set[int] = set()
    core: dict[int, Value] = {}
    hardware: dict[str, Value] = {}

    for name, value in _defines(text):
        defines[name] = value
        plugin = _PLUGIN.match(name)
        if plugin is not None:
            number = int(plugin.group(1))
            if plugin.group(2):
                core[number] = value
            else:
                plugins.add(number)
        elif name.startswith(_HARDWARE_PREFIX) and name != _HARDWARE_CONFIG_KEY:
            hardware[name] = value

    return NodoConfig(
        unit=_require_int(defines, _UNIT_KEY),
        hardware_config=_require_int(defines, _HARDWARE_CONFIG_KEY),
        plugins=frozenset(plugins),
        core_plugins=core,
        hardware=hardware,
        defines=defines,
    )


def load_config(path: Union[str, PathLike]) -> NodoConfig:
    """Read and parse a configuration file."""
    return parse_config(Path(path).read_text(encoding="utf-8", errors="replace"))