"""Ready-made unit configurations for common Nodo Small set-ups."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .config import NodoConfig, Value


@dataclass(frozen=True)
class _Preset:
    description: str
    unit: int
    hardware_config: int
    core_plugins: tuple[tuple[int, Value], ...] = ()
    plugins: tuple[int, ...] = ()
    hardware: tuple[tuple[str, Value], ...] = ()

    def build(self) -> NodoConfig:
        core = dict(self.core_plugins)
        hardware = dict(self.hardware)
        defines: dict[str, Value] = {
            "UNIT_NODO": self.unit,
            "HARDWARE_CONFIG": self.hardware_config,
        }
        defines.update((f"PLUGIN_{number:03d}", None) for number in self.plugins)
        defines.update((f"PLUGIN_{number:03d}_CORE", value) for number, value in core.items())
        defines.update(hardware)
        return NodoConfig(
            unit=self.unit,
            hardware_config=self.hardware_config,
            plugins=frozenset(self.plugins),
            core_plugins=core,
            hardware=hardware,
            defines=defines,
        )


_PRESETS: dict[str, _Preset] = {
    # Uno-compatible unit with a DHT-22 humidity/temperature sensor and a
    # BMP085 pressure sensor; the real-time clock is switched off.
    "small-sensor": _Preset(
        description="Nodo Small (ATMega328, Nodo-Uno shield) with DHT-22 and BMP085 sensors",
        unit=15,
        hardware_config=1500,
        core_plugins=((6, 22), (20, None)),
        hardware=(("HARDWARE_CLOCK", False),),
    ),
    # OpenTherm gateway; the plugin value is the first of nine variables used
    # for setpoint and boiler monitoring.
    "opentherm-gateway": _Preset(
        description="OpenTherm gateway on a second-generation Nodo Small with NRF24L01",
        unit=16,
        hardware_config=2511,
        core_plugins=((11, 1),),
    ),
    "small-nrf24": _Preset(
        description="Nodo Small with an NRF24L01 module, no plugins",
        unit=20,
        hardware_config=1502,
    ),
}


def _normalise(name: str) -> str:
    return name.strip().lower().replace("_", "-")


def available_presets() -> list[str]:
    """Names of the configurations that :func:`preset` knows, sorted."""
    return sorted(_PRESETS)


def preset(name: str) -> NodoConfig:
    """Return a fresh configuration for the named preset.

    Raises KeyError for an unknown name.
    """
    key = _normalise(name)
    try:
        entry = _PRESETS[key]
    except KeyError:
        known = ", ".join(available_presets())
        raise KeyError(f"unknown preset {name!r}; known presets: {known}") from None
    return entry.build()


def describe(name: str) -> str:
    """One-line description of the named preset."""
    key = _normalise(name)
    if key not in _PRESETS:
        raise KeyError(f"unknown preset {name!r}")
    return _PRESETS[key].description


_builders: dict[str, Callable[[], NodoConfig]] = {
    name: entry.build for name, entry in _PRESETS.items()
}