"""KAKU signal coding, Nodo configuration reading and small DNS/DHCP clients over UDP."""

__version__ = "0.1.0"

__all__ = ["config", "dhcp", "dns", "kaku", "presets", "udp"]