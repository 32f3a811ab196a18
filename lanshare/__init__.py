"""LAN Share: ephemeral file and note sharing over a local network."""

__version__ = "0.3.0"
