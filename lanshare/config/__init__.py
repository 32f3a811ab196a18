"""Runtime configuration for LAN Share."""
