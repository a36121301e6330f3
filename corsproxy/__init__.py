"""CORS-enabled forwarding proxy with per-node status tracking."""

__version__ = "0.1.0"
