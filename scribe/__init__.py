"""Scribe - voice room note taker."""

__version__ = "0.1.0"
