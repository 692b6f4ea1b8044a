"""Tor discovery, control-port checks and onion-hosted meeting helpers."""

__version__ = "0.1.0"