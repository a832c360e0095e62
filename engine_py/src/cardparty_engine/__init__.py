"""Authoritative room and game state for the card party server."""

__version__ = "1.0.0"
