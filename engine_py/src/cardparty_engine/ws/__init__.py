"""
WebSocket server and event handling for the card party server.
"""

from .server import ConnectionManager, Dispatcher, serve_connection

__all__ = ["ConnectionManager", "Dispatcher", "serve_connection"]
