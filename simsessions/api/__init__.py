"""
API Package
===========

Session-facing surface: the operation dispatcher, REST routes and the
line-protocol transports (WebSocket and stdio).
"""
