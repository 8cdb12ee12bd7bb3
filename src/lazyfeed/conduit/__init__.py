"""
The conduit package provides an abstraction of a bi-directional, message oriented session to a specified endpoint.
Messages are sent without blocking and inbound messages and the final close are announced through event sources.

The concrete implementation is a WebSocket client session.
"""
