"""
The connector opens a conduit to an endpoint and confirms it with the acknowledgment handshake.
The lazy connection manager shares one such connection between many leases.
"""
