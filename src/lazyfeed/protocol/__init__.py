"""
The subscription protocol: request, response and completion envelopes multiplexed over a shared
connection, routed by subscription id.
"""
