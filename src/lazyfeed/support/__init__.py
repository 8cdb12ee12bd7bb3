"""
Small building blocks shared by the conduit, connector and protocol packages.
"""
