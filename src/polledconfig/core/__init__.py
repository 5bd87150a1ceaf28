"""Core types shared by the source adapter, the scheduler and the registry.

Nothing here performs I/O; the transport lives under ``polledconfig.providers``.
"""
