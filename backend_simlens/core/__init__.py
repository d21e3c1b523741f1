"""
Core utilities — domain exceptions, numeric helpers, and the chain registry.

Shared by the simulation client, analytics, and history packages.
"""
