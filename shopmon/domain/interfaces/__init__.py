"""Domain Interfaces (Ports).

Abstract contracts implemented by the infrastructure layer: caching,
transport, observers, usage persistence and cache tag inference.
"""
