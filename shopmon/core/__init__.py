"""Core Application Layer: the Storefront request pipeline.

Composes context directive injection, caching, retries, telemetry and
throttle tracking into a single request operation.
"""
