"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the request pipeline to the outside world (HTTP transport, file
storage, console output, configuration sources) by implementing the
interfaces defined in the domain layer. Also includes resilience, caching
and telemetry services.
"""
