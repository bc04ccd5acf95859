"""Usage Telemetry Implementation.

Keeps a bounded history of request outcomes with hourly and daily
aggregation, and the file store used to persist it between runs.
Bounded Context: API Usage Monitoring
"""
