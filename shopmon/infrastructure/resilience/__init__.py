"""API Resilience Implementations.

Contains the error classifier and the retry coordinator that applies
exponential backoff to transient failures.
Bounded Context: API Resilience
"""
