"""Domain Layer: value objects, interfaces and events.

Holds the data model of the Storefront request pipeline (throttle status,
query cost, cache entries, retry policy, error taxonomy, usage records,
request context) and the abstract seams the infrastructure layer implements.
"""
