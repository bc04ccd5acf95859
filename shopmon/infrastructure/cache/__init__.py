"""Response Cache Implementation.

Provides the in-memory CacheService with per-entry TTL, tag-based
invalidation and optional background eviction, plus the pluggable
strategies that infer default tags from query text.
Bounded Context: Cache Management
"""
