"""Heuristic cache tag inference from query text.

Matches plain substrings of the document, so it is approximate: a query that
merely mentions `products` in an alias or argument is tagged too, and fields
not listed in the rules are not tagged at all. Callers needing precision pass
explicit tags.
"""

from typing import FrozenSet, Iterable, Mapping, Tuple

from shopmon.domain.interfaces.tagging import CacheTagStrategy

# tag -> substrings that imply it
DEFAULT_TAG_RULES: Mapping[str, Tuple[str, ...]] = {
    "products": ("products",),
    "collections": ("collections",),
    "content": ("pages", "blogs"),
    "metaobjects": ("metaobjects",),
    "menus": ("menu",),
}


class KeywordTagStrategy(CacheTagStrategy):
    """Tags a query with every rule whose keyword appears in its text."""

    def __init__(self, rules: Mapping[str, Iterable[str]] = DEFAULT_TAG_RULES):
        self.rules = {tag: tuple(keywords) for tag, keywords in rules.items()}

    def tags_for(self, query: str) -> FrozenSet[str]:
        return frozenset(
            tag for tag, keywords in self.rules.items()
            if any(keyword in query for keyword in keywords)
        )


class NoTagStrategy(CacheTagStrategy):
    """Disables inference; only explicit tags are applied."""

    def tags_for(self, query: str) -> FrozenSet[str]:
        return frozenset()
