"""Interface for deriving cache tags from outgoing query text.

Tag inference is a best-effort categorization: strategies may miss related
entries, and callers can always pass explicit tags.
"""

import abc
from typing import FrozenSet


class CacheTagStrategy(abc.ABC):

    @abc.abstractmethod
    def tags_for(self, query: str) -> FrozenSet[str]:
        """Returns the default tags for a query document."""
        pass
