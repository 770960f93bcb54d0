"""Graph traversal over the people/families relation.

Provides:
- Request-scoped batch loading (deduplicated, coalesced store reads)
- Bounded ancestor and descendant tree builders
- Collateral notable-relative search
"""
from .loader import BatchLoader, RequestLoaders
from .models import DescendantNode, NotableRelative, PedigreeNode
from .notable import NotableRelativeFinder
from .traversal import PedigreeTraversal

__all__ = [
    # Loading
    "BatchLoader",
    "RequestLoaders",
    # Trees
    "DescendantNode",
    "PedigreeNode",
    "PedigreeTraversal",
    # Notable relatives
    "NotableRelative",
    "NotableRelativeFinder",
]
