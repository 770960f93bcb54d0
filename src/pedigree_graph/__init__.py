"""Pedigree Graph - bounded family-tree traversal and layout.

Builds ancestor and descendant trees from a people/families store, finds
notable relatives through collateral lines, ranks records needing research,
and computes coordinates for a bidirectional tree view.
"""

__version__ = "0.1.0"

# Lazy imports keep ``import pedigree_graph`` light for the CLI
def __getattr__(name: str):
    if name == "FamilyTreeService":
        from pedigree_graph.service import FamilyTreeService
        return FamilyTreeService
    if name == "Settings":
        from pedigree_graph.config import Settings
        return Settings
    if name == "load_settings":
        from pedigree_graph.config import load_settings
        return load_settings
    if name == "ResultCache":
        from pedigree_graph.cache import ResultCache
        return ResultCache
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
