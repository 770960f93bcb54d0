"""Merged family tree structure and its coordinate layout."""

from .engine import (
    Bounds,
    LayoutConfig,
    Point,
    PositionedNode,
    SiblingPanel,
    TreeLayout,
    compute_layout,
)
from .tree import TreeExpansions, TreeLayoutNode, merge_family_tree

__all__ = [
    "Bounds",
    "LayoutConfig",
    "Point",
    "PositionedNode",
    "SiblingPanel",
    "TreeExpansions",
    "TreeLayout",
    "TreeLayoutNode",
    "compute_layout",
    "merge_family_tree",
]
