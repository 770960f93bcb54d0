"""Merged ancestor + descendant tree consumed by the layout engine.

The renderer shows ancestors above the root and descendants below it, so
the merged tree carries signed generations: positive going up, negative
going down, 0 at the root.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..graph.models import DescendantNode, PedigreeNode
    from ..models import Person


@dataclass(frozen=True)
class TreeLayoutNode:
    """One rendered person in the merged tree."""
    id: str
    person: Person
    generation: int
    father: TreeLayoutNode | None = None
    mother: TreeLayoutNode | None = None
    children: tuple[TreeLayoutNode, ...] = ()
    spouse: Person | None = None
    marriage_year: int | None = None
    has_more_ancestors: bool = False
    has_more_descendants: bool = False
    siblings: tuple[Person, ...] = ()
    spouse_siblings: tuple[Person, ...] = ()

    @property
    def parents(self) -> tuple[TreeLayoutNode, ...]:
        return tuple(p for p in (self.father, self.mother) if p is not None)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire shape."""
        return {
            "id": self.id,
            "person": self.person.to_dict(),
            "generation": self.generation,
            "father": self.father.to_dict() if self.father else None,
            "mother": self.mother.to_dict() if self.mother else None,
            "children": [child.to_dict() for child in self.children],
            "spouse": self.spouse.to_dict() if self.spouse else None,
            "marriageYear": self.marriage_year,
            "hasMoreAncestors": self.has_more_ancestors,
            "hasMoreDescendants": self.has_more_descendants,
            "siblings": [p.to_dict() for p in self.siblings],
            "spouseSiblings": [p.to_dict() for p in self.spouse_siblings],
        }


@dataclass
class TreeExpansions:
    """Branch substitutions requested by the viewer, keyed by node id.

    Each entry is a subtree fetched with the node as its own root. Merging
    splices it in place of the node's parents (or children).
    """
    ancestors: dict[str, PedigreeNode] = field(default_factory=dict)
    descendants: dict[str, DescendantNode] = field(default_factory=dict)

    def toggle_ancestors(self, node_id: str, subtree: PedigreeNode | None = None) -> bool:
        """Collapse an expanded node, or expand it with ``subtree``.

        Returns:
            True if the node is expanded afterwards
        """
        if node_id in self.ancestors:
            del self.ancestors[node_id]
            return False
        if subtree is None:
            raise ValueError(f"No ancestor subtree supplied to expand {node_id}")
        self.ancestors[node_id] = subtree
        return True

    def toggle_descendants(self, node_id: str, subtree: DescendantNode | None = None) -> bool:
        """Collapse an expanded node, or expand it with ``subtree``."""
        if node_id in self.descendants:
            del self.descendants[node_id]
            return False
        if subtree is None:
            raise ValueError(f"No descendant subtree supplied to expand {node_id}")
        self.descendants[node_id] = subtree
        return True

    def clear(self) -> None:
        self.ancestors.clear()
        self.descendants.clear()

    def __bool__(self) -> bool:
        return bool(self.ancestors or self.descendants)


def merge_family_tree(
    pedigree: PedigreeNode | None,
    descendants: DescendantNode | None,
    expansions: TreeExpansions | None = None,
    *,
    siblings: tuple[Person, ...] = (),
    spouse_siblings: tuple[Person, ...] = (),
) -> TreeLayoutNode | None:
    """Join a pedigree and a descendant tree under one root.

    The pedigree supplies the root's parents, the descendant tree its spouse,
    marriage year and children. An expansion replaces a node's branch only
    when that node reported more to fetch; generations inside a spliced
    subtree are rebased onto the node's position. A node expanded once is
    not expanded again further along the same branch.
    """
    expansions = expansions or TreeExpansions()
    if pedigree is None and descendants is None:
        return None

    def ancestor(node: PedigreeNode, generation: int, applied: frozenset[str]) -> TreeLayoutNode:
        source = node
        substitute = expansions.ancestors.get(node.id)
        if substitute is not None and node.has_more_ancestors and node.id not in applied:
            source = substitute
            applied = applied | {node.id}
        return TreeLayoutNode(
            id=node.id,
            person=node.person,
            generation=generation,
            father=ancestor(source.father, generation + 1, applied) if source.father else None,
            mother=ancestor(source.mother, generation + 1, applied) if source.mother else None,
            has_more_ancestors=source.has_more_ancestors,
        )

    def descendant(node: DescendantNode, depth: int, applied: frozenset[str]) -> TreeLayoutNode:
        source = node
        substitute = expansions.descendants.get(node.id)
        if substitute is not None and node.has_more_descendants and node.id not in applied:
            source = substitute
            applied = applied | {node.id}
        return TreeLayoutNode(
            id=node.id,
            person=node.person,
            generation=-depth,
            children=tuple(descendant(child, depth + 1, applied) for child in source.children),
            spouse=source.spouse,
            marriage_year=source.marriage_year,
            has_more_descendants=source.has_more_descendants,
        )

    up = ancestor(pedigree, 0, frozenset()) if pedigree is not None else None
    down = descendant(descendants, 0, frozenset()) if descendants is not None else None

    if up is None:
        root = down
    elif down is None:
        root = up
    else:
        root = replace(
            up,
            children=down.children,
            spouse=down.spouse,
            marriage_year=down.marriage_year,
            has_more_descendants=down.has_more_descendants,
        )
    return replace(root, siblings=tuple(siblings), spouse_siblings=tuple(spouse_siblings))
