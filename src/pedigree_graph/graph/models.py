"""Tree node types produced by the builders.

Nodes are frozen: once a tree is built (and possibly cached) no part of it
changes. Expansion builds new subtrees instead of editing existing ones.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..models import Person


@dataclass(frozen=True)
class PedigreeNode:
    """A person with their (bounded) ancestry."""
    id: str
    person: Person
    generation: int  # 0=root, 1=parents, 2=grandparents
    father: PedigreeNode | None = None
    mother: PedigreeNode | None = None
    has_more_ancestors: bool = False

    def iter_nodes(self):
        """Pre-order walk: self, father branch, mother branch."""
        stack: list[PedigreeNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            if node.mother is not None:
                stack.append(node.mother)
            if node.father is not None:
                stack.append(node.father)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire shape."""
        return {
            "id": self.id,
            "person": self.person.to_dict(),
            "generation": self.generation,
            "father": self.father.to_dict() if self.father else None,
            "mother": self.mother.to_dict() if self.mother else None,
            "hasMoreAncestors": self.has_more_ancestors,
        }


@dataclass(frozen=True)
class DescendantNode:
    """A person with their first spouse and (bounded) descendants."""
    id: str
    person: Person
    generation: int  # 0=root, 1=children
    spouse: Person | None = None
    marriage_year: int | None = None
    children: tuple[DescendantNode, ...] = field(default_factory=tuple)
    has_more_descendants: bool = False

    def iter_nodes(self):
        """Pre-order walk in child order."""
        stack: list[DescendantNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire shape."""
        return {
            "id": self.id,
            "person": self.person.to_dict(),
            "generation": self.generation,
            "spouse": self.spouse.to_dict() if self.spouse else None,
            "marriageYear": self.marriage_year,
            "children": [child.to_dict() for child in self.children],
            "hasMoreDescendants": self.has_more_descendants,
        }


@dataclass(frozen=True)
class NotableRelative:
    """A notable person reached through a collateral line."""
    person: Person
    generation: int  # generation of the ancestor the line branches from

    def to_dict(self) -> dict[str, Any]:
        return {"person": self.person.to_dict(), "generation": self.generation}
