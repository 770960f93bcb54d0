"""Bounded ancestor and descendant tree builders.

Both builders walk the graph one generation at a time with an explicit
worklist. Every person in a generation is resolved with a single
``load_many`` per relation, so sibling branches share store round trips.
Nodes are then assembled bottom-up, deepest generation first.

Trees are bounded by the generation counter only. A person reachable by two
routes (pedigree collapse) appears twice.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..logging import get_logger
from .models import DescendantNode, PedigreeNode

if TYPE_CHECKING:
    from ..models import Family, Person
    from .loader import RequestLoaders

logger = get_logger(__name__)


@dataclass
class _AncestorSlot:
    person: Person
    generation: int
    father: int | None = None
    mother: int | None = None
    has_more: bool = False


@dataclass
class _DescendantSlot:
    person: Person
    generation: int
    spouse: Person | None = None
    marriage_year: int | None = None
    children: list[int] = field(default_factory=list)
    has_more: bool = False


def _check_generations(max_generations: int) -> None:
    if max_generations < 0:
        raise ValueError(f"max_generations must be >= 0, got {max_generations}")


class PedigreeTraversal:
    """Genealogical tree builder over request-scoped loaders.

    Example:
        >>> traversal = PedigreeTraversal(RequestLoaders(store))
        >>> tree = await traversal.build_pedigree("p1", max_generations=3)
        >>> tree.father.person.name_full
        'John Smith'
    """

    def __init__(self, loaders: RequestLoaders) -> None:
        self.loaders = loaders

    async def build_pedigree(self, person_id: str, max_generations: int) -> PedigreeNode | None:
        """Build the ancestor tree of ``person_id``.

        Only the first family listing a person as a child is followed.

        Args:
            person_id: Root person
            max_generations: Generations above the root to include (0 = root only)

        Returns:
            Root node, or None if the person does not exist

        Raises:
            ValueError: If max_generations is negative
            StoreUnavailableError: If the store fails during the walk
        """
        _check_generations(max_generations)
        root = await self.loaders.people.load(person_id)
        if root is None:
            return None

        slots = [_AncestorSlot(person=root, generation=0)]
        level = [0]
        while level:
            parent_families = await self.loaders.families_where_child(
                [slots[i].person.id for i in level]
            )
            pending: list[tuple[int, str, str]] = []  # (child slot, role, parent id)
            for index, families in zip(level, parent_families):
                slot = slots[index]
                family = _first(families)
                if family is None:
                    continue
                if slot.generation >= max_generations:
                    slot.has_more = bool(family.husband_id or family.wife_id)
                    continue
                if family.husband_id:
                    pending.append((index, "father", family.husband_id))
                if family.wife_id:
                    pending.append((index, "mother", family.wife_id))

            parents = await self.loaders.load_people([pid for _, _, pid in pending])
            level = []
            for (index, role, _), person in zip(pending, parents):
                if person is None:
                    continue
                slots.append(_AncestorSlot(person=person, generation=slots[index].generation + 1))
                setattr(slots[index], role, len(slots) - 1)
                level.append(len(slots) - 1)

        built: list[PedigreeNode | None] = [None] * len(slots)
        for index in range(len(slots) - 1, -1, -1):
            slot = slots[index]
            father = built[slot.father] if slot.father is not None else None
            mother = built[slot.mother] if slot.mother is not None else None
            has_more = slot.has_more
            if father is not None or mother is not None:
                has_more = bool(
                    (father is not None and father.has_more_ancestors)
                    or (mother is not None and mother.has_more_ancestors)
                )
            built[index] = PedigreeNode(
                id=slot.person.id,
                person=slot.person,
                generation=slot.generation,
                father=father,
                mother=mother,
                has_more_ancestors=has_more,
            )

        logger.debug(
            "pedigree_built",
            person_id=person_id,
            max_generations=max_generations,
            nodes=len(slots),
        )
        return built[0]

    async def build_descendants(
        self, person_id: str, max_generations: int
    ) -> DescendantNode | None:
        """Build the descendant tree of ``person_id``.

        Only each person's first spouse family is followed; its co-parent
        becomes ``spouse`` and its children, in child-list order, the node's
        children.

        Args:
            person_id: Root person
            max_generations: Generations below the root to include (0 = root only)

        Returns:
            Root node, or None if the person does not exist

        Raises:
            ValueError: If max_generations is negative
            StoreUnavailableError: If the store fails during the walk
        """
        _check_generations(max_generations)
        root = await self.loaders.people.load(person_id)
        if root is None:
            return None

        slots = [_DescendantSlot(person=root, generation=0)]
        level = [0]
        while level:
            spouse_families = await self.loaders.families_where_spouse(
                [slots[i].person.id for i in level]
            )
            chosen: list[tuple[int, Family]] = []
            for index, families in zip(level, spouse_families):
                if len(families) > 1:
                    logger.debug(
                        "multiple_spouse_families",
                        person_id=slots[index].person.id,
                        families=[f.id for f in families],
                        used=families[0].id,
                    )
                family = _first(families)
                if family is not None:
                    chosen.append((index, family))

            partner_ids = [family.partner_of(slots[i].person.id) for i, family in chosen]
            spouses, child_lists = await asyncio.gather(
                self.loaders.load_people([pid for pid in partner_ids if pid]),
                self.loaders.children_of([family.id for _, family in chosen]),
            )
            spouse_iter = iter(spouses)

            pending: list[tuple[int, str]] = []  # (parent slot, child id)
            for (index, family), partner_id, child_ids in zip(chosen, partner_ids, child_lists):
                slot = slots[index]
                slot.spouse = next(spouse_iter) if partner_id else None
                slot.marriage_year = family.marriage_year
                if slot.generation >= max_generations:
                    slot.has_more = bool(child_ids)
                    continue
                pending.extend((index, child_id) for child_id in child_ids)

            children = await self.loaders.load_people([cid for _, cid in pending])
            level = []
            for (index, _), person in zip(pending, children):
                if person is None:
                    continue
                slots.append(_DescendantSlot(person=person, generation=slots[index].generation + 1))
                slots[index].children.append(len(slots) - 1)
                level.append(len(slots) - 1)

        built: list[DescendantNode | None] = [None] * len(slots)
        for index in range(len(slots) - 1, -1, -1):
            slot = slots[index]
            kids = tuple(built[i] for i in slot.children)
            has_more = slot.has_more
            if kids:
                has_more = any(child.has_more_descendants for child in kids)
            built[index] = DescendantNode(
                id=slot.person.id,
                person=slot.person,
                generation=slot.generation,
                spouse=slot.spouse,
                marriage_year=slot.marriage_year,
                children=kids,
                has_more_descendants=has_more,
            )

        logger.debug(
            "descendants_built",
            person_id=person_id,
            max_generations=max_generations,
            nodes=len(slots),
        )
        return built[0]


def _first(families: list[Family]) -> Family | None:
    return families[0] if families else None
