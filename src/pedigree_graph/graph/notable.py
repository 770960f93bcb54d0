"""Collateral notable-relative search.

Walks up the ancestry, across to each ancestor's siblings (half-siblings
included), then down those siblings' lines, and keeps anyone flagged
``is_notable``. Each hit carries the generation of the ancestor its line
branches from, not its own depth.

Unlike the bounded tree builders this walk fans out without limit in width,
so each ascent/descent carries its path and never revisits an id already on
it.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from ..logging import get_logger
from .models import NotableRelative

if TYPE_CHECKING:
    from .loader import RequestLoaders

logger = get_logger(__name__)

DEFAULT_ANCESTOR_DEPTH = 15
DEFAULT_DESCENDANT_DEPTH = 6

# (person id, originating generation, path of ids walked so far)
_Walk = tuple[str, int, tuple[str, ...]]


class NotableRelativeFinder:
    """Find notable blood relatives and their spouses through collateral lines."""

    def __init__(
        self,
        loaders: RequestLoaders,
        *,
        ancestor_depth: int = DEFAULT_ANCESTOR_DEPTH,
        descendant_depth: int = DEFAULT_DESCENDANT_DEPTH,
    ) -> None:
        if ancestor_depth < 0 or descendant_depth < 0:
            raise ValueError("search depths must be >= 0")
        self.loaders = loaders
        self.ancestor_depth = ancestor_depth
        self.descendant_depth = descendant_depth

    async def find(self, person_id: str) -> list[NotableRelative]:
        """Return notable relatives ordered by generation, then id.

        A person reachable through several lines is reported once, with the
        smallest generation. The root counts as its own generation-0
        ancestor.
        """
        root = await self.loaders.people.load(person_id)
        if root is None:
            return []

        # person id -> smallest originating generation
        reached: dict[str, int] = {}

        def reach(pid: str, generation: int) -> None:
            if generation < reached.get(pid, generation + 1):
                reached[pid] = generation

        ancestors = await self._ancestors(person_id)
        for pid, generation in ancestors.items():
            reach(pid, generation)

        siblings = await self._siblings(ancestors)
        for pid, generation, spouse_ids in await self._sibling_lines(siblings):
            reach(pid, generation)
            for spouse_id in spouse_ids:
                reach(spouse_id, generation)

        people = await self.loaders.load_people(list(reached))
        results = [
            NotableRelative(person=person, generation=reached[person.id])
            for person in people
            if person is not None and person.is_notable
        ]
        results.sort(key=lambda r: (r.generation, r.person.id))
        logger.info(
            "notable_relatives_found",
            person_id=person_id,
            ancestors=len(ancestors),
            siblings=len(siblings),
            searched=len(reached),
            notable=len(results),
        )
        return results

    async def _ancestors(self, person_id: str) -> dict[str, int]:
        """Ancestor ids (root included) mapped to their smallest generation."""
        found: dict[str, int] = {person_id: 0}
        level: list[_Walk] = [(person_id, 0, (person_id,))]
        while level:
            generation = level[0][1]
            if generation >= self.ancestor_depth:
                break
            parent_families = await self.loaders.families_where_child([pid for pid, _, _ in level])
            seen: set[str] = set()
            next_level: list[_Walk] = []
            for (_, _, path), families in zip(level, parent_families):
                for family in families:
                    for parent_id in family.parent_ids:
                        if parent_id in path or parent_id in seen:
                            continue
                        seen.add(parent_id)
                        found.setdefault(parent_id, generation + 1)
                        next_level.append((parent_id, generation + 1, path + (parent_id,)))
            level = next_level
        return found

    async def _siblings(self, ancestors: dict[str, int]) -> dict[str, int]:
        """Children of any family sharing a parent with an ancestor's parent family."""
        ids = list(ancestors)
        parent_families = await self.loaders.families_where_child(ids)
        parent_ids = list(
            dict.fromkeys(
                pid for families in parent_families for family in families for pid in family.parent_ids
            )
        )
        if not parent_ids:
            return {}
        spouse_families = dict(
            zip(parent_ids, await self.loaders.families_where_spouse(parent_ids))
        )
        family_ids = list(
            dict.fromkeys(
                family.id for families in spouse_families.values() for family in families
            )
        )
        children = dict(zip(family_ids, await self.loaders.children_of(family_ids)))

        siblings: dict[str, int] = {}
        for ancestor_id, families in zip(ids, parent_families):
            generation = ancestors[ancestor_id]
            for parent_id in dict.fromkeys(pid for f in families for pid in f.parent_ids):
                for family in spouse_families[parent_id]:
                    for child_id in children[family.id]:
                        if child_id == ancestor_id:
                            continue
                        if generation < siblings.get(child_id, generation + 1):
                            siblings[child_id] = generation
        return siblings

    async def _sibling_lines(
        self, siblings: dict[str, int]
    ) -> list[tuple[str, int, list[str]]]:
        """Siblings and their descendants, each with their spouses' ids."""
        results: list[tuple[str, int, list[str]]] = []
        level: list[_Walk] = [(pid, generation, (pid,)) for pid, generation in siblings.items()]
        depth = 0
        while level:
            spouse_families = await self.loaders.families_where_spouse([pid for pid, _, _ in level])
            expand = depth < self.descendant_depth
            family_ids = list(
                dict.fromkeys(f.id for families in spouse_families for f in families)
            ) if expand else []
            children = dict(zip(family_ids, await self.loaders.children_of(family_ids)))

            seen: set[tuple[str, int]] = set()
            next_level: list[_Walk] = []
            for (pid, generation, path), families in zip(level, spouse_families):
                partners = [
                    partner for family in families if (partner := family.partner_of(pid))
                ]
                results.append((pid, generation, partners))
                if not expand:
                    continue
                for family in families:
                    for child_id in children[family.id]:
                        if child_id in path or (child_id, generation) in seen:
                            continue
                        seen.add((child_id, generation))
                        next_level.append((child_id, generation, path + (child_id,)))
            level = next_level
            depth += 1
        return results
