"""Query facade over the family graph.

Each call builds its own ``RequestLoaders`` so batching and deduplication
never leak between requests; only the ``ResultCache`` is shared.
"""
from __future__ import annotations

import asyncio
from collections.abc import Collection
from typing import TYPE_CHECKING

from .cache import (
    ResultCache,
    descendants_key,
    get_result_cache,
    notable_relatives_key,
    pedigree_key,
)
from .config import Settings
from .graph import NotableRelativeFinder, PedigreeTraversal, RequestLoaders
from .layout import LayoutConfig, TreeExpansions, compute_layout, merge_family_tree
from .logging import get_logger
from .pagination import paginate_people, paginate_search, resolve_page_args
from .research import ResearchQueue
from .store import search_terms

if TYPE_CHECKING:
    from .graph import DescendantNode, NotableRelative, PedigreeNode
    from .layout import TreeLayout, TreeLayoutNode
    from .models import Person
    from .pagination import Connection
    from .research import ScoredPerson
    from .store import FamilyStore

logger = get_logger(__name__)


class FamilyTreeService:
    """Ancestors, descendants, notable relatives, queues and tree layouts.

    Example:
        >>> service = FamilyTreeService(InMemoryFamilyStore())
        >>> tree = await service.ancestors("p1", generations=2)
        >>> page = await service.research_queue(first=10)
    """

    def __init__(
        self,
        store: FamilyStore,
        settings: Settings | None = None,
        cache: ResultCache | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or Settings()
        self.cache = cache if cache is not None else get_result_cache()

    def _loaders(self) -> RequestLoaders:
        return RequestLoaders(self.store)

    # ------------------------------------------------------------------
    # Trees
    # ------------------------------------------------------------------

    async def ancestors(
        self,
        person_id: str,
        generations: int | None = None,
        *,
        loaders: RequestLoaders | None = None,
    ) -> PedigreeNode | None:
        """Ancestor tree of ``person_id``, from cache when warm."""
        if generations is None:
            generations = self.settings.default_generations
        key = pedigree_key(person_id, generations)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("cache_hit", key=key)
            return cached

        traversal = PedigreeTraversal(loaders or self._loaders())
        tree = await traversal.build_pedigree(person_id, generations)
        if tree is not None:
            self.cache.set(key, tree)
        return tree

    async def descendants(
        self,
        person_id: str,
        generations: int | None = None,
        *,
        loaders: RequestLoaders | None = None,
    ) -> DescendantNode | None:
        """Descendant tree of ``person_id``, from cache when warm."""
        if generations is None:
            generations = self.settings.default_generations
        key = descendants_key(person_id, generations)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("cache_hit", key=key)
            return cached

        traversal = PedigreeTraversal(loaders or self._loaders())
        tree = await traversal.build_descendants(person_id, generations)
        if tree is not None:
            self.cache.set(key, tree)
        return tree

    async def notable_relatives(self, person_id: str) -> list[NotableRelative]:
        key = notable_relatives_key(person_id)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("cache_hit", key=key)
            return list(cached)

        finder = NotableRelativeFinder(
            self._loaders(),
            ancestor_depth=self.settings.notable_ancestor_depth,
            descendant_depth=self.settings.notable_descendant_depth,
        )
        relatives = await finder.find(person_id)
        self.cache.set(key, tuple(relatives))
        return relatives

    async def siblings(self, person_id: str) -> list[Person]:
        """Other children of every family listing the person as a child."""
        return await self._loaders().siblings_of(person_id)

    async def family_tree(
        self,
        person_id: str,
        generations: int | None = None,
        expansions: TreeExpansions | None = None,
    ) -> TreeLayoutNode | None:
        """Merged ancestor/descendant tree with sibling lists for the couple.

        Returns None when the person does not exist.
        """
        loaders = self._loaders()
        pedigree, descendants = await asyncio.gather(
            self.ancestors(person_id, generations, loaders=loaders),
            self.descendants(person_id, generations, loaders=loaders),
        )
        if pedigree is None and descendants is None:
            return None

        spouse = descendants.spouse if descendants is not None else None
        if spouse is not None:
            siblings, spouse_siblings = await asyncio.gather(
                loaders.siblings_of(person_id), loaders.siblings_of(spouse.id)
            )
        else:
            siblings, spouse_siblings = await loaders.siblings_of(person_id), []

        return merge_family_tree(
            pedigree,
            descendants,
            expansions,
            siblings=tuple(siblings),
            spouse_siblings=tuple(spouse_siblings),
        )

    async def expand_ancestors(
        self, person_id: str, generations: int | None = None
    ) -> PedigreeNode | None:
        """One more bounded ancestor subtree rooted at ``person_id``."""
        if generations is None:
            generations = self.settings.expansion_generations
        return await self.ancestors(person_id, generations)

    async def expand_descendants(
        self, person_id: str, generations: int | None = None
    ) -> DescendantNode | None:
        """One more bounded descendant subtree rooted at ``person_id``."""
        if generations is None:
            generations = self.settings.expansion_generations
        return await self.descendants(person_id, generations)

    async def toggle_ancestors(
        self,
        expansions: TreeExpansions,
        node_id: str,
        generations: int | None = None,
    ) -> bool:
        """Collapse an expanded node or fetch and splice its ancestors.

        Returns:
            True if the node is expanded afterwards
        """
        if node_id in expansions.ancestors:
            return expansions.toggle_ancestors(node_id)
        subtree = await self.expand_ancestors(node_id, generations)
        if subtree is None:
            return False
        return expansions.toggle_ancestors(node_id, subtree)

    async def toggle_descendants(
        self,
        expansions: TreeExpansions,
        node_id: str,
        generations: int | None = None,
    ) -> bool:
        """Collapse an expanded node or fetch and splice its descendants."""
        if node_id in expansions.descendants:
            return expansions.toggle_descendants(node_id)
        subtree = await self.expand_descendants(node_id, generations)
        if subtree is None:
            return False
        return expansions.toggle_descendants(node_id, subtree)

    async def layout(
        self,
        person_id: str,
        generations: int | None = None,
        expansions: TreeExpansions | None = None,
        visible_siblings: Collection[str] = (),
        config: LayoutConfig | None = None,
    ) -> TreeLayout | None:
        """Merged tree plus coordinates, or None for an unknown person."""
        tree = await self.family_tree(person_id, generations, expansions)
        if tree is None:
            return None
        return compute_layout(tree, config, visible_siblings)

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    async def research_queue(
        self, first: int | None = None, after: str | None = None
    ) -> Connection[ScoredPerson]:
        queue = ResearchQueue(
            self.store,
            self.settings.research_weights,
            default_page_size=self.settings.default_page_size,
            max_page_size=self.settings.max_page_size,
        )
        return queue.page(first=first, after=after)

    async def people(
        self,
        first: int | None = None,
        after: str | None = None,
        last: int | None = None,
        before: str | None = None,
    ) -> Connection[Person]:
        args = resolve_page_args(
            first,
            after,
            last,
            before,
            default_size=self.settings.default_page_size,
            max_size=self.settings.max_page_size,
        )
        return paginate_people(self.store, args)

    async def search(
        self, query: str, first: int | None = None, after: str | None = None
    ) -> Connection[Person]:
        """People whose names match every word of ``query`` by prefix.

        An empty query lists everyone, in the same id order as ``people``.
        """
        args = resolve_page_args(
            first,
            after,
            default_size=self.settings.default_page_size,
            max_size=self.settings.max_page_size,
        )
        terms = search_terms(query)
        logger.debug("search", query=query, terms=len(terms))
        return paginate_search(self.store, terms, args)

    # ------------------------------------------------------------------
    # Cache control
    # ------------------------------------------------------------------

    def clear_cache(self, pattern: str | None = None) -> None:
        """Administrative: drop cached trees (all, or keys containing ``pattern``)."""
        self.cache.clear(pattern)

    def invalidate_person(self, person_id: str) -> None:
        self.cache.invalidate_person(person_id)
