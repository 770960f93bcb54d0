"""Request-scoped batch loading over a ``FamilyStore``.

A ``BatchLoader`` coalesces every key requested during one event-loop tick
into a single call of the store's batch function, deduplicates keys, and
remembers results for its own lifetime. Create a fresh ``RequestLoaders``
per request so nothing leaks across requests.
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable, Hashable, Sequence
from typing import TYPE_CHECKING, Generic, TypeVar

from ..exceptions import StoreUnavailableError
from ..logging import get_logger

if TYPE_CHECKING:
    from ..models import Family, Person
    from ..store import FamilyStore

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

BatchFn = Callable[[Sequence[K]], Sequence[V]]


class BatchLoader(Generic[K, V]):
    """Coalescing, caching loader for one relation.

    Example:
        >>> loader = BatchLoader(store.fetch_people, name="people")
        >>> a, b = await asyncio.gather(loader.load("p1"), loader.load("p2"))
        >>> # one store call for both keys
    """

    def __init__(
        self,
        batch_fn: BatchFn,
        *,
        name: str = "loader",
        max_batch_size: int | None = None,
    ) -> None:
        if max_batch_size is not None and max_batch_size < 1:
            raise ValueError("max_batch_size must be positive")
        self._batch_fn = batch_fn
        self.name = name
        self.max_batch_size = max_batch_size
        self._cache: dict[K, asyncio.Future[V]] = {}
        # Pending keys with the futures handed out for them; clear() may drop
        # a key from the cache before its batch runs.
        self._queue: list[tuple[K, asyncio.Future[V]]] = []
        self._dispatch_scheduled = False

    async def load(self, key: K) -> V:
        return await self._enqueue(key)

    async def load_many(self, keys: Sequence[K]) -> list[V]:
        futures = [self._enqueue(key) for key in keys]
        if not futures:
            return []
        return list(await asyncio.gather(*futures))

    def prime(self, key: K, value: V) -> None:
        """Seed the cache; an existing entry wins."""
        if key in self._cache:
            return
        future = asyncio.get_running_loop().create_future()
        future.set_result(value)
        self._cache[key] = future

    def clear(self, key: K) -> None:
        self._cache.pop(key, None)

    def clear_all(self) -> None:
        self._cache.clear()

    def _enqueue(self, key: K) -> asyncio.Future[V]:
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        loop = asyncio.get_running_loop()
        future: asyncio.Future[V] = loop.create_future()
        self._cache[key] = future
        self._queue.append((key, future))
        if not self._dispatch_scheduled:
            self._dispatch_scheduled = True
            loop.call_soon(self._dispatch)
        return future

    def _dispatch(self) -> None:
        queue, self._queue = self._queue, []
        self._dispatch_scheduled = False
        if not queue:
            return
        size = self.max_batch_size or len(queue)
        for start in range(0, len(queue), size):
            self._run_batch(queue[start : start + size])

    def _run_batch(self, pending: list[tuple[K, asyncio.Future[V]]]) -> None:
        keys = [key for key, _ in pending]
        futures = [future for _, future in pending]
        try:
            values = list(self._batch_fn(keys))
            if len(values) != len(keys):
                raise ValueError(
                    f"batch function returned {len(values)} results for {len(keys)} keys"
                )
        except Exception as exc:
            error = StoreUnavailableError(self.name, exc)
            error.__cause__ = exc
            logger.error("batch_load_failed", loader=self.name, keys=len(keys), error=str(exc))
            for key, future in zip(keys, futures):
                # Failed keys are retried on the next load.
                if self._cache.get(key) is future:
                    del self._cache[key]
                if not future.done():
                    future.set_exception(error)
            return

        logger.debug("batch_loaded", loader=self.name, keys=len(keys))
        for future, value in zip(futures, values):
            if not future.done():
                future.set_result(value)


class RequestLoaders:
    """One batch loader per relation, shared by everything in a request."""

    def __init__(self, store: FamilyStore, *, max_batch_size: int | None = None) -> None:
        self.store = store
        self.people: BatchLoader[str, Person | None] = BatchLoader(
            store.fetch_people, name="fetch_people", max_batch_size=max_batch_size
        )
        self.families: BatchLoader[str, Family | None] = BatchLoader(
            store.fetch_families, name="fetch_families", max_batch_size=max_batch_size
        )
        self.children: BatchLoader[str, list[str]] = BatchLoader(
            store.fetch_children, name="fetch_children", max_batch_size=max_batch_size
        )
        self.families_as_child: BatchLoader[str, list[Family]] = BatchLoader(
            store.fetch_families_as_child,
            name="fetch_families_as_child",
            max_batch_size=max_batch_size,
        )
        self.families_as_spouse: BatchLoader[str, list[Family]] = BatchLoader(
            store.fetch_families_as_spouse,
            name="fetch_families_as_spouse",
            max_batch_size=max_batch_size,
        )

    async def load_people(self, ids: Sequence[str]) -> list[Person | None]:
        return await self.people.load_many(ids)

    async def load_families(self, ids: Sequence[str]) -> list[Family | None]:
        return await self.families.load_many(ids)

    async def children_of(self, family_ids: Sequence[str]) -> list[list[str]]:
        return await self.children.load_many(family_ids)

    async def families_where_child(self, person_ids: Sequence[str]) -> list[list[Family]]:
        return await self.families_as_child.load_many(person_ids)

    async def families_where_spouse(self, person_ids: Sequence[str]) -> list[list[Family]]:
        return await self.families_as_spouse.load_many(person_ids)

    async def parents_of(self, person_id: str) -> list[Person]:
        """Parents across every family listing the person as a child."""
        families = await self.families_as_child.load(person_id)
        ids = list(dict.fromkeys(pid for family in families for pid in family.parent_ids))
        people = await self.people.load_many(ids)
        return [p for p in people if p is not None]

    async def spouses_of(self, person_id: str) -> list[Person]:
        """Co-parents across every spouse family, in store order."""
        families = await self.families_as_spouse.load(person_id)
        ids = list(
            dict.fromkeys(
                partner
                for family in families
                if (partner := family.partner_of(person_id)) is not None
            )
        )
        people = await self.people.load_many(ids)
        return [p for p in people if p is not None]

    async def siblings_of(self, person_id: str) -> list[Person]:
        """Other children of each family listing the person as a child.

        Deduplicated; order follows family order then child order.
        """
        families = await self.families_as_child.load(person_id)
        if not families:
            return []
        child_lists = await self.children.load_many([family.id for family in families])
        ids = list(
            dict.fromkeys(
                child_id
                for children in child_lists
                for child_id in children
                if child_id != person_id
            )
        )
        people = await self.people.load_many(ids)
        return [p for p in people if p is not None]
