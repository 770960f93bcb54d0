"""Backing store interface for the family graph.

The store is synchronous and batch-oriented: every read takes a list of
keys and returns one result per key, in order. Request-scoped batching and
deduplication live in ``pedigree_graph.graph.loader``.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import TYPE_CHECKING

from ..exceptions import PedigreeGraphError, StoreUnavailableError

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from ..config import ResearchWeights
    from ..models import Family, Person


@contextmanager
def store_operation(operation: str) -> Iterator[None]:
    """Convert store failures into ``StoreUnavailableError``.

    Errors that are already part of the pedigree-graph taxonomy pass through.
    """
    try:
        yield
    except PedigreeGraphError:
        raise
    except Exception as exc:
        raise StoreUnavailableError(operation, exc) from exc


def search_terms(query: str) -> list[str]:
    """Split a free-text query into lower-cased terms."""
    return query.lower().split()


def name_matches(terms: Sequence[str], *names: str | None) -> bool:
    """True when every term prefixes some word of the given name fields."""
    words = [word for name in names if name for word in name.lower().split()]
    return all(any(word.startswith(term) for word in words) for term in terms)


class FamilyStore(ABC):
    """Abstract base class for people/families storage."""

    # ------------------------------------------------------------------
    # Batch reads
    # ------------------------------------------------------------------

    @abstractmethod
    def fetch_people(self, ids: Sequence[str]) -> list[Person | None]:
        """Get people by id; ``None`` for unknown ids."""
        ...

    @abstractmethod
    def fetch_families(self, ids: Sequence[str]) -> list[Family | None]:
        """Get families by id; ``None`` for unknown ids."""
        ...

    @abstractmethod
    def fetch_children(self, family_ids: Sequence[str]) -> list[list[str]]:
        """Get ordered child person ids for each family."""
        ...

    @abstractmethod
    def fetch_families_as_child(self, person_ids: Sequence[str]) -> list[list[Family]]:
        """Get the families listing each person as a child, in store order."""
        ...

    @abstractmethod
    def fetch_families_as_spouse(self, person_ids: Sequence[str]) -> list[list[Family]]:
        """Get the families where each person is husband or wife, in store order."""
        ...

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    @abstractmethod
    def count_people(self) -> int:
        """Count all people."""
        ...

    @abstractmethod
    def list_people(
        self,
        *,
        after: str | None = None,
        before: str | None = None,
        limit: int,
        descending: bool = False,
    ) -> list[Person]:
        """List people ordered by id.

        Args:
            after: Only ids strictly greater than this one
            before: Only ids strictly lower than this one
            limit: Maximum rows to return
            descending: Order by id descending instead of ascending
        """
        ...

    @abstractmethod
    def search_people(
        self,
        terms: Sequence[str],
        *,
        after: str | None = None,
        limit: int,
    ) -> list[Person]:
        """People whose names match every term, ordered by id.

        A term matches when it prefixes any word of ``name_full``,
        ``name_given`` or ``name_surname`` (case-insensitive). No terms
        matches everyone.

        Args:
            terms: Lower-cased search terms (see ``search_terms``)
            after: Only ids strictly greater than this one
            limit: Maximum rows to return
        """
        ...

    @abstractmethod
    def count_search_matches(self, terms: Sequence[str]) -> int:
        """Count of all ``search_people`` matches, ignoring pagination."""
        ...

    # ------------------------------------------------------------------
    # Research queue
    # ------------------------------------------------------------------

    @abstractmethod
    def research_candidates(self) -> list[Person]:
        """People eligible for the research queue.

        Everyone who is neither verified nor a placeholder.
        """
        ...

    @abstractmethod
    def count_research_candidates(self) -> int:
        """Count of ``research_candidates()`` computed by its own query."""
        ...

    @abstractmethod
    def people_with_placeholder_parents(self, person_ids: Sequence[str]) -> set[str]:
        """Subset of ``person_ids`` having at least one placeholder parent."""
        ...

    @abstractmethod
    def research_page(
        self,
        weights: ResearchWeights,
        *,
        after: tuple[float, str] | None = None,
        limit: int,
    ) -> list[tuple[Person, bool]]:
        """One window of the research queue, scored by the store.

        Candidates are ordered by weighted score descending, then id
        ascending, and only rows strictly past ``after`` are returned.

        Args:
            weights: Research score weights
            after: ``(score, id)`` of the last row already served
            limit: Maximum rows to return

        Returns:
            ``(person, has_placeholder_parent)`` pairs in queue order
        """
        ...

    # ------------------------------------------------------------------
    # Writes (seeding only)
    # ------------------------------------------------------------------

    @abstractmethod
    def add_person(self, person: Person) -> Person:
        """Insert or replace a person."""
        ...

    @abstractmethod
    def add_family(self, family: Family) -> Family:
        """Insert or replace a family."""
        ...

    @abstractmethod
    def add_child(self, family_id: str, person_id: str, birth_order: int | None = None) -> None:
        """Append a child to a family.

        Raises:
            ValueError: If the person is already a child of that family
        """
        ...

    def close(self) -> None:
        """Release resources held by the store."""
