"""Dictionary-backed family store for development and testing."""
from __future__ import annotations

from collections import Counter
from itertools import islice
from typing import TYPE_CHECKING

from ..models import ResearchStatus
from .base import FamilyStore, name_matches

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..config import ResearchWeights
    from ..models import Family, Person


class InMemoryFamilyStore(FamilyStore):
    """In-memory family store.

    Families keep insertion order, which stands in for "store order" when a
    person belongs to more than one family. Every batch read is counted in
    ``fetch_count`` (total) and ``calls`` (per operation) so callers can
    observe batching and caching behaviour.
    """

    def __init__(self) -> None:
        self._people: dict[str, Person] = {}
        self._families: dict[str, Family] = {}
        self._children: dict[str, list[tuple[int | None, int, str]]] = {}
        self._child_of: dict[str, list[str]] = {}
        self._sequence = 0
        self.calls: Counter[str] = Counter()

    @property
    def fetch_count(self) -> int:
        return sum(self.calls.values())

    def reset_counters(self) -> None:
        self.calls.clear()

    def _record(self, operation: str) -> None:
        self.calls[operation] += 1

    # ------------------------------------------------------------------
    # Batch reads
    # ------------------------------------------------------------------

    def fetch_people(self, ids: Sequence[str]) -> list[Person | None]:
        self._record("fetch_people")
        return [self._people.get(pid) for pid in ids]

    def fetch_families(self, ids: Sequence[str]) -> list[Family | None]:
        self._record("fetch_families")
        return [self._families.get(fid) for fid in ids]

    def fetch_children(self, family_ids: Sequence[str]) -> list[list[str]]:
        self._record("fetch_children")
        return [self._ordered_children(fid) for fid in family_ids]

    def fetch_families_as_child(self, person_ids: Sequence[str]) -> list[list[Family]]:
        self._record("fetch_families_as_child")
        return [
            [self._families[fid] for fid in self._child_of.get(pid, []) if fid in self._families]
            for pid in person_ids
        ]

    def fetch_families_as_spouse(self, person_ids: Sequence[str]) -> list[list[Family]]:
        self._record("fetch_families_as_spouse")
        wanted = set(person_ids)
        by_person: dict[str, list[Family]] = {pid: [] for pid in wanted}
        for family in self._families.values():
            for pid in {family.husband_id, family.wife_id}:
                if pid in wanted:
                    by_person[pid].append(family)
        return [list(by_person[pid]) for pid in person_ids]

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def count_people(self) -> int:
        self._record("count_people")
        return len(self._people)

    def list_people(
        self,
        *,
        after: str | None = None,
        before: str | None = None,
        limit: int,
        descending: bool = False,
    ) -> list[Person]:
        self._record("list_people")
        ids = sorted(self._people, reverse=descending)
        if after is not None:
            ids = [pid for pid in ids if pid > after]
        if before is not None:
            ids = [pid for pid in ids if pid < before]
        return [self._people[pid] for pid in ids[:limit]]

    def search_people(
        self,
        terms: Sequence[str],
        *,
        after: str | None = None,
        limit: int,
    ) -> list[Person]:
        self._record("search_people")
        ids = [pid for pid in sorted(self._people) if after is None or pid > after]
        matches = (self._people[pid] for pid in ids if self._matches(self._people[pid], terms))
        return list(islice(matches, limit))

    def count_search_matches(self, terms: Sequence[str]) -> int:
        self._record("count_search_matches")
        return sum(1 for p in self._people.values() if self._matches(p, terms))

    @staticmethod
    def _matches(person: Person, terms: Sequence[str]) -> bool:
        return name_matches(terms, person.name_full, person.name_given, person.name_surname)

    # ------------------------------------------------------------------
    # Research queue
    # ------------------------------------------------------------------

    def research_candidates(self) -> list[Person]:
        self._record("research_candidates")
        return [p for p in self._people.values() if self._is_candidate(p)]

    def count_research_candidates(self) -> int:
        self._record("count_research_candidates")
        return sum(1 for p in self._people.values() if self._is_candidate(p))

    def people_with_placeholder_parents(self, person_ids: Sequence[str]) -> set[str]:
        self._record("people_with_placeholder_parents")
        return self._placeholder_children(person_ids)

    def research_page(
        self,
        weights: ResearchWeights,
        *,
        after: tuple[float, str] | None = None,
        limit: int,
    ) -> list[tuple[Person, bool]]:
        from ..research import score_person

        self._record("research_page")
        candidates = [p for p in self._people.values() if self._is_candidate(p)]
        flagged = self._placeholder_children([p.id for p in candidates])
        scored = sorted(
            (score_person(p, weights, has_placeholder_parent=p.id in flagged) for p in candidates),
            key=lambda entry: entry.sort_key,
        )
        if after is not None:
            after_score, after_id = after
            scored = [
                e
                for e in scored
                if e.score < after_score or (e.score == after_score and e.person.id > after_id)
            ]
        return [(e.person, e.person.id in flagged) for e in scored[:limit]]

    def _placeholder_children(self, person_ids: Sequence[str]) -> set[str]:
        result: set[str] = set()
        for pid in person_ids:
            for fid in self._child_of.get(pid, []):
                family = self._families.get(fid)
                if family is None:
                    continue
                parents = [self._people.get(parent_id) for parent_id in family.parent_ids]
                if any(parent is not None and parent.is_placeholder for parent in parents):
                    result.add(pid)
                    break
        return result

    @staticmethod
    def _is_candidate(person: Person) -> bool:
        return person.research_status != ResearchStatus.VERIFIED and not person.is_placeholder

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_person(self, person: Person) -> Person:
        self._people[person.id] = person
        return person

    def add_family(self, family: Family) -> Family:
        self._families[family.id] = family
        self._children.setdefault(family.id, [])
        return family

    def add_child(self, family_id: str, person_id: str, birth_order: int | None = None) -> None:
        children = self._children.setdefault(family_id, [])
        if any(existing == person_id for _, _, existing in children):
            raise ValueError(f"{person_id} is already a child of family {family_id}")
        self._sequence += 1
        children.append((birth_order, self._sequence, person_id))
        self._child_of.setdefault(person_id, []).append(family_id)

    def _ordered_children(self, family_id: str) -> list[str]:
        # Children without a birth order sort after the ordered ones, by insertion.
        entries = sorted(
            self._children.get(family_id, []),
            key=lambda entry: (entry[0] is None, entry[0] or 0, entry[1]),
        )
        return [person_id for _, _, person_id in entries]
