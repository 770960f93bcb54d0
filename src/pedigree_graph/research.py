"""Research queue: rank people whose records most need work.

Each candidate gets a weighted score over six indicators; the queue is
served highest score first with ties broken by id, through composite
``(score, id)`` cursors.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .config import ResearchWeights
from .logging import get_logger
from .models import DateAccuracy
from .pagination import (
    Connection,
    Edge,
    build_connection,
    decode_composite_cursor,
    encode_composite_cursor,
    resolve_page_args,
)
from .store import store_operation

if TYPE_CHECKING:
    from .models import Person
    from .store import FamilyStore

logger = get_logger(__name__)

_UNCERTAIN = (DateAccuracy.ESTIMATED, DateAccuracy.RANGE)


@dataclass(frozen=True)
class ScoredPerson:
    """A queue entry: the person, their score, and the indicators that fired."""
    person: Person
    score: float
    reasons: tuple[str, ...] = field(default_factory=tuple)

    @property
    def sort_key(self) -> tuple[float, str]:
        return (-self.score, self.person.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "person": self.person.to_dict(),
            "score": self.score,
            "reasons": list(self.reasons),
        }


def score_person(
    person: Person,
    weights: ResearchWeights,
    *,
    has_placeholder_parent: bool = False,
) -> ScoredPerson:
    """Score one person.

    Dates and places count once for birth and, unless the person is
    living, once more for death.
    """
    score = 0.0
    reasons: list[str] = []

    def add(weight: float, reason: str) -> None:
        nonlocal score
        score += weight
        if reason not in reasons:
            reasons.append(reason)

    if person.birth_year is None:
        add(weights.missing_core_dates, "missing_core_dates")
    if not person.living and person.death_year is None:
        add(weights.missing_core_dates, "missing_core_dates")

    if not person.birth_place:
        add(weights.missing_places, "missing_places")
    if not person.living and not person.death_place:
        add(weights.missing_places, "missing_places")

    if person.birth_date_accuracy in _UNCERTAIN:
        add(weights.estimated_dates, "estimated_dates")
    if person.death_date_accuracy in _UNCERTAIN:
        add(weights.estimated_dates, "estimated_dates")

    if has_placeholder_parent:
        add(weights.placeholder_parent, "placeholder_parent")

    if person.source_count == 0:
        add(weights.low_sources, "low_sources")

    if person.research_priority:
        add(weights.manual_priority * person.research_priority, "manual_priority")

    # Integral scores keep cursors short ("70:p2" rather than "70.0:p2").
    final: float = int(score) if score.is_integer() else score
    return ScoredPerson(person=person, score=final, reasons=tuple(reasons))


class ResearchQueue:
    """Ranked, cursor-paginated list of people needing research."""

    def __init__(
        self,
        store: FamilyStore,
        weights: ResearchWeights | None = None,
        *,
        default_page_size: int = 50,
        max_page_size: int = 100,
    ) -> None:
        self.store = store
        self.weights = weights or ResearchWeights()
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def ranked(self) -> list[ScoredPerson]:
        """Every candidate, scored and sorted (score desc, id asc)."""
        with store_operation("research_candidates"):
            candidates = self.store.research_candidates()
            flagged = self.store.people_with_placeholder_parents([p.id for p in candidates])
        scored = [
            score_person(p, self.weights, has_placeholder_parent=p.id in flagged)
            for p in candidates
        ]
        scored.sort(key=lambda entry: entry.sort_key)
        return scored

    def page(self, first: int | None = None, after: str | None = None) -> Connection[ScoredPerson]:
        """Return one page of the queue.

        Args:
            first: Page size; defaults to the configured size, clamped to the maximum
            after: ``endCursor`` of the previous page

        Raises:
            InvalidCursorError: If ``after`` is malformed
            PaginationError: If ``first`` is negative
            StoreUnavailableError: If the store fails
        """
        args = resolve_page_args(
            first=first,
            after=after,
            default_size=self.default_page_size,
            max_size=self.max_page_size,
        )
        cursor = decode_composite_cursor(args.after) if args.after is not None else None
        # The store scores and orders; ``reasons`` are filled in per row.
        with store_operation("research_page"):
            rows = self.store.research_page(self.weights, after=cursor, limit=args.limit + 1)
        window = [
            score_person(person, self.weights, has_placeholder_parent=flagged)
            for person, flagged in rows
        ]
        has_next = len(window) > args.limit
        window = window[: args.limit]

        # Counted separately, so it may lag the page under concurrent writes.
        with store_operation("count_research_candidates"):
            total = self.store.count_research_candidates()

        edges = [
            Edge(node=entry, cursor=encode_composite_cursor((entry.score, entry.person.id)))
            for entry in window
        ]
        logger.debug(
            "research_queue_page",
            requested=first,
            limit=args.limit,
            returned=len(edges),
            has_next=has_next,
        )
        return build_connection(
            edges,
            has_next_page=has_next,
            has_previous_page=args.after is not None,
            total_count=total,
        )
