"""Opaque cursor pagination.

Cursors are URL-safe base64 of the sort key. Plain listings sort by person
id; the research queue sorts by the composite ``(score, id)`` encoded as
``"{score}:{id}"``. Clients never interpret tokens, they only hand back a
prior page's ``startCursor``/``endCursor``.
"""
from __future__ import annotations

import base64
import binascii
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from .exceptions import InvalidCursorError, PaginationError
from .store import store_operation

if TYPE_CHECKING:
    from .models import Person
    from .store import FamilyStore

T = TypeVar("T")

Score = int | float


# ---------------------------------------------------------------------------
# Cursor codec
# ---------------------------------------------------------------------------


def encode_cursor(key: str) -> str:
    if not key:
        raise ValueError("cursor key cannot be empty")
    return base64.urlsafe_b64encode(key.encode("utf-8")).decode("ascii")


def decode_cursor(token: str) -> str:
    """Decode a single-key cursor.

    Raises:
        InvalidCursorError: If the token is not base64 of a non-empty UTF-8 string
    """
    if not isinstance(token, str) or not token:
        raise InvalidCursorError(str(token), "empty cursor")
    try:
        raw = base64.b64decode(token.encode("ascii"), altchars=b"-_", validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise InvalidCursorError(token, "not base64") from exc
    try:
        key = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidCursorError(token, "not UTF-8") from exc
    if not key:
        raise InvalidCursorError(token, "empty key")
    return key


def _format_score(score: Score) -> str:
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ValueError(f"score must be a number, got {score!r}")
    if isinstance(score, float):
        if not math.isfinite(score):
            raise ValueError("score must be finite")
        return repr(score)
    return str(score)


def encode_composite_cursor(key: tuple[Score, str]) -> str:
    score, person_id = key
    if not person_id:
        raise ValueError("cursor id cannot be empty")
    return encode_cursor(f"{_format_score(score)}:{person_id}")


def decode_composite_cursor(token: str) -> tuple[Score, str]:
    """Decode a ``(score, id)`` cursor.

    Raises:
        InvalidCursorError: On a missing separator, a non-finite or
            non-numeric score, or an empty id
    """
    text = decode_cursor(token)
    score_text, sep, person_id = text.partition(":")
    if not sep:
        raise InvalidCursorError(token, "missing separator")
    if not person_id:
        raise InvalidCursorError(token, "empty id")
    score: Score
    try:
        score = int(score_text)
    except ValueError:
        try:
            score = float(score_text)
        except ValueError as exc:
            raise InvalidCursorError(token, "score is not a number") from exc
        if not math.isfinite(score):
            raise InvalidCursorError(token, "score is not finite")
    return score, person_id


# ---------------------------------------------------------------------------
# Page arguments
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PageArgs:
    """Validated page request."""
    limit: int
    after: str | None = None
    before: str | None = None
    backward: bool = False


def resolve_page_args(
    first: int | None = None,
    after: str | None = None,
    last: int | None = None,
    before: str | None = None,
    *,
    default_size: int = 50,
    max_size: int = 100,
) -> PageArgs:
    """Validate first/after/last/before and clamp the page size.

    Forward (``first``/``after``) and backward (``last``/``before``) are
    mutually exclusive. Without either, the page is forward with
    ``default_size``. The size never exceeds ``max_size``.

    Raises:
        PaginationError: On mixed directions or a negative size
    """
    forward = first is not None or after is not None
    backward = last is not None or before is not None
    if forward and backward:
        raise PaginationError("first/after and last/before cannot be combined")
    for name, value in (("first", first), ("last", last)):
        if value is not None and value < 0:
            raise PaginationError(f"{name} cannot be negative")

    size = last if backward else first
    if size is None:
        size = default_size
    return PageArgs(
        limit=min(size, max_size),
        after=after,
        before=before,
        backward=backward,
    )


# ---------------------------------------------------------------------------
# Connection shapes
# ---------------------------------------------------------------------------


def _serialize(node: Any) -> Any:
    return node.to_dict() if hasattr(node, "to_dict") else node


@dataclass
class Edge(Generic[T]):
    node: T
    cursor: str

    def to_dict(self) -> dict[str, Any]:
        return {"node": _serialize(self.node), "cursor": self.cursor}


@dataclass
class PageInfo:
    has_next_page: bool = False
    has_previous_page: bool = False
    start_cursor: str | None = None
    end_cursor: str | None = None
    total_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hasNextPage": self.has_next_page,
            "hasPreviousPage": self.has_previous_page,
            "startCursor": self.start_cursor,
            "endCursor": self.end_cursor,
            "totalCount": self.total_count,
        }


@dataclass
class Connection(Generic[T]):
    """A page of edges plus page info."""
    edges: list[Edge[T]] = field(default_factory=list)
    page_info: PageInfo = field(default_factory=PageInfo)

    @property
    def nodes(self) -> list[T]:
        return [edge.node for edge in self.edges]

    def to_dict(self) -> dict[str, Any]:
        return {
            "edges": [edge.to_dict() for edge in self.edges],
            "pageInfo": self.page_info.to_dict(),
        }


def build_connection(
    edges: list[Edge[T]],
    *,
    has_next_page: bool,
    has_previous_page: bool,
    total_count: int,
) -> Connection[T]:
    return Connection(
        edges=edges,
        page_info=PageInfo(
            has_next_page=has_next_page,
            has_previous_page=has_previous_page,
            start_cursor=edges[0].cursor if edges else None,
            end_cursor=edges[-1].cursor if edges else None,
            total_count=total_count,
        ),
    )


# ---------------------------------------------------------------------------
# People listing
# ---------------------------------------------------------------------------


def paginate_people(store: FamilyStore, args: PageArgs) -> Connection[Person]:
    """Id-ordered people listing.

    Forward pages keep ``id > after`` ascending. Backward pages fetch
    ``id < before`` descending and reverse it; ``last`` without ``before``
    returns the final ``last`` people. One extra row decides whether
    another page exists in the direction of travel.

    Raises:
        InvalidCursorError: If ``after``/``before`` cannot be decoded
        StoreUnavailableError: If the store fails
    """
    after = decode_cursor(args.after) if args.after is not None else None
    before = decode_cursor(args.before) if args.before is not None else None

    with store_operation("list_people"):
        rows = store.list_people(
            after=after,
            before=before,
            limit=args.limit + 1,
            descending=args.backward,
        )
        total = store.count_people()

    has_more = len(rows) > args.limit
    rows = rows[: args.limit]
    if args.backward:
        rows.reverse()
        has_next, has_previous = before is not None, has_more
    else:
        has_next, has_previous = has_more, after is not None

    edges = [Edge(node=person, cursor=encode_cursor(person.id)) for person in rows]
    return build_connection(
        edges,
        has_next_page=has_next,
        has_previous_page=has_previous,
        total_count=total,
    )


def paginate_search(store: FamilyStore, terms: list[str], args: PageArgs) -> Connection[Person]:
    """Forward-only, id-ordered page of people matching ``terms``.

    ``total_count`` counts every match, not just this page.

    Raises:
        InvalidCursorError: If ``after`` cannot be decoded
        StoreUnavailableError: If the store fails
    """
    after = decode_cursor(args.after) if args.after is not None else None

    with store_operation("search_people"):
        rows = store.search_people(terms, after=after, limit=args.limit + 1)
        total = store.count_search_matches(terms)

    has_next = len(rows) > args.limit
    edges = [Edge(node=person, cursor=encode_cursor(person.id)) for person in rows[: args.limit]]
    return build_connection(
        edges,
        has_next_page=has_next,
        has_previous_page=after is not None,
        total_count=total,
    )
