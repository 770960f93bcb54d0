"""Tests for cursor encoding, page arguments, people listing and search."""
from __future__ import annotations

import base64

import pytest

from conftest import person
from pedigree_graph.exceptions import InvalidCursorError, PaginationError
from pedigree_graph.pagination import (
    decode_composite_cursor,
    decode_cursor,
    encode_composite_cursor,
    encode_cursor,
    paginate_people,
    paginate_search,
    resolve_page_args,
)
from pedigree_graph.store import InMemoryFamilyStore, name_matches, search_terms


def raw_token(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode()).decode()


class TestCursorCodec:
    """Tests for single and composite cursors."""

    @pytest.mark.parametrize("key", ["p1", "I0042", "émile/ü?&=", "a:b:c"])
    def test_single_key_round_trip(self, key):
        token = encode_cursor(key)
        assert decode_cursor(token) == key
        assert "/" not in token and "+" not in token

    @pytest.mark.parametrize(
        "key", [(70, "p2"), (0, "a"), (-5, "x:y"), (12.5, "p9"), (70.0, "p2")]
    )
    def test_composite_round_trip(self, key):
        decoded = decode_composite_cursor(encode_composite_cursor(key))
        assert decoded == key
        assert type(decoded[0]) is type(key[0])

    def test_encoding_is_stable(self):
        assert encode_composite_cursor((70, "p2")) == encode_composite_cursor((70, "p2"))
        assert encode_composite_cursor((70, "p2")) == raw_token("70:p2")

    @pytest.mark.parametrize(
        "token, reason",
        [
            ("", "empty cursor"),
            ("not base64!", "not base64"),
            ("abc", "not base64"),
            (base64.urlsafe_b64encode(b"\xff\xfe").decode(), "not UTF-8"),
        ],
    )
    def test_malformed_single_cursor(self, token, reason):
        with pytest.raises(InvalidCursorError) as excinfo:
            decode_cursor(token)
        assert excinfo.value.reason == reason
        assert excinfo.value.token == token

    @pytest.mark.parametrize(
        "text, reason",
        [
            ("70p2", "missing separator"),
            ("70:", "empty id"),
            ("seventy:p2", "score is not a number"),
            ("nan:p2", "score is not finite"),
            ("inf:p2", "score is not finite"),
        ],
    )
    def test_malformed_composite_cursor(self, text, reason):
        with pytest.raises(InvalidCursorError) as excinfo:
            decode_composite_cursor(raw_token(text))
        assert excinfo.value.reason == reason

    def test_encode_rejects_bad_keys(self):
        with pytest.raises(ValueError):
            encode_cursor("")
        with pytest.raises(ValueError):
            encode_composite_cursor((float("nan"), "p1"))
        with pytest.raises(ValueError):
            encode_composite_cursor((1, ""))


class TestResolvePageArgs:
    """Tests for page argument validation."""

    def test_defaults_forward(self):
        args = resolve_page_args(default_size=50, max_size=100)
        assert args.limit == 50
        assert args.backward is False

    def test_clamped_to_maximum(self):
        assert resolve_page_args(first=1000, max_size=100).limit == 100
        assert resolve_page_args(last=1000, max_size=100).limit == 100

    def test_backward(self):
        args = resolve_page_args(last=5, before="x")
        assert args.backward is True
        assert args.limit == 5
        assert args.before == "x"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"first": 1, "last": 1},
            {"after": "a", "before": "b"},
            {"first": 2, "before": "b"},
            {"after": "a", "last": 3},
        ],
    )
    def test_directions_are_exclusive(self, kwargs):
        with pytest.raises(PaginationError):
            resolve_page_args(**kwargs)

    def test_negative_sizes_rejected(self):
        with pytest.raises(PaginationError):
            resolve_page_args(first=-1)
        with pytest.raises(PaginationError):
            resolve_page_args(last=-3)


@pytest.fixture
def people_store():
    """Ten people p00..p09."""
    store = InMemoryFamilyStore()
    for i in range(10):
        store.add_person(person(f"p{i:02d}"))
    return store


class TestPaginatePeople:
    """Tests for id-ordered people pagination."""

    def test_first_page(self, people_store):
        page = paginate_people(people_store, resolve_page_args(first=3))

        assert [p.id for p in page.nodes] == ["p00", "p01", "p02"]
        assert page.page_info.has_next_page is True
        assert page.page_info.has_previous_page is False
        assert page.page_info.total_count == 10
        assert decode_cursor(page.page_info.end_cursor) == "p02"

    def test_walk_forward_to_end(self, people_store):
        seen: list[str] = []
        after = None
        while True:
            page = paginate_people(people_store, resolve_page_args(first=4, after=after))
            seen.extend(p.id for p in page.nodes)
            if not page.page_info.has_next_page:
                break
            after = page.page_info.end_cursor

        assert seen == [f"p{i:02d}" for i in range(10)]
        assert page.page_info.has_previous_page is True

    def test_backward_before(self, people_store):
        page = paginate_people(
            people_store, resolve_page_args(last=3, before=encode_cursor("p05"))
        )

        assert [p.id for p in page.nodes] == ["p02", "p03", "p04"]
        assert page.page_info.has_previous_page is True
        assert page.page_info.has_next_page is True

    def test_last_without_before_takes_the_tail(self, people_store):
        page = paginate_people(people_store, resolve_page_args(last=2))

        assert [p.id for p in page.nodes] == ["p08", "p09"]
        assert page.page_info.has_next_page is False
        assert page.page_info.has_previous_page is True

    def test_backward_reaches_start(self, people_store):
        page = paginate_people(
            people_store, resolve_page_args(last=5, before=encode_cursor("p02"))
        )

        assert [p.id for p in page.nodes] == ["p00", "p01"]
        assert page.page_info.has_previous_page is False

    def test_empty_store(self):
        page = paginate_people(InMemoryFamilyStore(), resolve_page_args(first=5))

        assert page.edges == []
        assert page.page_info.start_cursor is None
        assert page.page_info.end_cursor is None
        assert page.page_info.total_count == 0

    def test_invalid_cursor_surfaces(self, people_store):
        with pytest.raises(InvalidCursorError):
            paginate_people(people_store, resolve_page_args(first=2, after="%%%"))

    def test_to_dict_camel_case(self, people_store):
        data = paginate_people(people_store, resolve_page_args(first=1)).to_dict()

        assert set(data["pageInfo"]) == {
            "hasNextPage",
            "hasPreviousPage",
            "startCursor",
            "endCursor",
            "totalCount",
        }
        assert data["edges"][0]["node"]["id"] == "p00"
        assert data["edges"][0]["cursor"] == data["pageInfo"]["startCursor"]


class TestNameMatching:
    """Tests for search_terms and name_matches."""

    def test_terms_are_lower_cased_words(self):
        assert search_terms("  Rob  SMI ") == ["rob", "smi"]
        assert search_terms("") == []

    @pytest.mark.parametrize(
        "query,expected",
        [
            ("smith", True),
            ("ROB", True),
            ("rob smi", True),
            ("smi rob", True),
            ("mith", False),
            ("rob jones", False),
            ("", True),
        ],
    )
    def test_every_term_prefixes_a_word(self, query, expected):
        assert name_matches(search_terms(query), "Robert Smith", None, None) is expected

    def test_given_and_surname_fields(self):
        assert name_matches(["bob"], "R. Smith", "Bob", None)
        assert name_matches(["smyth"], "Robert Smith", None, "Smyth")

    def test_non_ascii_names(self):
        assert name_matches(search_terms("ÖDE"), "Zoë Ødegaard", None, None) is False
        assert name_matches(search_terms("ØDE zo"), "Zoë Ødegaard", None, None)


class TestPaginateSearch:
    """Tests for id-ordered name search."""

    def test_matches_in_id_order(self, store):
        page = paginate_search(store, ["clark"], resolve_page_args(first=10))

        assert [p.id for p in page.nodes] == ["s1", "sp1", "sp2", "ss1"]
        assert page.page_info.total_count == 4
        assert page.page_info.has_next_page is False
        assert page.page_info.has_previous_page is False

    def test_prefix_reaches_other_names(self, store):
        page = paginate_search(store, ["cla"], resolve_page_args(first=10))

        assert [p.id for p in page.nodes] == ["s1", "sp1", "sp2", "ss1", "us1"]

    def test_every_term_must_match(self, store):
        page = paginate_search(store, search_terms("hel cla"), resolve_page_args())

        assert [p.display_name for p in page.nodes] == ["Helen Clark"]

    def test_walk_forward_to_end(self, store):
        seen: list[str] = []
        after = None
        while True:
            page = paginate_search(store, ["smith"], resolve_page_args(first=3, after=after))
            seen.extend(p.id for p in page.nodes)
            assert page.page_info.total_count == 11
            if not page.page_info.has_next_page:
                break
            after = page.page_info.end_cursor

        assert seen == sorted(seen)
        assert len(seen) == 11
        assert page.page_info.has_previous_page is True

    def test_no_terms_lists_everyone(self, store):
        page = paginate_search(store, [], resolve_page_args(first=100))

        assert page.page_info.total_count == 20
        assert [p.id for p in page.nodes] == sorted(p.id for p in page.nodes)

    def test_no_matches(self, store):
        page = paginate_search(store, ["zzz"], resolve_page_args())

        assert page.edges == []
        assert page.page_info.end_cursor is None
        assert page.page_info.total_count == 0

    def test_invalid_cursor_surfaces(self, store):
        with pytest.raises(InvalidCursorError):
            paginate_search(store, ["smith"], resolve_page_args(after="%%%"))
