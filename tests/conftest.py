"""Shared fixtures: a small multi-generation family in an in-memory store."""
from __future__ import annotations

import pytest
import structlog

from pedigree_graph.cache import ResultCache
from pedigree_graph.config import Settings
from pedigree_graph.models import Family, Person
from pedigree_graph.service import FamilyTreeService
from pedigree_graph.store import InMemoryFamilyStore, load_records


def person(pid: str, name: str | None = None, **fields) -> Person:
    return Person(id=pid, name_full=name or pid.upper(), **fields)


# Family layout
#
#   p6 ─┐ (f3, husband only)
#       p4 ══ p5 (f2)          p4 ══ hw1 (f7)
#        ├── p2                 └── hs1*  (half-uncle)
#        └── u1 ══ us1 (f4)
#               └── cousin1*
#   p2 ══ p3 (f1)              sp1 ══ sp2 (f8)
#    ├── p1                     ├── s1
#    └── sib1                   └── ss1
#   p1 ══ s1 (f5, m. 1950)
#    ├── c1 ══ s2 (f6)
#    │    └── gc1
#    └── c2
#
#   * notable
FAMILY_DOCUMENT = {
    "people": [
        {"id": "p1", "name_full": "John Smith", "sex": "M", "birth_year": 1920,
         "birth_place": "Boston", "death_year": 1990, "death_place": "Boston",
         "source_count": 3, "research_status": "verified"},
        {"id": "p2", "name_full": "Robert Smith", "sex": "M", "birth_year": 1890},
        {"id": "p3", "name_full": "Mary Jones", "sex": "F"},
        {"id": "p4", "name_full": "William Smith", "sex": "M"},
        {"id": "p5", "name_full": "Ann Brown", "sex": "F"},
        {"id": "p6", "name_full": "Thomas Smith", "sex": "M"},
        {"id": "sib1", "name_full": "Jane Smith", "sex": "F"},
        {"id": "u1", "name_full": "Edward Smith", "sex": "M"},
        {"id": "us1", "name_full": "Clara White", "sex": "F", "is_notable": True,
         "notable_description": "Suffragist"},
        {"id": "cousin1", "name_full": "Grace Smith", "sex": "F", "is_notable": True,
         "notable_description": "Physicist"},
        {"id": "hw1", "name_full": "Lucy Green", "sex": "F"},
        {"id": "hs1", "name_full": "Henry Smith", "sex": "M", "is_notable": True,
         "notable_description": "Senator"},
        {"id": "s1", "name_full": "Helen Clark", "sex": "F", "birth_year": 1925},
        {"id": "c1", "name_full": "James Smith", "sex": "M", "living": True},
        {"id": "c2", "name_full": "Susan Smith", "sex": "F", "living": True},
        {"id": "s2", "name_full": "Kate Hill", "sex": "F", "living": True},
        {"id": "gc1", "name_full": "Liam Smith", "sex": "M", "living": True},
        {"id": "sp1", "name_full": "George Clark", "sex": "M"},
        {"id": "sp2", "name_full": "Edith Clark", "sex": "F"},
        {"id": "ss1", "name_full": "Rose Clark", "sex": "F"},
    ],
    "families": [
        {"id": "f1", "husband_id": "p2", "wife_id": "p3", "children": ["p1", "sib1"]},
        {"id": "f2", "husband_id": "p4", "wife_id": "p5", "children": ["p2", "u1"]},
        {"id": "f3", "husband_id": "p6", "children": ["p4"]},
        {"id": "f4", "husband_id": "u1", "wife_id": "us1", "children": ["cousin1"]},
        {"id": "f5", "husband_id": "p1", "wife_id": "s1", "marriage_year": 1950,
         "children": ["c1", "c2"]},
        {"id": "f6", "husband_id": "c1", "wife_id": "s2", "children": ["gc1"]},
        {"id": "f7", "husband_id": "p4", "wife_id": "hw1", "children": ["hs1"]},
        {"id": "f8", "husband_id": "sp1", "wife_id": "sp2", "children": ["s1", "ss1"]},
    ],
}


@pytest.fixture(autouse=True)
def reset_logging():
    """The CLI configures structlog globally; start every test from defaults."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def store():
    """In-memory store seeded with the Smith family."""
    family_store = InMemoryFamilyStore()
    load_records(family_store, FAMILY_DOCUMENT)
    family_store.reset_counters()
    return family_store


@pytest.fixture
def empty_store():
    return InMemoryFamilyStore()


@pytest.fixture
def simple_store():
    """p1 with parents p2 and p3 (f1), nothing further."""
    family_store = InMemoryFamilyStore()
    for pid in ("p1", "p2", "p3"):
        family_store.add_person(person(pid))
    family_store.add_family(Family(id="f1", husband_id="p2", wife_id="p3"))
    family_store.add_child("f1", "p1")
    family_store.reset_counters()
    return family_store


@pytest.fixture
def cache():
    return ResultCache()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def service(store, settings, cache):
    return FamilyTreeService(store, settings, cache)
