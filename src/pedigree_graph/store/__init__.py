"""Backing stores for people and families."""

from .base import FamilyStore, name_matches, search_terms, store_operation
from .memory import InMemoryFamilyStore
from .seed import load_records
from .sqlite import SQLiteFamilyStore

__all__ = [
    "FamilyStore",
    "InMemoryFamilyStore",
    "SQLiteFamilyStore",
    "load_records",
    "name_matches",
    "search_terms",
    "store_operation",
]
