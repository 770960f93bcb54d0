"""Seed a store from a JSON-style document.

Document shape::

    {
      "people": [{"id": "p1", "name_full": "Ann Smith", ...}, ...],
      "families": [
        {"id": "f1", "husband_id": "p2", "wife_id": "p3", "children": ["p1"]},
        ...
      ]
    }

Children are listed in birth order.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..logging import get_logger
from ..models import Family, Person

if TYPE_CHECKING:
    from .base import FamilyStore

logger = get_logger(__name__)


def load_records(store: FamilyStore, data: dict[str, Any]) -> tuple[int, int]:
    """Insert people, then families and their child lists.

    Returns:
        (people loaded, families loaded)

    Raises:
        pydantic.ValidationError: If a record is malformed
        ValueError: If a family lists the same child twice
    """
    people = [Person.model_validate(record) for record in data.get("people", [])]
    for person in people:
        store.add_person(person)

    families = data.get("families", [])
    for record in families:
        family = store.add_family(Family.model_validate(record))
        for order, child_id in enumerate(record.get("children", []), start=1):
            store.add_child(family.id, child_id, birth_order=order)

    logger.info("records_loaded", people=len(people), families=len(families))
    return len(people), len(families)
