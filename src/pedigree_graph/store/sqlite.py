"""SQLite implementation of the family store."""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from ..logging import get_logger
from ..models import Family, Person, ResearchStatus
from .base import FamilyStore, name_matches

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from ..config import ResearchWeights

logger = get_logger(__name__)

# Stay well under SQLITE_MAX_VARIABLE_NUMBER on older builds.
_CHUNK_SIZE = 500

_PERSON_COLUMNS = (
    "id",
    "name_full",
    "name_given",
    "name_surname",
    "sex",
    "birth_year",
    "birth_date",
    "birth_place",
    "birth_date_accuracy",
    "death_year",
    "death_date",
    "death_place",
    "death_date_accuracy",
    "living",
    "is_placeholder",
    "is_notable",
    "notable_description",
    "source_count",
    "research_status",
    "research_priority",
    "last_researched",
)

_FAMILY_COLUMNS = (
    "id",
    "husband_id",
    "wife_id",
    "marriage_date",
    "marriage_year",
    "marriage_place",
)


def _chunks(keys: Sequence[str]) -> Iterator[list[str]]:
    unique = list(dict.fromkeys(keys))
    for start in range(0, len(unique), _CHUNK_SIZE):
        yield unique[start : start + _CHUNK_SIZE]


def _placeholders(count: int) -> str:
    return ",".join("?" * count)


def _sql_name_matches(query: str, *names: str | None) -> int:
    return int(name_matches(query.split(), *names))


def _register_matcher(conn: sqlite3.Connection) -> None:
    # SQLite's lower()/LIKE only fold ASCII; share the Python matcher instead.
    conn.create_function("name_matches", 4, _sql_name_matches, deterministic=True)


_UNCERTAIN_ACCURACY = ("ESTIMATED", "RANGE")

# Terms are summed in the same order as ``research.score_person`` so both
# produce bit-identical floats for cursor comparisons.
_RESEARCH_PAGE_SQL = """
WITH flagged AS (
    SELECT DISTINCT fc.person_id AS id
    FROM family_children fc
    JOIN families f ON f.id = fc.family_id
    JOIN people parent ON parent.id IN (f.husband_id, f.wife_id)
    WHERE parent.is_placeholder = 1
),
scored AS (
    SELECT p.*,
        flagged.id IS NOT NULL AS has_placeholder_parent,
        0.0
        + CASE WHEN p.birth_year IS NULL THEN :missing_core_dates ELSE 0 END
        + CASE WHEN p.living = 0 AND p.death_year IS NULL THEN :missing_core_dates ELSE 0 END
        + CASE WHEN COALESCE(p.birth_place, '') = '' THEN :missing_places ELSE 0 END
        + CASE WHEN p.living = 0 AND COALESCE(p.death_place, '') = ''
               THEN :missing_places ELSE 0 END
        + CASE WHEN p.birth_date_accuracy IN (:uncertain_a, :uncertain_b)
               THEN :estimated_dates ELSE 0 END
        + CASE WHEN p.death_date_accuracy IN (:uncertain_a, :uncertain_b)
               THEN :estimated_dates ELSE 0 END
        + CASE WHEN flagged.id IS NOT NULL THEN :placeholder_parent ELSE 0 END
        + CASE WHEN p.source_count = 0 THEN :low_sources ELSE 0 END
        + CASE WHEN p.research_priority > 0
               THEN :manual_priority * p.research_priority ELSE 0 END
        AS research_score
    FROM people p
    LEFT JOIN flagged ON flagged.id = p.id
    WHERE (p.research_status IS NULL OR p.research_status != :verified)
      AND p.is_placeholder = 0
)
SELECT * FROM scored
WHERE :after_id IS NULL
   OR research_score < :after_score
   OR (research_score = :after_score AND id > :after_id)
ORDER BY research_score DESC, id ASC
LIMIT :limit
"""


class SQLiteFamilyStore(FamilyStore):
    """SQLite-backed people/families store.

    Tables:
    - people(id -> person columns)
    - families(id -> husband_id, wife_id, marriage columns)
    - family_children(family_id, person_id, birth_order); rowid keeps insertion order

    "Store order" for a person's families is the families table rowid, which
    upserts preserve.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _get_conn(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON;")
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA busy_timeout=5000;")
        try:
            yield conn
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._get_conn() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS people (
                    id TEXT PRIMARY KEY,
                    name_full TEXT NOT NULL DEFAULT '',
                    name_given TEXT,
                    name_surname TEXT,
                    sex TEXT,
                    birth_year INTEGER,
                    birth_date TEXT,
                    birth_place TEXT,
                    birth_date_accuracy TEXT,
                    death_year INTEGER,
                    death_date TEXT,
                    death_place TEXT,
                    death_date_accuracy TEXT,
                    living INTEGER NOT NULL DEFAULT 0,
                    is_placeholder INTEGER NOT NULL DEFAULT 0,
                    is_notable INTEGER NOT NULL DEFAULT 0,
                    notable_description TEXT,
                    source_count INTEGER NOT NULL DEFAULT 0,
                    research_status TEXT,
                    research_priority INTEGER NOT NULL DEFAULT 0,
                    last_researched TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_people_research
                    ON people(research_status, is_placeholder);
                CREATE INDEX IF NOT EXISTS idx_people_notable ON people(is_notable);

                CREATE TABLE IF NOT EXISTS families (
                    id TEXT PRIMARY KEY,
                    husband_id TEXT,
                    wife_id TEXT,
                    marriage_date TEXT,
                    marriage_year INTEGER,
                    marriage_place TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_families_husband ON families(husband_id);
                CREATE INDEX IF NOT EXISTS idx_families_wife ON families(wife_id);

                CREATE TABLE IF NOT EXISTS family_children (
                    family_id TEXT NOT NULL,
                    person_id TEXT NOT NULL,
                    birth_order INTEGER,
                    UNIQUE (family_id, person_id),
                    FOREIGN KEY (family_id) REFERENCES families(id)
                );

                CREATE INDEX IF NOT EXISTS idx_children_person ON family_children(person_id);
                """
            )
            conn.commit()

    @staticmethod
    def _row_to_person(row: sqlite3.Row) -> Person:
        return Person.model_validate(dict(row))

    @staticmethod
    def _row_to_family(row: sqlite3.Row) -> Family:
        return Family.model_validate(dict(row))

    # --------------------------- Batch reads ---------------------------

    def fetch_people(self, ids: Sequence[str]) -> list[Person | None]:
        found: dict[str, Person] = {}
        with self._get_conn() as conn:
            for chunk in _chunks(ids):
                rows = conn.execute(
                    f"SELECT * FROM people WHERE id IN ({_placeholders(len(chunk))})",
                    chunk,
                ).fetchall()
                for row in rows:
                    found[row["id"]] = self._row_to_person(row)
        return [found.get(pid) for pid in ids]

    def fetch_families(self, ids: Sequence[str]) -> list[Family | None]:
        found: dict[str, Family] = {}
        with self._get_conn() as conn:
            for chunk in _chunks(ids):
                rows = conn.execute(
                    f"SELECT * FROM families WHERE id IN ({_placeholders(len(chunk))})",
                    chunk,
                ).fetchall()
                for row in rows:
                    found[row["id"]] = self._row_to_family(row)
        return [found.get(fid) for fid in ids]

    def fetch_children(self, family_ids: Sequence[str]) -> list[list[str]]:
        by_family: dict[str, list[str]] = {}
        with self._get_conn() as conn:
            for chunk in _chunks(family_ids):
                rows = conn.execute(
                    f"""
                    SELECT family_id, person_id FROM family_children
                    WHERE family_id IN ({_placeholders(len(chunk))})
                    ORDER BY family_id, birth_order IS NULL, birth_order, rowid
                    """,
                    chunk,
                ).fetchall()
                for row in rows:
                    by_family.setdefault(row["family_id"], []).append(row["person_id"])
        return [list(by_family.get(fid, [])) for fid in family_ids]

    def fetch_families_as_child(self, person_ids: Sequence[str]) -> list[list[Family]]:
        by_person: dict[str, list[Family]] = {}
        with self._get_conn() as conn:
            for chunk in _chunks(person_ids):
                rows = conn.execute(
                    f"""
                    SELECT fc.person_id AS child_id, f.*
                    FROM family_children fc
                    JOIN families f ON f.id = fc.family_id
                    WHERE fc.person_id IN ({_placeholders(len(chunk))})
                    ORDER BY f.rowid
                    """,
                    chunk,
                ).fetchall()
                for row in rows:
                    by_person.setdefault(row["child_id"], []).append(self._row_to_family(row))
        return [list(by_person.get(pid, [])) for pid in person_ids]

    def fetch_families_as_spouse(self, person_ids: Sequence[str]) -> list[list[Family]]:
        by_person: dict[str, list[Family]] = {}
        with self._get_conn() as conn:
            for chunk in _chunks(person_ids):
                marks = _placeholders(len(chunk))
                rows = conn.execute(
                    f"""
                    SELECT * FROM families
                    WHERE husband_id IN ({marks}) OR wife_id IN ({marks})
                    ORDER BY rowid
                    """,
                    chunk + chunk,
                ).fetchall()
                wanted = set(chunk)
                for row in rows:
                    family = self._row_to_family(row)
                    for pid in {family.husband_id, family.wife_id}:
                        if pid in wanted:
                            by_person.setdefault(pid, []).append(family)
        return [list(by_person.get(pid, [])) for pid in person_ids]

    # --------------------------- Listing ---------------------------

    def count_people(self) -> int:
        with self._get_conn() as conn:
            return conn.execute("SELECT COUNT(*) FROM people").fetchone()[0]

    def list_people(
        self,
        *,
        after: str | None = None,
        before: str | None = None,
        limit: int,
        descending: bool = False,
    ) -> list[Person]:
        clauses: list[str] = []
        params: list[object] = []
        if after is not None:
            clauses.append("id > ?")
            params.append(after)
        if before is not None:
            clauses.append("id < ?")
            params.append(before)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        order = "DESC" if descending else "ASC"
        params.append(limit)
        with self._get_conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM people {where} ORDER BY id {order} LIMIT ?",
                params,
            ).fetchall()
        return [self._row_to_person(row) for row in rows]

    # --------------------------- Search ---------------------------

    _MATCH_FILTER = "name_matches(?, name_full, name_given, name_surname)"

    def search_people(
        self,
        terms: Sequence[str],
        *,
        after: str | None = None,
        limit: int,
    ) -> list[Person]:
        clauses: list[str] = []
        params: list[object] = []
        if terms:
            clauses.append(self._MATCH_FILTER)
            params.append(" ".join(terms))
        if after is not None:
            clauses.append("id > ?")
            params.append(after)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(limit)
        with self._get_conn() as conn:
            _register_matcher(conn)
            rows = conn.execute(
                f"SELECT * FROM people {where} ORDER BY id ASC LIMIT ?",
                params,
            ).fetchall()
        return [self._row_to_person(row) for row in rows]

    def count_search_matches(self, terms: Sequence[str]) -> int:
        if not terms:
            return self.count_people()
        with self._get_conn() as conn:
            _register_matcher(conn)
            return conn.execute(
                f"SELECT COUNT(*) FROM people WHERE {self._MATCH_FILTER}",
                (" ".join(terms),),
            ).fetchone()[0]

    # --------------------------- Research queue ---------------------------

    _CANDIDATE_FILTER = (
        "(research_status IS NULL OR research_status != ?) AND is_placeholder = 0"
    )

    def research_candidates(self) -> list[Person]:
        with self._get_conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM people WHERE {self._CANDIDATE_FILTER}",
                (ResearchStatus.VERIFIED.value,),
            ).fetchall()
        return [self._row_to_person(row) for row in rows]

    def count_research_candidates(self) -> int:
        with self._get_conn() as conn:
            return conn.execute(
                f"SELECT COUNT(*) FROM people WHERE {self._CANDIDATE_FILTER}",
                (ResearchStatus.VERIFIED.value,),
            ).fetchone()[0]

    def people_with_placeholder_parents(self, person_ids: Sequence[str]) -> set[str]:
        result: set[str] = set()
        with self._get_conn() as conn:
            for chunk in _chunks(person_ids):
                rows = conn.execute(
                    f"""
                    SELECT DISTINCT fc.person_id
                    FROM family_children fc
                    JOIN families f ON f.id = fc.family_id
                    JOIN people parent
                      ON parent.id IN (f.husband_id, f.wife_id)
                    WHERE fc.person_id IN ({_placeholders(len(chunk))})
                      AND parent.is_placeholder = 1
                    """,
                    chunk,
                ).fetchall()
                result.update(row[0] for row in rows)
        return result

    def research_page(
        self,
        weights: ResearchWeights,
        *,
        after: tuple[float, str] | None = None,
        limit: int,
    ) -> list[tuple[Person, bool]]:
        after_score, after_id = after if after is not None else (None, None)
        params = {
            **weights.model_dump(),
            "uncertain_a": _UNCERTAIN_ACCURACY[0],
            "uncertain_b": _UNCERTAIN_ACCURACY[1],
            "verified": ResearchStatus.VERIFIED.value,
            "after_score": after_score,
            "after_id": after_id,
            "limit": limit,
        }
        with self._get_conn() as conn:
            rows = conn.execute(_RESEARCH_PAGE_SQL, params).fetchall()
        return [(self._row_to_person(row), bool(row["has_placeholder_parent"])) for row in rows]

    # --------------------------- Writes ---------------------------

    def add_person(self, person: Person) -> Person:
        data = person.model_dump(mode="json")
        values = [data[column] for column in _PERSON_COLUMNS]
        updates = ", ".join(f"{c}=excluded.{c}" for c in _PERSON_COLUMNS[1:])
        with self._get_conn() as conn:
            conn.execute(
                f"""
                INSERT INTO people ({", ".join(_PERSON_COLUMNS)})
                VALUES ({_placeholders(len(_PERSON_COLUMNS))})
                ON CONFLICT(id) DO UPDATE SET {updates}
                """,
                values,
            )
            conn.commit()
        return person

    def add_family(self, family: Family) -> Family:
        data = family.model_dump(mode="json")
        values = [data[column] for column in _FAMILY_COLUMNS]
        updates = ", ".join(f"{c}=excluded.{c}" for c in _FAMILY_COLUMNS[1:])
        with self._get_conn() as conn:
            conn.execute(
                f"""
                INSERT INTO families ({", ".join(_FAMILY_COLUMNS)})
                VALUES ({_placeholders(len(_FAMILY_COLUMNS))})
                ON CONFLICT(id) DO UPDATE SET {updates}
                """,
                values,
            )
            conn.commit()
        return family

    def add_child(self, family_id: str, person_id: str, birth_order: int | None = None) -> None:
        with self._get_conn() as conn:
            try:
                conn.execute(
                    "INSERT INTO family_children (family_id, person_id, birth_order) VALUES (?, ?, ?)",
                    (family_id, person_id, birth_order),
                )
            except sqlite3.IntegrityError as exc:
                raise ValueError(
                    f"Cannot add {person_id} to family {family_id}: {exc}"
                ) from exc
            conn.commit()
        logger.debug("child_added", family_id=family_id, person_id=person_id)
