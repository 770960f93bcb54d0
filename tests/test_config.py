"""Tests for settings, models and the logging setup."""
from __future__ import annotations

import io
import json
from pathlib import Path

import pytest
import structlog
from pydantic import ValidationError
from structlog.testing import capture_logs

from pedigree_graph.config import ResearchWeights, Settings, load_settings
from pedigree_graph.exceptions import InvalidCursorError, PedigreeGraphError, StoreUnavailableError
from pedigree_graph.logging import configure_logging, get_logger
from pedigree_graph.models import Family, Person, ResearchStatus, Sex


class TestSettings:
    """Tests for Settings and load_settings."""

    def test_defaults(self):
        settings = load_settings(env={})

        assert settings.db_path == Path("./data/pedigree.db")
        assert settings.default_generations == 3
        assert settings.default_page_size == 50
        assert settings.max_page_size == 100
        assert settings.notable_ancestor_depth == 15
        assert settings.notable_descendant_depth == 6
        assert settings.research_weights == ResearchWeights()

    def test_default_weights(self):
        weights = ResearchWeights()
        assert (
            weights.missing_core_dates,
            weights.missing_places,
            weights.estimated_dates,
            weights.placeholder_parent,
            weights.low_sources,
            weights.manual_priority,
        ) == (30, 15, 20, 40, 25, 10)

    def test_environment_overrides(self):
        settings = load_settings(
            env={
                "PEDIGREE_DB_PATH": "/tmp/family.db",
                "PEDIGREE_LOG_LEVEL": "debug",
                "PEDIGREE_DEFAULT_GENERATIONS": "5",
                "PEDIGREE_MAX_PAGE_SIZE": "200",
                "RESEARCH_WEIGHT_LOW_SOURCES": "12.5",
                "RESEARCH_WEIGHT_PLACEHOLDER_PARENT": "0",
            }
        )

        assert settings.db_path == Path("/tmp/family.db")
        assert settings.log_level == "DEBUG"
        assert settings.default_generations == 5
        assert settings.max_page_size == 200
        assert settings.research_weights.low_sources == 12.5
        assert settings.research_weights.placeholder_parent == 0
        assert settings.research_weights.missing_core_dates == 30

    def test_empty_values_ignored(self):
        assert load_settings(env={"PEDIGREE_DEFAULT_GENERATIONS": ""}).default_generations == 3

    @pytest.mark.parametrize(
        "env",
        [
            {"PEDIGREE_DEFAULT_GENERATIONS": "many"},
            {"PEDIGREE_DEFAULT_GENERATIONS": "-1"},
            {"PEDIGREE_LOG_LEVEL": "loud"},
            {"RESEARCH_WEIGHT_MISSING_PLACES": "-3"},
            {"PEDIGREE_DEFAULT_PAGE_SIZE": "500"},
        ],
    )
    def test_invalid_values(self, env):
        with pytest.raises(ValidationError):
            load_settings(env=env)

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("PEDIGREE_NOTABLE_ANCESTOR_DEPTH", "4")

        assert load_settings(use_dotenv=False).notable_ancestor_depth == 4

    def test_page_size_consistency(self):
        with pytest.raises(ValidationError):
            Settings(default_page_size=20, max_page_size=10)


class TestModels:
    """Tests for Person and Family records."""

    def test_null_columns_use_defaults(self):
        record = Person.model_validate(
            {"id": "x", "sex": None, "research_status": None, "source_count": None}
        )

        assert record.sex == Sex.UNKNOWN
        assert record.research_status == ResearchStatus.NOT_STARTED
        assert record.source_count == 0

    def test_priority_range(self):
        with pytest.raises(ValidationError):
            Person(id="x", research_priority=11)

    def test_display_name(self):
        assert Person(id="x", name_full="Ann Lee").display_name == "Ann Lee"
        assert Person(id="x", name_given="Ann", name_surname="Lee").display_name == "Ann Lee"
        assert Person(id="x").display_name == "x"

    def test_records_are_frozen(self):
        record = Person(id="x")
        with pytest.raises(ValidationError):
            record.living = True

    def test_family_partner(self):
        family = Family(id="f", husband_id="h", wife_id="w")

        assert family.partner_of("h") == "w"
        assert family.partner_of("w") == "h"
        assert family.partner_of("kid") is None
        assert family.parent_ids == ["h", "w"]
        assert Family(id="g", wife_id="w").parent_ids == ["w"]


class TestErrors:
    """Tests for the error taxonomy."""

    def test_hierarchy(self):
        assert issubclass(InvalidCursorError, PedigreeGraphError)
        assert issubclass(StoreUnavailableError, PedigreeGraphError)

    def test_store_error_message(self):
        error = StoreUnavailableError("fetch_people", OSError("boom"))

        assert "fetch_people" in str(error)
        assert "boom" in str(error)
        assert error.operation == "fetch_people"


class TestLogging:
    """Tests for structlog configuration."""

    def test_event_with_context(self):
        with capture_logs() as logs:
            get_logger("tests").info("tree_built", person_id="p1")

        assert logs == [{"event": "tree_built", "person_id": "p1", "log_level": "info"}]

    def test_level_filtering(self):
        configure_logging("WARNING")
        try:
            with capture_logs() as logs:
                get_logger("tests").info("ignored")
                get_logger("tests").warning("kept")
        finally:
            structlog.reset_defaults()

        assert [entry["event"] for entry in logs] == ["kept"]

    def test_json_lines_to_stream(self):
        stream = io.StringIO()
        configure_logging("DEBUG", stream=stream)
        try:
            get_logger("tests").debug("cache_hit", key="pedigree:p1:3")
        finally:
            structlog.reset_defaults()

        entry = json.loads(stream.getvalue())
        assert entry["event"] == "cache_hit"
        assert entry["key"] == "pedigree:p1:3"
        assert entry["level"] == "debug"
        assert "timestamp" in entry

    def test_module_logger_follows_reconfiguration(self):
        """Loggers bound at import time honour a level set afterwards."""
        from pedigree_graph import service

        stream = io.StringIO()
        configure_logging("ERROR", stream=stream)
        try:
            service.logger.warning("dropped")
            service.logger.error("kept")
        finally:
            structlog.reset_defaults()

        assert [json.loads(line)["event"] for line in stream.getvalue().splitlines()] == ["kept"]
