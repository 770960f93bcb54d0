"""Runtime configuration loaded from the environment.

Values come from process environment variables, optionally seeded from a
``.env`` file. Every field has a default so the engine runs unconfigured.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator

from .logging import LogLevel


class ResearchWeights(BaseModel):
    """Weights for the research queue score.

    Each weight is added once per matching indicator, except
    ``manual_priority`` which multiplies the user-set research priority.
    """

    missing_core_dates: float = Field(default=30, ge=0, description="Missing birth/death years")
    missing_places: float = Field(default=15, ge=0, description="Missing birth/death places")
    estimated_dates: float = Field(default=20, ge=0, description="Estimated or ranged dates")
    placeholder_parent: float = Field(default=40, ge=0, description="Has a placeholder parent")
    low_sources: float = Field(default=25, ge=0, description="No sources recorded")
    manual_priority: float = Field(default=10, ge=0, description="Multiplier for research_priority")


class Settings(BaseModel):
    """Engine settings."""

    db_path: Path = Field(default=Path("./data/pedigree.db"))
    log_level: LogLevel = "INFO"

    # Trees
    default_generations: int = Field(default=3, ge=0, le=20)
    expansion_generations: int = Field(default=1, ge=1, le=20)
    notable_ancestor_depth: int = Field(default=15, ge=0, le=50)
    notable_descendant_depth: int = Field(default=6, ge=0, le=50)

    # Pagination
    default_page_size: int = Field(default=50, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    research_weights: ResearchWeights = Field(default_factory=ResearchWeights)

    @model_validator(mode="after")
    def _check_page_sizes(self) -> Settings:
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size cannot exceed max_page_size")
        return self


_ENV_FIELDS = {
    "PEDIGREE_DB_PATH": "db_path",
    "PEDIGREE_LOG_LEVEL": "log_level",
    "PEDIGREE_DEFAULT_GENERATIONS": "default_generations",
    "PEDIGREE_EXPANSION_GENERATIONS": "expansion_generations",
    "PEDIGREE_NOTABLE_ANCESTOR_DEPTH": "notable_ancestor_depth",
    "PEDIGREE_NOTABLE_DESCENDANT_DEPTH": "notable_descendant_depth",
    "PEDIGREE_DEFAULT_PAGE_SIZE": "default_page_size",
    "PEDIGREE_MAX_PAGE_SIZE": "max_page_size",
}

_WEIGHT_FIELDS = {
    "RESEARCH_WEIGHT_MISSING_CORE_DATES": "missing_core_dates",
    "RESEARCH_WEIGHT_MISSING_PLACES": "missing_places",
    "RESEARCH_WEIGHT_ESTIMATED_DATES": "estimated_dates",
    "RESEARCH_WEIGHT_PLACEHOLDER_PARENT": "placeholder_parent",
    "RESEARCH_WEIGHT_LOW_SOURCES": "low_sources",
    "RESEARCH_WEIGHT_MANUAL_PRIORITY": "manual_priority",
}


def load_settings(env: dict[str, str] | None = None, *, use_dotenv: bool = True) -> Settings:
    """Build ``Settings`` from environment variables.

    Args:
        env: Mapping to read instead of ``os.environ`` (mainly for tests)
        use_dotenv: Load a ``.env`` file into the process environment first

    Raises:
        pydantic.ValidationError: If a variable holds an invalid value
    """
    if env is None:
        if use_dotenv:
            from dotenv import load_dotenv

            load_dotenv()
        env = dict(os.environ)

    values: dict[str, Any] = {
        field: env[name] for name, field in _ENV_FIELDS.items() if env.get(name)
    }
    if "log_level" in values:
        values["log_level"] = values["log_level"].upper()

    weights = {field: env[name] for name, field in _WEIGHT_FIELDS.items() if env.get(name)}
    if weights:
        values["research_weights"] = weights

    return Settings.model_validate(values)
