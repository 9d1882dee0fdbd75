# services/scraper/rules.py
"""
Loads the extraction rules from ``configs/extraction_rules.yaml`` and
validates them with Pydantic models.

The rules are static, process-wide configuration: they are parsed once,
cached, and the models are frozen so concurrent requests can share them.

Public API:
* ``get_rule_set(name)`` – returns a validated ``RuleSet`` or raises
  ``RuleSetNotFoundError``.
* ``list_available_rule_sets()`` – every rule-set name in the file.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.config import get_settings


class Cardinality(str, Enum):
    SINGLE = "single"
    REPEATED = "repeated"


class SubField(BaseModel):
    """One column of a repeated row: output name → cell index."""
    name: str
    index: int = Field(ge=0)

    model_config = ConfigDict(frozen=True)


class ExtractionRule(BaseModel):
    """Maps one CSS locator to one output field (or a list of rows)."""
    field: str
    selector: str
    cardinality: Cardinality = Cardinality.SINGLE
    cell_selector: Optional[str] = None
    min_cells: int = Field(default=0, ge=0)
    sub_fields: Tuple[SubField, ...] = ()

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_shape(self) -> "ExtractionRule":
        if self.cardinality is Cardinality.REPEATED:
            if not self.cell_selector:
                raise ValueError(f"repeated rule '{self.field}' needs a cell_selector")
            if not self.sub_fields:
                raise ValueError(f"repeated rule '{self.field}' needs sub_fields")
        elif self.sub_fields or self.cell_selector:
            raise ValueError(f"single rule '{self.field}' cannot declare cells")
        return self


class RuleSet(BaseModel):
    """Everything the pipeline needs to know about one kind of page."""
    ready_selectors: Tuple[str, ...] = ()
    rules: Tuple[ExtractionRule, ...]

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _unique_fields(self) -> "RuleSet":
        names = [rule.field for rule in self.rules]
        duplicates = {name for name in names if names.count(name) > 1}
        if duplicates:
            raise ValueError(f"duplicate rule fields: {sorted(duplicates)}")
        return self


class AllRuleSets(BaseModel):
    rule_sets: Dict[str, RuleSet]


class RuleSetNotFoundError(KeyError):
    """Raised when a requested rule set does not exist in the rules file."""

    def __init__(self, name: str, available: Optional[List[str]] = None):
        self.name = name
        self.available = available or []
        super().__init__(
            f"Rule set '{name}' not found. Available: {', '.join(self.available) or 'none'}"
        )


def _load_yaml(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    # Accept both ``{rule_sets: {...}}`` and a bare name → config mapping.
    return raw.get("rule_sets", raw)


@lru_cache(maxsize=None)
def load_rule_sets(path: Optional[Path] = None) -> AllRuleSets:
    """Parse and validate the whole file once per path."""
    path = Path(path or get_settings().RULES_PATH)
    return AllRuleSets(rule_sets=_load_yaml(path))


def get_rule_set(name: Optional[str] = None, path: Optional[Path] = None) -> RuleSet:
    """
    Return a validated ``RuleSet``.

    Raises
    ------
    RuleSetNotFoundError
        If ``name`` is not present in the file.
    pydantic.ValidationError
        If the file does not conform to the schema.
    """
    name = name or get_settings().RULE_SET
    try:
        return load_rule_sets(path).rule_sets[name]
    except KeyError as exc:
        raise RuleSetNotFoundError(name, list_available_rule_sets(path)) from exc


def list_available_rule_sets(path: Optional[Path] = None) -> List[str]:
    return list(load_rule_sets(path).rule_sets.keys())
