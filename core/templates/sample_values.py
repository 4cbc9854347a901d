"""Sample value table loading for preview dummy data."""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache
from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from core.utils.errors import ConfigError

SampleValue = StrictStr | StrictInt
SampleValueLookup = Callable[[str], str | int]

_DEFAULT_TABLE_PATH = Path(__file__).with_name("sample_values.yaml")


class SampleRule(BaseModel):
    """One row of the lookup table: field-name keys sharing a sample value."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    keys: list[StrictStr] = Field(min_length=1)
    value: SampleValue


class SampleValueTable(BaseModel):
    """Deterministic, total mapping from a field name to a sample value."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    default: SampleValue = "Sample"
    rules: list[SampleRule] = Field(default_factory=list)

    def lookup(self, name: str) -> str | int:
        """Return the sample value for ``name`` (case-insensitive, first rule wins)."""

        key = name.strip().lower()
        for rule in self.rules:
            if any(candidate.lower() == key for candidate in rule.keys):
                return rule.value
        return self.default


def load_sample_table(path: Path | None = None) -> SampleValueTable:
    """Load and validate a sample-value table from YAML."""

    table_path = path or _DEFAULT_TABLE_PATH

    try:
        raw = yaml.safe_load(table_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"Sample values file not found: {table_path}", path=table_path) from exc
    except yaml.YAMLError as exc:
        raise ConfigError(
            f"Invalid YAML in sample values file: {table_path}", path=table_path
        ) from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Sample values file must contain a mapping: {table_path}", path=table_path)

    try:
        return SampleValueTable.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid sample values schema: {table_path}", path=table_path) from exc


@lru_cache(maxsize=1)
def default_sample_table() -> SampleValueTable:
    """Return the bundled sample-value table (loaded once)."""

    return load_sample_table()


def sample_value_for_key(key: str) -> str | int:
    """Default lookup used when callers do not plug in their own."""

    return default_sample_table().lookup(key)
