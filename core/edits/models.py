"""Edit set models: pending element removals and style injections."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.utils.errors import EditSpecError

STYLE_PROPERTIES = ("padding", "margin")
_FORBIDDEN_STYLE_CHARS = frozenset('"<>')


class StyleEdit(BaseModel):
    """Inline style properties to inject on one element."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    padding: str | None = None
    margin: str | None = None

    @field_validator("padding", "margin")
    @classmethod
    def validate_attribute_safe(cls, value: str | None) -> str | None:
        # values are spliced verbatim into style="..."
        if value is not None and _FORBIDDEN_STYLE_CHARS.intersection(value):
            raise ValueError("style values must not contain quotes or angle brackets")
        return value

    def declarations(self) -> list[str]:
        """Return ``prop: value`` pairs for the properties that are set."""

        declarations: list[str] = []
        for prop in STYLE_PROPERTIES:
            value = getattr(self, prop)
            if value:
                declarations.append(f"{prop}: {value}")
        return declarations

    def merged(self, other: StyleEdit) -> StyleEdit:
        """Overlay the properties set on ``other`` onto this edit."""

        update = {prop: getattr(other, prop) for prop in STYLE_PROPERTIES if getattr(other, prop)}
        return self.model_copy(update=update)


def _frozen_styles(styles: Mapping[int, StyleEdit]) -> Mapping[int, StyleEdit]:
    return MappingProxyType(dict(styles))


@dataclass(frozen=True)
class EditSet:
    """Immutable snapshot of pending edits.

    Every change returns a new instance; a snapshot that has been handed out
    is never modified.
    """

    removals: frozenset[int] = frozenset()
    styles: Mapping[int, StyleEdit] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        object.__setattr__(self, "removals", frozenset(self.removals))
        object.__setattr__(self, "styles", _frozen_styles(self.styles))

    @property
    def is_empty(self) -> bool:
        return not self.removals and not self.styles

    def with_removal(self, element_id: int) -> EditSet:
        return EditSet(removals=self.removals | {element_id}, styles=self.styles)

    def without_removal(self, element_id: int) -> EditSet:
        return EditSet(removals=self.removals - {element_id}, styles=self.styles)

    def with_style(self, element_id: int, style: StyleEdit) -> EditSet:
        styles = dict(self.styles)
        existing = styles.get(element_id)
        styles[element_id] = existing.merged(style) if existing is not None else style
        return EditSet(removals=self.removals, styles=styles)

    def without_style(self, element_id: int) -> EditSet:
        styles = {key: value for key, value in self.styles.items() if key != element_id}
        return EditSet(removals=self.removals, styles=styles)

    def to_spec(self) -> EditSetSpec:
        return EditSetSpec(removals=sorted(self.removals), styles=dict(self.styles))


class EditSetSpec(BaseModel):
    """JSON form of an edit set, as read from files and request bodies."""

    model_config = ConfigDict(extra="forbid")

    removals: list[int] = Field(default_factory=list)
    styles: dict[int, StyleEdit] = Field(default_factory=dict)

    def to_edit_set(self) -> EditSet:
        return EditSet(removals=frozenset(self.removals), styles=self.styles)


def create_edits() -> EditSet:
    """Return an empty edit set."""

    return EditSet()


def load_edit_set(raw: object) -> EditSet:
    """Validate a decoded JSON payload into an :class:`EditSet`."""

    if raw is None:
        return create_edits()
    if not isinstance(raw, dict):
        raise EditSpecError("Edit set JSON must be an object", payload=raw)
    try:
        return EditSetSpec.model_validate(raw).to_edit_set()
    except ValidationError as exc:
        raise EditSpecError(f"Invalid edit set: {exc.error_count()} error(s)", payload=raw) from exc
