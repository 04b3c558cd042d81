"""Field-level error models shared by validation, merging and persistence."""

from collections.abc import Iterator
from enum import StrEnum
from typing import Final

from pydantic import BaseModel, ConfigDict


class ErrorCategory(StrEnum):
    """Aggregate sections that server-side and local errors are attributed to.

    Declaration order is the order categories are reported in.
    """

    BLPU = "blpu"
    LPI = "lpi"
    PROVENANCE = "provenance"
    CROSS_REF = "cross_ref"
    CLASSIFICATION = "classification"
    ORGANISATION = "organisation"
    SUCCESSOR_CROSS_REF = "successor_cross_ref"
    NOTE = "note"

    @property
    def label(self) -> str:
        """Human-readable category name used in error text."""
        return _CATEGORY_LABELS[self]


_CATEGORY_LABELS: Final[dict[ErrorCategory, str]] = {
    ErrorCategory.BLPU: "BLPU",
    ErrorCategory.LPI: "LPI",
    ErrorCategory.PROVENANCE: "Provenance",
    ErrorCategory.CROSS_REF: "Cross reference",
    ErrorCategory.CLASSIFICATION: "Classification",
    ErrorCategory.ORGANISATION: "Organisation",
    ErrorCategory.SUCCESSOR_CROSS_REF: "Successor cross reference",
    ErrorCategory.NOTE: "Note",
}


class FieldError(BaseModel):
    """Errors for one field, optionally for one row of a collection."""

    model_config = ConfigDict(frozen=True)

    field: str
    errors: tuple[str, ...]
    index: int | None = None


class PropertyErrors(BaseModel):
    """Categorised errors for a single property."""

    model_config = ConfigDict(frozen=True)

    blpu: tuple[FieldError, ...] = ()
    lpi: tuple[FieldError, ...] = ()
    provenance: tuple[FieldError, ...] = ()
    cross_ref: tuple[FieldError, ...] = ()
    classification: tuple[FieldError, ...] = ()
    organisation: tuple[FieldError, ...] = ()
    successor_cross_ref: tuple[FieldError, ...] = ()
    note: tuple[FieldError, ...] = ()

    @classmethod
    def single(cls, category: ErrorCategory, field: str, message: str) -> "PropertyErrors":
        """Errors object holding one message against one field."""
        return cls.model_validate(
            {category.value: (FieldError(field=field, errors=(message,)),)}
        )

    def by_category(self) -> Iterator[tuple[ErrorCategory, tuple[FieldError, ...]]]:
        """Yield non-empty categories in reporting order."""
        for category in ErrorCategory:
            entries: tuple[FieldError, ...] = getattr(self, category.value)
            if entries:
                yield category, entries

    @property
    def is_empty(self) -> bool:
        return not any(True for _ in self.by_category())

    def messages(self) -> list[str]:
        """Flat list of every error message, in reporting order."""
        return [
            message
            for _, entries in self.by_category()
            for entry in entries
            for message in entry.errors
        ]
