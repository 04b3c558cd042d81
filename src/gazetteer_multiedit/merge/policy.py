"""Merge policies that rewrite a property's child collections for one action.

Every policy is a pure function over the snapshot it is given: it returns a new
tuple of rows and never mutates its input. When the existing rows make the
requested action ambiguous (several open rows for a single-row action) the
policy returns the collection unchanged together with a :class:`Violation`.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Final, Generic, TypeVar

from gazetteer_multiedit.models import (
    ChangeType,
    ClassificationAction,
    CrossRefAction,
    CrossRefRecord,
    DatedRecord,
    ErrorCategory,
    PropertyErrors,
    RemoveScope,
)

R = TypeVar("R", bound=DatedRecord)


@dataclass(frozen=True)
class Violation:
    """A property whose current state makes the requested change ambiguous."""

    message: str
    errors: PropertyErrors

    @classmethod
    def for_field(cls, category: ErrorCategory, field: str, message: str) -> "Violation":
        return cls(message=message, errors=PropertyErrors.single(category, field, message))


@dataclass(frozen=True)
class MergeOutcome(Generic[R]):
    records: tuple[R, ...]
    violation: Violation | None = None

    @property
    def ok(self) -> bool:
        return self.violation is None


@dataclass(frozen=True)
class DatedFamily:
    """Describes a classification-like collection for :func:`merge_dated_collection`.

    Attributes:
        noun: Singular name used in violation messages.
        category: Error category violations are reported under.
        field: Field violations are reported against.
        payload_fields: Fields an ``update`` copies from the new row onto the existing one.
    """

    noun: str
    category: ErrorCategory
    field: str
    payload_fields: tuple[str, ...]


CLASSIFICATIONS: Final = DatedFamily(
    noun="classification",
    category=ErrorCategory.CLASSIFICATION,
    field="BlpuClass",
    payload_fields=("blpu_class", "start_date", "end_date"),
)
ORGANISATIONS: Final = DatedFamily(
    noun="organisation",
    category=ErrorCategory.ORGANISATION,
    field="Organisation",
    payload_fields=("organisation", "legal_name", "start_date", "end_date"),
)
SUCCESSOR_CROSS_REFS: Final = DatedFamily(
    noun="successor cross reference",
    category=ErrorCategory.SUCCESSOR_CROSS_REF,
    field="Successor",
    payload_fields=("successor", "successor_type", "start_date", "end_date"),
)

_SINGLE_ROW_ACTIONS: Final[dict[ClassificationAction, str]] = {
    ClassificationAction.DELETE: "Delete",
    ClassificationAction.HISTORICISE: "Historicise",
    ClassificationAction.UPDATE: "Update",
}


def _replace_row(rows: Sequence[R], target: R, replacement: R) -> tuple[R, ...]:
    return tuple(replacement if row is target else row for row in rows)


def merge_dated_collection(
    rows: Iterable[R],
    new_row: R,
    action: ClassificationAction | None,
    reference_date: date,
    family: DatedFamily,
) -> MergeOutcome[R]:
    """Add ``new_row`` to a classification-family collection according to ``action``.

    Args:
        rows: Current rows of the collection.
        new_row: Row to insert, already carrying a provisional key and ``I``.
        action: How to treat the existing open row. None means the user made no
            choice, which is only acceptable when nothing is open.
        reference_date: End date stamped on rows this action closes.
        family: Which collection is being merged.

    Returns:
        The merged rows, or the unchanged rows plus a violation.
    """
    current = tuple(rows)
    open_rows = [row for row in current if row.is_open]
    appended = MergeOutcome((*current, new_row))

    if action in (ClassificationAction.ADD, ClassificationAction.KEEP):
        return appended

    if action is None:
        if open_rows:
            return MergeOutcome(
                current,
                Violation.for_field(
                    family.category,
                    family.field,
                    f"Select what should be done with the existing {family.noun}.",
                ),
            )
        return appended

    if not current:
        return appended
    if len(current) == 1:
        target = current[0]
    elif len(open_rows) == 1:
        target = open_rows[0]
    elif len(open_rows) > 1:
        label = _SINGLE_ROW_ACTIONS[action]
        return MergeOutcome(
            current,
            Violation.for_field(
                family.category,
                family.field,
                f"{label} can only be used when there is only 1 previous open {family.noun}.",
            ),
        )
    else:
        # Several rows, none open: nothing to close.
        return appended

    if action is ClassificationAction.UPDATE:
        payload = {name: getattr(new_row, name) for name in family.payload_fields}
        rewritten = target.model_copy(update={**payload, "change_type": ChangeType.UPDATE})
        return MergeOutcome(_replace_row(current, target, rewritten))

    change_type = ChangeType.DELETE if action is ClassificationAction.DELETE else ChangeType.UPDATE
    closed = target.closed(reference_date, change_type)
    return MergeOutcome((*_replace_row(current, target, closed), new_row))


def merge_cross_refs(
    rows: Iterable[CrossRefRecord],
    new_row: CrossRefRecord,
    action: CrossRefAction,
    reference_date: date,
) -> MergeOutcome[CrossRefRecord]:
    """Add ``new_row`` to the BLPU cross references, keyed by its source."""
    current = tuple(rows)
    source_id = new_row.source_id

    if action is CrossRefAction.REPLACE:
        replaced = tuple(
            row.closed(reference_date, ChangeType.UPDATE)
            if row.source_id == source_id and row.is_open
            else row
            for row in current
        )
        return MergeOutcome((*replaced, new_row))

    if action is CrossRefAction.LEAVE and any(row.source_id == source_id for row in current):
        return MergeOutcome(current)

    return MergeOutcome((*current, new_row))


def remove_cross_refs(
    rows: Iterable[CrossRefRecord],
    scope: RemoveScope,
    reference_date: date,
    *,
    source_id: int | None = None,
    cross_reference: str | None = None,
) -> MergeOutcome[CrossRefRecord]:
    """Mark matching cross references deleted as of ``reference_date``."""

    def matches(row: CrossRefRecord) -> bool:
        if scope is RemoveScope.ALL:
            return True
        if scope is RemoveScope.SOURCE:
            return row.source_id == source_id
        return row.source_id == source_id and row.cross_reference == cross_reference

    return MergeOutcome(
        tuple(
            row.closed(reference_date, ChangeType.DELETE) if matches(row) else row
            for row in rows
        )
    )


def close_open_rows(rows: Iterable[R], reference_date: date) -> tuple[R, ...]:
    """End every open row on ``reference_date`` (``U``); closed rows pass through."""
    # Rows already ended keep their own end date and change type. Restamping them
    # would rewrite history and send unchanged rows back to the server.
    return tuple(
        row.closed(reference_date, ChangeType.UPDATE) if row.is_open else row for row in rows
    )
