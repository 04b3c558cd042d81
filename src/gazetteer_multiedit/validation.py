"""Batch-wide validation of a proposed change, run once before any property is fetched."""

from collections.abc import Awaitable, Callable
from datetime import date
from typing import Final

from pydantic import ValidationError

from gazetteer_multiedit.models import (
    MAX_LEVEL_TEXT_LENGTH,
    MAX_SCOTTISH_LEVEL,
    AddressFieldsChange,
    AuthorityVariant,
    ChangeSpec,
    ClassificationChange,
    CrossReferenceChange,
    FieldError,
    Language,
    LogicalStatusChange,
    LookupKind,
    LookupTables,
    OrganisationChange,
    RemoveCrossReferenceChange,
    RemoveScope,
    SingleField,
    SingleFieldChange,
    SuccessorCrossRefChange,
)

# A validator may be synchronous or a coroutine function.
Validator = Callable[
    [ChangeSpec, LookupTables, AuthorityVariant],
    list[FieldError] | Awaitable[list[FieldError]],
]

_MAX_CROSS_REFERENCE_LENGTH: Final = 50
_MAX_SCHEME_LENGTH: Final = 40
_MAX_ORGANISATION_LENGTH: Final = 60

_BOOLEAN_FIELDS: Final = frozenset(
    {SingleField.EXCLUDE_FROM_EXPORT, SingleField.SITE_VISIT_REQUIRED}
)


class _Collector:
    """Accumulates messages per field, preserving first-seen field order."""

    def __init__(self) -> None:
        self._errors: dict[str, list[str]] = {}

    def add(self, field: str, message: str) -> None:
        messages = self._errors.setdefault(field, [])
        if message not in messages:
            messages.append(message)

    def result(self) -> list[FieldError]:
        return [
            FieldError(field=field, errors=tuple(messages))
            for field, messages in self._errors.items()
        ]


def _blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check_dates(
    errors: _Collector,
    start_date: date | None,
    end_date: date | None,
    today: date,
    *,
    start_required: bool = True,
) -> None:
    if start_date is None:
        if start_required:
            errors.add("StartDate", "Enter a start date.")
    elif start_date > today:
        errors.add("StartDate", "Start date cannot be in the future.")

    if end_date is not None:
        if end_date > today:
            errors.add("EndDate", "End date cannot be in the future.")
        if start_date is not None and end_date < start_date:
            errors.add("EndDate", "End date cannot be before the start date.")


def _check_classification(errors: _Collector, change: ClassificationChange, today: date) -> None:
    if _blank(change.blpu_class):
        errors.add("BlpuClass", "Enter a classification code.")
    if _blank(change.classification_scheme):
        errors.add("ClassificationScheme", "Enter a scheme.")
    elif len(change.classification_scheme or "") > _MAX_SCHEME_LENGTH:
        errors.add("ClassificationScheme", "Scheme is too long.")
    _check_dates(errors, change.start_date, change.end_date, today)


def _check_organisation(errors: _Collector, change: OrganisationChange, today: date) -> None:
    if _blank(change.organisation):
        errors.add("Organisation", "Enter an organisation.")
    elif len(change.organisation or "") > _MAX_ORGANISATION_LENGTH:
        errors.add("Organisation", "Organisation is too long.")
    elif (change.organisation or "").startswith(" "):
        errors.add("Organisation", "Organisation cannot start with a space.")
    if change.legal_name and len(change.legal_name) > _MAX_ORGANISATION_LENGTH:
        errors.add("LegalName", "Legal name is too long.")
    _check_dates(errors, change.start_date, change.end_date, today, start_required=False)


def _check_successor(errors: _Collector, change: SuccessorCrossRefChange, today: date) -> None:
    if not change.successor:
        errors.add("Successor", "Enter a successor.")
    if change.successor_type is None:
        errors.add("SuccessorType", "Enter a type.")
    _check_dates(errors, change.start_date, change.end_date, today, start_required=False)


def _check_cross_reference(errors: _Collector, change: CrossReferenceChange, today: date) -> None:
    if not change.source_id:
        errors.add("SourceId", "Source is missing, historic or disabled.")
    if _blank(change.cross_reference):
        errors.add("CrossReference", "Enter a cross reference.")
    elif len(change.cross_reference or "") > _MAX_CROSS_REFERENCE_LENGTH:
        errors.add("CrossReference", "Cross reference is too long.")
    _check_dates(errors, change.start_date, change.end_date, today)


def _check_remove_cross_reference(errors: _Collector, change: RemoveCrossReferenceChange) -> None:
    if change.scope is RemoveScope.ALL:
        return
    if not change.source_id:
        errors.add("SourceId", "Select a source.")
    if change.scope is RemoveScope.CROSS_REFERENCE and _blank(change.cross_reference):
        errors.add("CrossReference", "Enter a cross reference.")


def _check_lookup_refs(
    errors: _Collector, change: AddressFieldsChange | LogicalStatusChange, lookups: LookupTables
) -> None:
    """Linked references must name an English entry when the lookup table is loaded."""
    for field, kind, ref in (
        ("PostTownRef", LookupKind.POST_TOWN, change.post_town_ref),
        ("SubLocalityRef", LookupKind.SUB_LOCALITY, change.sub_locality_ref),
    ):
        entries = lookups.entries(kind)
        if ref is None or not entries:
            continue
        if not any(e.ref == ref and e.language is Language.ENGLISH for e in entries):
            label = "Post town" if kind is LookupKind.POST_TOWN else "Sub-locality"
            errors.add(field, f"{label} does not exist in the lookup table.")


def _check_level(
    errors: _Collector, change: SingleFieldChange, authority: AuthorityVariant
) -> None:
    try:
        level = change.level_value(authority)
    except ValidationError:
        errors.add("Value", "Value must be a number.")
        return
    if isinstance(level, float):
        if level > MAX_SCOTTISH_LEVEL:
            errors.add("Value", f"Level cannot be greater than {MAX_SCOTTISH_LEVEL}.")
    elif len(level) > MAX_LEVEL_TEXT_LENGTH:
        errors.add("Value", "Level is too long.")


def _check_single_field(
    errors: _Collector, change: SingleFieldChange, authority: AuthorityVariant
) -> None:
    if change.field is SingleField.NOTE:
        if _blank(change.note):
            errors.add("Note", "Enter a note.")
        return
    if change.field in _BOOLEAN_FIELDS:
        return
    if _blank(change.value):
        errors.add("Value", "Enter a value.")
        return
    if change.field is SingleField.RPC:
        try:
            change.rpc_value()
        except ValidationError:
            errors.add("Value", "Value must be a whole number.")
    elif change.field is SingleField.LEVEL:
        _check_level(errors, change, authority)


def validate_change(
    change: ChangeSpec,
    lookups: LookupTables,
    authority: AuthorityVariant,
    *,
    today: date | None = None,
) -> list[FieldError]:
    """Return field errors that make ``change`` unusable for every property.

    An empty list means the batch may start.

    Args:
        change: The proposed change.
        lookups: Reference lookups, used to check linked address references.
        authority: Authority flavour. Linked references are only checked for
            bilingual authorities.
        today: Date that start and end dates are compared with (default: today).
    """
    today = today or date.today()
    errors = _Collector()

    match change:
        case ClassificationChange():
            _check_classification(errors, change, today)
        case OrganisationChange():
            _check_organisation(errors, change, today)
        case SuccessorCrossRefChange():
            _check_successor(errors, change, today)
        case CrossReferenceChange():
            _check_cross_reference(errors, change, today)
        case RemoveCrossReferenceChange():
            _check_remove_cross_reference(errors, change)
        case AddressFieldsChange() | LogicalStatusChange():
            if authority.alternate_language is not None:
                _check_lookup_refs(errors, change, lookups)
        case SingleFieldChange():
            _check_single_field(errors, change, authority)

    if change.note is not None and _blank(change.note):
        errors.add("Note", "Enter a note.")

    return errors.result()
