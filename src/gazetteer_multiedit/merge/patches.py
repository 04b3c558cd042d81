"""Per-change-kind patch functions that turn a fetched aggregate into the one to save.

The table in :data:`_PATCHES` maps each change ``kind`` to a function that runs
the merge policies and LPI rewrites that kind needs. :func:`apply_change` looks
up the patch, runs it and appends the batch note, if one was requested.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from gazetteer_multiedit.exceptions import UnknownChangeKindError
from gazetteer_multiedit.merge.allocation import allocate_child_key, allocate_note_sequence
from gazetteer_multiedit.merge.lpi import duplicate_language_violation, patch_lpis
from gazetteer_multiedit.merge.policy import (
    CLASSIFICATIONS,
    ORGANISATIONS,
    SUCCESSOR_CROSS_REFS,
    Violation,
    close_open_rows,
    merge_cross_refs,
    merge_dated_collection,
    remove_cross_refs,
)
from gazetteer_multiedit.models import (
    AddressFieldsChange,
    AuthorityVariant,
    ChangeSpec,
    ChangeType,
    ClassificationChange,
    ClassificationRecord,
    CrossRefRecord,
    CrossReferenceChange,
    LogicalStatusChange,
    LogicalStatusVariant,
    LookupTables,
    NoteRecord,
    OrganisationChange,
    OrganisationRecord,
    Property,
    RemoveCrossReferenceChange,
    SingleField,
    SingleFieldChange,
    SuccessorCrossRefChange,
    SuccessorCrossRefRecord,
)


@dataclass(frozen=True)
class PatchContext:
    """Batch-wide inputs every patch function sees."""

    reference_date: date
    authority: AuthorityVariant = AuthorityVariant.ENGLISH
    lookups: LookupTables = field(default_factory=LookupTables)


@dataclass(frozen=True)
class PatchResult:
    """Either the aggregate to submit or the reason this property cannot be changed."""

    aggregate: Property | None
    violation: Violation | None = None


def _patch_classification(
    prop: Property, change: ClassificationChange, ctx: PatchContext
) -> PatchResult:
    new_row = ClassificationRecord(
        pk_id=allocate_child_key(prop.classifications),
        change_type=ChangeType.INSERT,
        uprn=prop.uprn,
        classification_scheme=change.classification_scheme,
        blpu_class=change.blpu_class,
        start_date=change.start_date,
        end_date=change.end_date,
        never_export=prop.never_export,
    )
    outcome = merge_dated_collection(
        prop.classifications, new_row, change.action, ctx.reference_date, CLASSIFICATIONS
    )
    if not outcome.ok:
        return PatchResult(None, outcome.violation)
    return PatchResult(prop.model_copy(update={"classifications": outcome.records}))


def _patch_organisation(
    prop: Property, change: OrganisationChange, ctx: PatchContext
) -> PatchResult:
    new_row = OrganisationRecord(
        pk_id=allocate_child_key(prop.organisations),
        change_type=ChangeType.INSERT,
        uprn=prop.uprn,
        organisation=change.organisation,
        legal_name=change.legal_name,
        start_date=change.start_date,
        end_date=change.end_date,
        never_export=prop.never_export,
    )
    outcome = merge_dated_collection(
        prop.organisations, new_row, change.action, ctx.reference_date, ORGANISATIONS
    )
    if not outcome.ok:
        return PatchResult(None, outcome.violation)
    return PatchResult(prop.model_copy(update={"organisations": outcome.records}))


def _patch_successor(
    prop: Property, change: SuccessorCrossRefChange, ctx: PatchContext
) -> PatchResult:
    new_row = SuccessorCrossRefRecord(
        pk_id=allocate_child_key(prop.successor_cross_refs),
        change_type=ChangeType.INSERT,
        uprn=prop.uprn,
        successor=change.successor,
        successor_type=change.successor_type,
        start_date=change.start_date,
        end_date=change.end_date,
        never_export=prop.never_export,
    )
    outcome = merge_dated_collection(
        prop.successor_cross_refs, new_row, change.action, ctx.reference_date, SUCCESSOR_CROSS_REFS
    )
    if not outcome.ok:
        return PatchResult(None, outcome.violation)
    return PatchResult(prop.model_copy(update={"successor_cross_refs": outcome.records}))


def _patch_cross_reference(
    prop: Property, change: CrossReferenceChange, ctx: PatchContext
) -> PatchResult:
    new_row = CrossRefRecord(
        pk_id=allocate_child_key(prop.blpu_app_cross_refs),
        change_type=ChangeType.INSERT,
        uprn=prop.uprn,
        source_id=change.source_id,
        cross_reference=change.cross_reference,
        start_date=change.start_date,
        end_date=change.end_date,
        never_export=prop.never_export,
    )
    outcome = merge_cross_refs(prop.blpu_app_cross_refs, new_row, change.action, ctx.reference_date)
    return PatchResult(prop.model_copy(update={"blpu_app_cross_refs": outcome.records}))


def _patch_remove_cross_reference(
    prop: Property, change: RemoveCrossReferenceChange, ctx: PatchContext
) -> PatchResult:
    outcome = remove_cross_refs(
        prop.blpu_app_cross_refs,
        change.scope,
        ctx.reference_date,
        source_id=change.source_id,
        cross_reference=change.cross_reference,
    )
    return PatchResult(prop.model_copy(update={"blpu_app_cross_refs": outcome.records}))


def _lpi_fields(change: AddressFieldsChange | LogicalStatusChange) -> dict[str, Any]:
    return {
        "post_town_ref": change.post_town_ref,
        "sub_locality_ref": change.sub_locality_ref,
        "postcode_ref": change.postcode_ref,
        "postal_address": change.postal_address,
        "official_flag": change.official_flag,
    }


def _patch_address_fields(
    prop: Property, change: AddressFieldsChange, ctx: PatchContext
) -> PatchResult:
    fields = {"usrn": change.usrn, **_lpi_fields(change)}
    lpis = patch_lpis(prop.lpis, fields, authority=ctx.authority, lookups=ctx.lookups)
    return PatchResult(prop.model_copy(update={"lpis": lpis}))


def _patch_logical_status(
    prop: Property, change: LogicalStatusChange, ctx: PatchContext
) -> PatchResult:
    historic = change.variant is LogicalStatusVariant.HISTORIC
    if not historic:
        violation = duplicate_language_violation(prop.lpis)
        if violation is not None:
            return PatchResult(None, violation)

    status = int(change.variant.logical_status)
    lpi_fields: dict[str, Any] = {**_lpi_fields(change), "logical_status": status}
    blpu: dict[str, Any] = {"change_type": ChangeType.UPDATE, "logical_status": status}
    if change.blpu_state is not None:
        blpu["blpu_state"] = change.blpu_state
        blpu["blpu_state_date"] = ctx.reference_date
    if change.rpc is not None:
        blpu["rpc"] = change.rpc

    if historic:
        lpi_fields["end_date"] = ctx.reference_date
        blpu.update(
            end_date=ctx.reference_date,
            blpu_app_cross_refs=close_open_rows(prop.blpu_app_cross_refs, ctx.reference_date),
            blpu_provenances=close_open_rows(prop.blpu_provenances, ctx.reference_date),
            classifications=close_open_rows(prop.classifications, ctx.reference_date),
            organisations=close_open_rows(prop.organisations, ctx.reference_date),
            successor_cross_refs=close_open_rows(prop.successor_cross_refs, ctx.reference_date),
        )

    blpu["lpis"] = patch_lpis(prop.lpis, lpi_fields, authority=ctx.authority, lookups=ctx.lookups)
    return PatchResult(prop.model_copy(update=blpu))


def _patch_single_field(
    prop: Property, change: SingleFieldChange, ctx: PatchContext
) -> PatchResult:
    update: dict[str, Any] = {"change_type": ChangeType.UPDATE}
    match change.field:
        case SingleField.CLASSIFICATION:
            update["blpu_class"] = change.value
        case SingleField.RPC:
            update["rpc"] = change.rpc_value() if change.value is not None else None
        case SingleField.LEVEL:
            level = change.level_value(ctx.authority) if change.value is not None else None
            update["lpis"] = tuple(
                lpi.model_copy(update={"level": level, "change_type": ChangeType.UPDATE})
                for lpi in prop.lpis
            )
        case SingleField.EXCLUDE_FROM_EXPORT:
            update["never_export"] = bool(change.value)
        case SingleField.SITE_VISIT_REQUIRED:
            update["site_survey"] = bool(change.value)
        case SingleField.NOTE:
            pass
    return PatchResult(prop.model_copy(update=update))


_PATCHES: dict[str, Callable[[Property, Any, PatchContext], PatchResult]] = {
    "classification": _patch_classification,
    "organisation": _patch_organisation,
    "successor_cross_reference": _patch_successor,
    "cross_reference": _patch_cross_reference,
    "remove_cross_reference": _patch_remove_cross_reference,
    "address_fields": _patch_address_fields,
    "logical_status": _patch_logical_status,
    "single_field": _patch_single_field,
}


def append_note(prop: Property, text: str) -> Property:
    """Append a new note row with the next provisional key and sequence number."""
    note = NoteRecord(
        pk_id=allocate_child_key(prop.blpu_notes),
        change_type=ChangeType.INSERT,
        uprn=prop.uprn,
        seq_num=allocate_note_sequence(prop.blpu_notes),
        note=text,
    )
    return prop.model_copy(update={"blpu_notes": (*prop.blpu_notes, note)})


def apply_change(prop: Property, change: ChangeSpec, ctx: PatchContext) -> PatchResult:
    """Build the aggregate to save for ``prop``, or the violation that prevents it.

    Raises:
        UnknownChangeKindError: If ``change.kind`` has no registered patch.
    """
    patch = _PATCHES.get(change.kind)
    if patch is None:
        raise UnknownChangeKindError(change.kind)

    result = patch(prop, change, ctx)
    if result.aggregate is None or not change.note:
        return result
    return PatchResult(append_note(result.aggregate, change.note))
