"""Tests for per-change-kind patches applied to a fetched property."""

from collections.abc import Callable
from datetime import date

import pytest
from pydantic import ValidationError

from gazetteer_multiedit.exceptions import UnknownChangeKindError
from gazetteer_multiedit.merge import PatchContext, append_note, apply_change
from gazetteer_multiedit.models import (
    AddressFieldsChange,
    AuthorityVariant,
    ChangeType,
    ClassificationAction,
    ClassificationChange,
    ClassificationRecord,
    CrossRefAction,
    CrossRefRecord,
    CrossReferenceChange,
    Language,
    LinkedLookup,
    LogicalStatusChange,
    LogicalStatusVariant,
    LookupTables,
    LpiRecord,
    NoteRecord,
    OrganisationChange,
    OrganisationRecord,
    Property,
    ProvenanceRecord,
    RemoveCrossReferenceChange,
    RemoveScope,
    SingleField,
    SingleFieldChange,
    SuccessorCrossRefChange,
    SuccessorCrossRefRecord,
)

REF = date(2024, 6, 1)

MakeProperty = Callable[..., Property]


@pytest.fixture
def ctx() -> PatchContext:
    return PatchContext(reference_date=REF, authority=AuthorityVariant.SCOTTISH)


class TestAppendNote:
    def test_next_key_and_sequence(self, make_property: MakeProperty) -> None:
        prop = make_property(blpu_notes=(NoteRecord(pk_id=-10, seq_num=3, note="Old"),))
        updated = append_note(prop, "Checked on site")

        note = updated.blpu_notes[-1]
        assert note.pk_id == -11
        assert note.seq_num == 4
        assert note.note == "Checked on site"
        assert note.change_type is ChangeType.INSERT
        assert note.uprn == prop.uprn

    def test_first_note(self, make_property: MakeProperty) -> None:
        updated = append_note(make_property(), "First")
        assert (updated.blpu_notes[0].pk_id, updated.blpu_notes[0].seq_num) == (-10, 1)

    def test_note_appended_by_apply_change(
        self, make_property: MakeProperty, ctx: PatchContext
    ) -> None:
        change = CrossReferenceChange(source_id=3, cross_reference="X1", note="Batch import")
        result = apply_change(make_property(), change, ctx)

        assert result.aggregate is not None
        assert [n.note for n in result.aggregate.blpu_notes] == ["Batch import"]

    def test_no_note_when_patch_refused(
        self, make_property: MakeProperty, ctx: PatchContext
    ) -> None:
        prop = make_property(
            classifications=(
                ClassificationRecord(pk_id=1, blpu_class="RD04"),
                ClassificationRecord(pk_id=2, blpu_class="RD06"),
            )
        )
        change = ClassificationChange(
            action=ClassificationAction.DELETE, blpu_class="CO01", note="Should not appear"
        )
        result = apply_change(prop, change, ctx)

        assert result.aggregate is None
        assert result.violation is not None


class TestClassificationFamily:
    def test_new_classification_row(self, make_property: MakeProperty, ctx: PatchContext) -> None:
        prop = make_property(never_export=True)
        change = ClassificationChange(
            action=ClassificationAction.ADD, blpu_class="CO01", start_date=date(2024, 1, 1)
        )
        result = apply_change(prop, change, ctx)

        assert result.aggregate is not None
        (row,) = result.aggregate.classifications
        assert row.pk_id == -10
        assert row.change_type is ChangeType.INSERT
        assert row.uprn == prop.uprn
        assert row.blpu_class == "CO01"
        assert row.classification_scheme == "AddressBase Premium Classification"
        assert row.never_export is True

    def test_update_preserves_length_and_key(
        self, make_property: MakeProperty, ctx: PatchContext
    ) -> None:
        existing = ClassificationRecord(
            pk_id=44, class_key="CK44", blpu_class="RD04", start_date=date(2010, 1, 1)
        )
        prop = make_property(classifications=(existing,))
        change = ClassificationChange(
            action=ClassificationAction.UPDATE,
            blpu_class="CO01",
            start_date=date(2024, 1, 1),
            end_date=date(2024, 5, 1),
        )
        result = apply_change(prop, change, ctx)

        assert result.aggregate is not None
        (row,) = result.aggregate.classifications
        assert (row.pk_id, row.class_key) == (44, "CK44")
        assert (row.blpu_class, row.start_date, row.end_date) == (
            "CO01",
            date(2024, 1, 1),
            date(2024, 5, 1),
        )
        assert row.change_type is ChangeType.UPDATE

    def test_organisation_historicise(self, make_property: MakeProperty, ctx: PatchContext) -> None:
        prop = make_property(organisations=(OrganisationRecord(pk_id=5, organisation="Old Co"),))
        change = OrganisationChange(
            action=ClassificationAction.HISTORICISE, organisation="New Co", legal_name="New Co Ltd"
        )
        result = apply_change(prop, change, ctx)

        assert result.aggregate is not None
        old, new = result.aggregate.organisations
        assert (old.end_date, old.change_type) == (REF, ChangeType.UPDATE)
        assert (new.pk_id, new.organisation, new.legal_name) == (-10, "New Co", "New Co Ltd")

    def test_successor_without_action_on_open_row_is_refused(
        self, make_property: MakeProperty, ctx: PatchContext
    ) -> None:
        prop = make_property(
            successor_cross_refs=(
                SuccessorCrossRefRecord(pk_id=3, successor=200, successor_type=2),
            )
        )
        change = SuccessorCrossRefChange(successor=300, successor_type=2)
        result = apply_change(prop, change, ctx)

        assert result.aggregate is None
        assert result.violation is not None
        assert result.violation.message == (
            "Select what should be done with the existing successor cross reference."
        )


class TestCrossReferencePatches:
    def test_replace(self, make_property: MakeProperty, ctx: PatchContext) -> None:
        prop = make_property(
            blpu_app_cross_refs=(CrossRefRecord(pk_id=9, source_id=3, cross_reference="OLD"),)
        )
        change = CrossReferenceChange(
            action=CrossRefAction.REPLACE, source_id=3, cross_reference="NEW"
        )
        result = apply_change(prop, change, ctx)

        assert result.aggregate is not None
        old, new = result.aggregate.blpu_app_cross_refs
        assert (old.end_date, old.change_type) == (REF, ChangeType.UPDATE)
        assert (new.pk_id, new.cross_reference, new.change_type) == (
            -10,
            "NEW",
            ChangeType.INSERT,
        )

    def test_remove_by_source(self, make_property: MakeProperty, ctx: PatchContext) -> None:
        prop = make_property(
            blpu_app_cross_refs=(
                CrossRefRecord(pk_id=9, source_id=3, cross_reference="A"),
                CrossRefRecord(pk_id=10, source_id=4, cross_reference="B"),
            )
        )
        change = RemoveCrossReferenceChange(scope=RemoveScope.SOURCE, source_id=4)
        result = apply_change(prop, change, ctx)

        assert result.aggregate is not None
        kept, removed = result.aggregate.blpu_app_cross_refs
        assert kept.change_type is None
        assert (removed.change_type, removed.end_date) == (ChangeType.DELETE, REF)


class TestAddressFieldsPatch:
    def test_welsh_alternate_post_town(self, make_property: MakeProperty) -> None:
        lookups = LookupTables(
            post_towns=(
                LinkedLookup(ref=10, linked_ref=10, language=Language.ENGLISH),
                LinkedLookup(ref=11, linked_ref=10, language=Language.WELSH),
            )
        )
        ctx = PatchContext(reference_date=REF, authority=AuthorityVariant.WELSH, lookups=lookups)
        prop = make_property(
            lpis=(
                LpiRecord(pk_id=1, language=Language.ENGLISH, post_town_ref=1),
                LpiRecord(pk_id=2, language=Language.WELSH, post_town_ref=2),
            )
        )
        result = apply_change(prop, AddressFieldsChange(post_town_ref=10, usrn=555), ctx)

        assert result.aggregate is not None
        assert [lpi.post_town_ref for lpi in result.aggregate.lpis] == [10, 11]
        assert [lpi.usrn for lpi in result.aggregate.lpis] == [555, 555]
        assert result.aggregate.change_type is None


class TestLogicalStatusPatch:
    def test_historic_closes_everything_open(
        self, make_property: MakeProperty, ctx: PatchContext
    ) -> None:
        closed_xref = CrossRefRecord(pk_id=2, source_id=3, end_date=date(2019, 1, 1))
        prop = make_property(
            blpu_app_cross_refs=(CrossRefRecord(pk_id=1, source_id=3), closed_xref),
            blpu_provenances=(ProvenanceRecord(pk_id=4, provenance_code="L"),),
            classifications=(ClassificationRecord(pk_id=5, blpu_class="RD04"),),
        )
        change = LogicalStatusChange(variant=LogicalStatusVariant.HISTORIC, blpu_state=4)
        result = apply_change(prop, change, ctx)

        agg = result.aggregate
        assert agg is not None
        assert (agg.logical_status, agg.end_date, agg.change_type) == (8, REF, ChangeType.UPDATE)
        assert (agg.blpu_state, agg.blpu_state_date) == (4, REF)
        assert all(lpi.logical_status == 8 and lpi.end_date == REF for lpi in agg.lpis)
        assert agg.blpu_app_cross_refs[0].end_date == REF
        assert agg.blpu_app_cross_refs[1] == closed_xref
        assert agg.blpu_provenances[0].change_type is ChangeType.UPDATE
        assert agg.classifications[0].end_date == REF

    def test_approved_sets_status_without_end_date(
        self, make_property: MakeProperty, ctx: PatchContext
    ) -> None:
        prop = make_property(logical_status=6, rpc=1)
        change = LogicalStatusChange(variant=LogicalStatusVariant.APPROVED, rpc=2)
        result = apply_change(prop, change, ctx)

        agg = result.aggregate
        assert agg is not None
        assert (agg.logical_status, agg.rpc, agg.end_date) == (1, 2, None)
        assert agg.blpu_state_date is None
        assert all(lpi.logical_status == 1 for lpi in agg.lpis)

    def test_approved_refused_with_two_english_lpis(
        self, make_property: MakeProperty, ctx: PatchContext
    ) -> None:
        prop = make_property(
            lpis=(
                LpiRecord(pk_id=1, language=Language.ENGLISH),
                LpiRecord(pk_id=2, language=Language.ENGLISH),
            )
        )
        result = apply_change(prop, LogicalStatusChange(), ctx)

        assert result.aggregate is None
        assert result.violation is not None
        assert len(result.violation.errors.lpi) == 2

    def test_historic_allowed_with_two_english_lpis(
        self, make_property: MakeProperty, ctx: PatchContext
    ) -> None:
        prop = make_property(
            lpis=(
                LpiRecord(pk_id=1, language=Language.ENGLISH),
                LpiRecord(pk_id=2, language=Language.ENGLISH),
            )
        )
        change = LogicalStatusChange(variant=LogicalStatusVariant.HISTORIC)
        assert apply_change(prop, change, ctx).aggregate is not None


class TestSingleFieldPatch:
    @pytest.mark.parametrize(
        ("field", "value", "attribute", "expected"),
        [
            (SingleField.CLASSIFICATION, "CO01", "blpu_class", "CO01"),
            (SingleField.RPC, "2", "rpc", 2),
            (SingleField.EXCLUDE_FROM_EXPORT, True, "never_export", True),
            (SingleField.SITE_VISIT_REQUIRED, True, "site_survey", True),
        ],
    )
    def test_blpu_fields(
        self,
        make_property: MakeProperty,
        ctx: PatchContext,
        field: SingleField,
        value: object,
        attribute: str,
        expected: object,
    ) -> None:
        change = SingleFieldChange(field=field, value=value)  # type: ignore[arg-type]
        result = apply_change(make_property(), change, ctx)

        assert result.aggregate is not None
        assert getattr(result.aggregate, attribute) == expected
        assert result.aggregate.change_type is ChangeType.UPDATE

    def test_level_applies_to_lpis(self, make_property: MakeProperty, ctx: PatchContext) -> None:
        change = SingleFieldChange(field=SingleField.LEVEL, value=2.5)
        result = apply_change(make_property(), change, ctx)

        assert result.aggregate is not None
        assert all(lpi.level == 2.5 for lpi in result.aggregate.lpis)
        assert all(lpi.change_type is ChangeType.UPDATE for lpi in result.aggregate.lpis)

    def test_level_is_text_outside_scotland(self, make_property: MakeProperty) -> None:
        english = PatchContext(reference_date=REF, authority=AuthorityVariant.ENGLISH)
        change = SingleFieldChange(field=SingleField.LEVEL, value="Ground floor")
        result = apply_change(make_property(), change, english)

        assert result.aggregate is not None
        assert all(lpi.level == "Ground floor" for lpi in result.aggregate.lpis)

    def test_fractional_rpc_rejected(self, make_property: MakeProperty, ctx: PatchContext) -> None:
        change = SingleFieldChange(field=SingleField.RPC, value=1.5)
        with pytest.raises(ValidationError):
            apply_change(make_property(), change, ctx)

    def test_note_only(self, make_property: MakeProperty, ctx: PatchContext) -> None:
        change = SingleFieldChange(field=SingleField.NOTE, note="Surveyed")
        result = apply_change(make_property(), change, ctx)

        assert result.aggregate is not None
        assert result.aggregate.blpu_notes[0].note == "Surveyed"


class TestApplyChange:
    def test_unknown_kind(self, make_property: MakeProperty, ctx: PatchContext) -> None:
        change = ClassificationChange().model_copy(update={"kind": "demolition"})
        with pytest.raises(UnknownChangeKindError) as exc_info:
            apply_change(make_property(), change, ctx)
        assert exc_info.value.kind == "demolition"

    def test_input_property_unchanged(self, make_property: MakeProperty, ctx: PatchContext) -> None:
        prop = make_property()
        snapshot = prop.model_dump()
        apply_change(prop, CrossReferenceChange(source_id=3, cross_reference="X", note="n"), ctx)
        assert prop.model_dump() == snapshot
