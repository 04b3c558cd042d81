"""Tests for LPI patching and the duplicate-approved guard."""

import pytest

from gazetteer_multiedit.merge.lpi import (
    DUPLICATE_APPROVED_MESSAGE,
    duplicate_language_violation,
    patch_lpis,
    supplied,
)
from gazetteer_multiedit.models import (
    AuthorityVariant,
    ChangeType,
    Language,
    LinkedLookup,
    LookupTables,
    LpiRecord,
)


@pytest.fixture
def welsh_lookups() -> LookupTables:
    return LookupTables(
        post_towns=(
            LinkedLookup(ref=10, linked_ref=10, language=Language.ENGLISH, name="Cardiff"),
            LinkedLookup(ref=11, linked_ref=10, language=Language.WELSH, name="Caerdydd"),
        ),
        sub_localities=(
            LinkedLookup(ref=20, linked_ref=20, language=Language.ENGLISH, name="Canton"),
        ),
    )


@pytest.fixture
def bilingual_lpis() -> tuple[LpiRecord, ...]:
    return (
        LpiRecord(pk_id=1, language=Language.ENGLISH, post_town_ref=1, sub_locality_ref=2),
        LpiRecord(pk_id=2, language=Language.WELSH, post_town_ref=3, sub_locality_ref=4),
    )


class TestSupplied:
    def test_drops_blank_values(self) -> None:
        assert supplied({"usrn": None, "postal_address": "", "official_flag": "Y"}) == {
            "official_flag": "Y"
        }

    def test_keeps_falsy_numbers(self) -> None:
        assert supplied({"level": 0}) == {"level": 0}


class TestPatchLpis:
    def test_every_lpi_tagged_update(self, bilingual_lpis: tuple[LpiRecord, ...]) -> None:
        patched = patch_lpis(
            bilingual_lpis, {}, authority=AuthorityVariant.ENGLISH, lookups=LookupTables()
        )
        assert all(lpi.change_type is ChangeType.UPDATE for lpi in patched)
        assert [lpi.post_town_ref for lpi in patched] == [1, 3]

    def test_english_authority_copies_values_to_all(
        self, bilingual_lpis: tuple[LpiRecord, ...]
    ) -> None:
        patched = patch_lpis(
            bilingual_lpis,
            {"usrn": 7001, "post_town_ref": 10},
            authority=AuthorityVariant.ENGLISH,
            lookups=LookupTables(),
        )
        assert [lpi.usrn for lpi in patched] == [7001, 7001]
        assert [lpi.post_town_ref for lpi in patched] == [10, 10]

    def test_welsh_authority_resolves_linked_post_town(
        self, bilingual_lpis: tuple[LpiRecord, ...], welsh_lookups: LookupTables
    ) -> None:
        patched = patch_lpis(
            bilingual_lpis,
            {"post_town_ref": 10, "usrn": 7001},
            authority=AuthorityVariant.WELSH,
            lookups=welsh_lookups,
        )
        english, welsh = patched
        assert english.post_town_ref == 10
        assert welsh.post_town_ref == 11
        assert welsh.usrn == 7001

    def test_unresolved_link_keeps_existing_value(
        self, bilingual_lpis: tuple[LpiRecord, ...], welsh_lookups: LookupTables
    ) -> None:
        patched = patch_lpis(
            bilingual_lpis,
            {"sub_locality_ref": 20},
            authority=AuthorityVariant.WELSH,
            lookups=welsh_lookups,
        )
        english, welsh = patched
        assert english.sub_locality_ref == 20
        assert welsh.sub_locality_ref == 4
        assert welsh.change_type is ChangeType.UPDATE

    def test_input_not_mutated(self, bilingual_lpis: tuple[LpiRecord, ...]) -> None:
        patch_lpis(
            bilingual_lpis,
            {"usrn": 1},
            authority=AuthorityVariant.ENGLISH,
            lookups=LookupTables(),
        )
        assert bilingual_lpis[0].usrn is None
        assert bilingual_lpis[0].change_type is None


class TestDuplicateLanguageViolation:
    def test_one_lpi_per_language_passes(self, bilingual_lpis: tuple[LpiRecord, ...]) -> None:
        assert duplicate_language_violation(bilingual_lpis) is None

    def test_two_english_lpis_refused(self) -> None:
        lpis = (
            LpiRecord(pk_id=1, language=Language.ENGLISH),
            LpiRecord(pk_id=2, language=Language.ENGLISH),
            LpiRecord(pk_id=3, language=Language.WELSH),
        )
        violation = duplicate_language_violation(lpis)

        assert violation is not None
        assert violation.message == DUPLICATE_APPROVED_MESSAGE
        assert [entry.index for entry in violation.errors.lpi] == [0, 1]
        assert all(entry.field == "UPRN" for entry in violation.errors.lpi)
