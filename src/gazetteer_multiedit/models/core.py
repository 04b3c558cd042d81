"""Core gazetteer aggregate and child record models."""

from datetime import date
from enum import IntEnum, StrEnum
from typing import Final, Self

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from gazetteer_multiedit.utils.address import address_to_title_case


class ChangeType(StrEnum):
    """Per-row tag telling the persistence service what to do with the row."""

    INSERT = "I"
    UPDATE = "U"
    DELETE = "D"


class Language(StrEnum):
    """LPI language variants."""

    ENGLISH = "ENG"
    WELSH = "CYM"
    GAELIC = "GAE"


class AuthorityVariant(StrEnum):
    """Authority flavours that change which collections and languages exist."""

    ENGLISH = "english"
    SCOTTISH = "scottish"
    WELSH = "welsh"

    @property
    def alternate_language(self) -> Language | None:
        """Second LPI language maintained by bilingual authorities."""
        return _ALTERNATE_LANGUAGE.get(self)

    @property
    def has_classifications(self) -> bool:
        """Only Scottish authorities hold classification/organisation/successor collections."""
        return self is AuthorityVariant.SCOTTISH


_ALTERNATE_LANGUAGE: Final[dict[AuthorityVariant, Language]] = {
    AuthorityVariant.SCOTTISH: Language.GAELIC,
    AuthorityVariant.WELSH: Language.WELSH,
}


class LogicalStatus(IntEnum):
    """BLPU/LPI logical status codes used by the multi-edit actions."""

    APPROVED = 1
    ALTERNATIVE = 3
    PROVISIONAL = 6
    HISTORIC = 8


class GazetteerModel(BaseModel):
    """Base for wire models: frozen, camelCase aliases, unknown fields preserved."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="allow",
    )


class ChildRecord(GazetteerModel):
    """Fields shared by every row hanging off a property aggregate."""

    pk_id: int = 0
    change_type: ChangeType | None = None
    uprn: int | None = None


class DatedRecord(ChildRecord):
    """A child row with a validity period. Open while ``end_date`` is None."""

    start_date: date | None = None
    end_date: date | None = None

    @property
    def is_open(self) -> bool:
        return self.end_date is None

    def closed(self, reference_date: date, change_type: ChangeType) -> Self:
        """Return a copy ended on ``reference_date`` and tagged with ``change_type``."""
        return self.model_copy(update={"end_date": reference_date, "change_type": change_type})


class ClassificationRecord(DatedRecord):
    class_key: str | None = None
    classification_scheme: str | None = None
    blpu_class: str | None = None
    never_export: bool | None = None


class CrossRefRecord(DatedRecord):
    xref_key: str | None = None
    source_id: int | None = None
    source: str | None = None
    cross_reference: str | None = None
    never_export: bool | None = None


class OrganisationRecord(DatedRecord):
    org_key: str | None = None
    organisation: str | None = None
    legal_name: str | None = None
    never_export: bool | None = None


class SuccessorCrossRefRecord(DatedRecord):
    succ_key: str | None = None
    successor: int | None = None
    successor_type: int | None = None
    never_export: bool | None = None


class ProvenanceRecord(DatedRecord):
    prov_key: str | None = None
    provenance_code: str | None = None
    annotation: str | None = None


class NoteRecord(ChildRecord):
    seq_num: int | None = None
    note: str | None = None


class LpiRecord(DatedRecord):
    """One descriptive address for a BLPU in a single language."""

    lpi_key: str | None = None
    language: Language = Language.ENGLISH
    usrn: int | None = None
    address: str | None = None
    postcode: str | None = None
    postcode_ref: int | None = None
    post_town_ref: int | None = None
    sub_locality_ref: int | None = None
    official_flag: str | None = None
    postal_address: str | None = None
    logical_status: int | None = None
    level: float | str | None = None


class Property(GazetteerModel):
    """A BLPU and all of its child collections, as fetched from and saved to the API."""

    pk_id: int
    uprn: int
    change_type: ChangeType | None = None
    logical_status: int | None = None
    blpu_state: int | None = None
    blpu_state_date: date | None = None
    rpc: int | None = None
    level: float | str | None = None
    x_coordinate: float | None = Field(default=None, alias="xcoordinate")
    y_coordinate: float | None = Field(default=None, alias="ycoordinate")
    parent_uprn: int | None = None
    custodian_code: int | None = None
    organisation: str | None = None
    ward_code: str | None = None
    parish_code: str | None = None
    blpu_class: str | None = None
    never_export: bool = False
    site_survey: bool = False
    start_date: date | None = None
    end_date: date | None = None

    classifications: tuple[ClassificationRecord, ...] = ()
    blpu_app_cross_refs: tuple[CrossRefRecord, ...] = ()
    blpu_provenances: tuple[ProvenanceRecord, ...] = ()
    blpu_notes: tuple[NoteRecord, ...] = ()
    organisations: tuple[OrganisationRecord, ...] = ()
    successor_cross_refs: tuple[SuccessorCrossRefRecord, ...] = ()
    lpis: tuple[LpiRecord, ...] = ()

    @property
    def english_lpis(self) -> list[LpiRecord]:
        return [lpi for lpi in self.lpis if lpi.language is Language.ENGLISH]

    @property
    def display_address(self) -> str | None:
        """Title-cased English address used when reporting on this property."""
        english = self.english_lpis
        if not english:
            return None
        return address_to_title_case(english[0].address, english[0].postcode)
