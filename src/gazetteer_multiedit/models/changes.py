"""Proposed changes applied to every property in a multi-edit batch.

Each change kind corresponds to one multi-edit action. The ``kind`` field is the
discriminator, so a change can be loaded straight from JSON with
:func:`parse_change`.
"""

from datetime import date
from enum import StrEnum
from typing import Annotated, Any, Final, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from gazetteer_multiedit.models.core import AuthorityVariant, LogicalStatus

DEFAULT_CLASSIFICATION_SCHEME: Final = "AddressBase Premium Classification"

# Scottish levels are numeric; elsewhere level is a short free-text description.
MAX_SCOTTISH_LEVEL: Final = 99.9
MAX_LEVEL_TEXT_LENGTH: Final = 30

_RPC_VALUE: Final[TypeAdapter[int]] = TypeAdapter(int)
_NUMERIC_LEVEL_VALUE: Final[TypeAdapter[float]] = TypeAdapter(float)


class ClassificationAction(StrEnum):
    """What to do with existing open rows when adding a classification-family row."""

    ADD = "add"
    KEEP = "keep"
    DELETE = "delete"
    HISTORICISE = "historicise"
    UPDATE = "update"


class CrossRefAction(StrEnum):
    """What to do with existing cross references from the same source."""

    ADD = "add"
    REPLACE = "replace"
    LEAVE = "leave"


class RemoveScope(StrEnum):
    """Which cross references a removal targets."""

    SOURCE = "source"
    CROSS_REFERENCE = "cross_reference"
    ALL = "all"


class LogicalStatusVariant(StrEnum):
    APPROVED = "approved"
    HISTORIC = "historic"

    @property
    def logical_status(self) -> LogicalStatus:
        if self is LogicalStatusVariant.HISTORIC:
            return LogicalStatus.HISTORIC
        return LogicalStatus.APPROVED


class SingleField(StrEnum):
    CLASSIFICATION = "classification"
    RPC = "rpc"
    LEVEL = "level"
    EXCLUDE_FROM_EXPORT = "exclude_from_export"
    SITE_VISIT_REQUIRED = "site_visit_required"
    NOTE = "note"


class _Change(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Text of a note to append to every property; None means no note.
    note: str | None = None


class ClassificationChange(_Change):
    kind: Literal["classification"] = "classification"
    action: ClassificationAction | None = None
    blpu_class: str | None = None
    classification_scheme: str | None = DEFAULT_CLASSIFICATION_SCHEME
    start_date: date | None = None
    end_date: date | None = None


class OrganisationChange(_Change):
    kind: Literal["organisation"] = "organisation"
    action: ClassificationAction | None = None
    organisation: str | None = None
    legal_name: str | None = None
    start_date: date | None = None
    end_date: date | None = None


class SuccessorCrossRefChange(_Change):
    kind: Literal["successor_cross_reference"] = "successor_cross_reference"
    action: ClassificationAction | None = None
    successor: int | None = None
    successor_type: int | None = None
    start_date: date | None = None
    end_date: date | None = None


class CrossReferenceChange(_Change):
    kind: Literal["cross_reference"] = "cross_reference"
    action: CrossRefAction = CrossRefAction.ADD
    source_id: int | None = None
    cross_reference: str | None = None
    start_date: date | None = None
    end_date: date | None = None


class RemoveCrossReferenceChange(_Change):
    kind: Literal["remove_cross_reference"] = "remove_cross_reference"
    scope: RemoveScope = RemoveScope.SOURCE
    source_id: int | None = None
    cross_reference: str | None = None


class _LpiFields(_Change):
    """LPI fields shared by the address and logical status edits. None means unchanged."""

    post_town_ref: int | None = None
    sub_locality_ref: int | None = None
    postcode_ref: int | None = None
    postal_address: str | None = None
    official_flag: str | None = None


class AddressFieldsChange(_LpiFields):
    kind: Literal["address_fields"] = "address_fields"
    usrn: int | None = None


class LogicalStatusChange(_LpiFields):
    kind: Literal["logical_status"] = "logical_status"
    variant: LogicalStatusVariant = LogicalStatusVariant.APPROVED
    blpu_state: int | None = None
    rpc: int | None = None


class SingleFieldChange(_Change):
    kind: Literal["single_field"] = "single_field"
    field: SingleField
    value: str | int | float | bool | None = None

    def rpc_value(self) -> int:
        """Return the value as a representative point code.

        Raises:
            pydantic.ValidationError: If the value is not a whole number.
        """
        return _RPC_VALUE.validate_python(self.value)

    def level_value(self, authority: AuthorityVariant) -> float | str:
        """Return the value as an LPI level for ``authority``.

        Raises:
            pydantic.ValidationError: If a Scottish level is not a number.
        """
        if authority.has_classifications:
            return _NUMERIC_LEVEL_VALUE.validate_python(self.value)
        return str(self.value)


ChangeSpec = Annotated[
    ClassificationChange
    | OrganisationChange
    | SuccessorCrossRefChange
    | CrossReferenceChange
    | RemoveCrossReferenceChange
    | AddressFieldsChange
    | LogicalStatusChange
    | SingleFieldChange,
    Field(discriminator="kind"),
]

_CHANGE_ADAPTER: TypeAdapter[ChangeSpec] = TypeAdapter(ChangeSpec)


def parse_change(data: dict[str, Any] | str | bytes) -> ChangeSpec:
    """Build a change from a dict or a JSON document, dispatching on ``kind``."""
    if isinstance(data, dict):
        return _CHANGE_ADAPTER.validate_python(data)
    return _CHANGE_ADAPTER.validate_json(data)
