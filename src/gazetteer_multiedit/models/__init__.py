"""Pydantic models for gazetteer aggregates, proposed changes and errors."""

from gazetteer_multiedit.models.changes import (
    DEFAULT_CLASSIFICATION_SCHEME,
    MAX_LEVEL_TEXT_LENGTH,
    MAX_SCOTTISH_LEVEL,
    AddressFieldsChange,
    ChangeSpec,
    ClassificationAction,
    ClassificationChange,
    CrossRefAction,
    CrossReferenceChange,
    LogicalStatusChange,
    LogicalStatusVariant,
    OrganisationChange,
    RemoveCrossReferenceChange,
    RemoveScope,
    SingleField,
    SingleFieldChange,
    SuccessorCrossRefChange,
    parse_change,
)
from gazetteer_multiedit.models.core import (
    AuthorityVariant,
    ChangeType,
    ChildRecord,
    ClassificationRecord,
    CrossRefRecord,
    DatedRecord,
    Language,
    LogicalStatus,
    LpiRecord,
    NoteRecord,
    OrganisationRecord,
    Property,
    ProvenanceRecord,
    SuccessorCrossRefRecord,
)
from gazetteer_multiedit.models.errors import ErrorCategory, FieldError, PropertyErrors
from gazetteer_multiedit.models.lookups import LinkedLookup, LookupKind, LookupTables

__all__ = [
    "DEFAULT_CLASSIFICATION_SCHEME",
    "MAX_LEVEL_TEXT_LENGTH",
    "MAX_SCOTTISH_LEVEL",
    "AddressFieldsChange",
    "AuthorityVariant",
    "ChangeSpec",
    "ChangeType",
    "ChildRecord",
    "ClassificationAction",
    "ClassificationChange",
    "ClassificationRecord",
    "CrossRefAction",
    "CrossRefRecord",
    "CrossReferenceChange",
    "DatedRecord",
    "ErrorCategory",
    "FieldError",
    "Language",
    "LinkedLookup",
    "LogicalStatus",
    "LogicalStatusChange",
    "LogicalStatusVariant",
    "LookupKind",
    "LookupTables",
    "LpiRecord",
    "NoteRecord",
    "OrganisationChange",
    "OrganisationRecord",
    "Property",
    "PropertyErrors",
    "ProvenanceRecord",
    "RemoveCrossReferenceChange",
    "RemoveScope",
    "SingleField",
    "SingleFieldChange",
    "SuccessorCrossRefChange",
    "SuccessorCrossRefRecord",
    "parse_change",
]
