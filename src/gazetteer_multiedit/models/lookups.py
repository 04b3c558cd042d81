"""Reference lookups needed to propagate bilingual address fields."""

import json
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from gazetteer_multiedit.models.core import Language


class LookupKind(StrEnum):
    POST_TOWN = "post_town"
    SUB_LOCALITY = "sub_locality"


class LinkedLookup(BaseModel):
    """A lookup entry in one language, linked to its English counterpart.

    ``linked_ref`` is the English entry's ``ref`` for every language; English
    entries link to themselves.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    ref: int
    linked_ref: int | None = None
    language: Language = Language.ENGLISH
    name: str = ""


class LookupTables(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    post_towns: tuple[LinkedLookup, ...] = Field(default=())
    sub_localities: tuple[LinkedLookup, ...] = Field(default=())

    @classmethod
    def from_file(cls, path: str | Path) -> "LookupTables":
        """Load lookup tables from a JSON document."""
        return cls.model_validate(json.loads(Path(path).read_text(encoding="utf-8")))

    def entries(self, kind: LookupKind) -> tuple[LinkedLookup, ...]:
        if kind is LookupKind.POST_TOWN:
            return self.post_towns
        return self.sub_localities

    def resolve_linked(self, kind: LookupKind, ref: int, language: Language) -> int | None:
        """Return the ``language`` entry linked to the English ``ref``, if one exists."""
        for entry in self.entries(kind):
            if entry.linked_ref == ref and entry.language is language:
                return entry.ref
        return None
