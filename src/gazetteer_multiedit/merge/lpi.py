"""LPI rewrites shared by the address-field and logical-status edits."""

from collections import Counter
from collections.abc import Iterable, Mapping
from typing import Any, Final

from gazetteer_multiedit.logging import get_logger
from gazetteer_multiedit.models import (
    AuthorityVariant,
    ChangeType,
    ErrorCategory,
    FieldError,
    LookupKind,
    LookupTables,
    LpiRecord,
    PropertyErrors,
)
from gazetteer_multiedit.merge.policy import Violation

logger = get_logger(__name__)

# LPI fields whose value differs per language and must be resolved through a lookup.
_LINKED_FIELDS: Final[dict[str, LookupKind]] = {
    "post_town_ref": LookupKind.POST_TOWN,
    "sub_locality_ref": LookupKind.SUB_LOCALITY,
}

DUPLICATE_APPROVED_MESSAGE: Final = (
    "Cannot have more than 1 LPI with a logical status of Approved in the same language."
)


def supplied(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Drop fields the user left blank so they pass through unchanged."""
    return {name: value for name, value in fields.items() if value is not None and value != ""}


def patch_lpis(
    lpis: Iterable[LpiRecord],
    fields: Mapping[str, Any],
    *,
    authority: AuthorityVariant,
    lookups: LookupTables,
) -> tuple[LpiRecord, ...]:
    """Tag every LPI ``U`` and overwrite the supplied ``fields``.

    ``fields`` holds English values. For bilingual authorities, linked fields
    (post town, sub-locality) are translated for LPIs in the alternate language.
    If no linked entry exists the alternate LPI keeps its current value.
    """
    values = supplied(fields)
    alternate = authority.alternate_language

    alternate_values = dict(values)
    if alternate is not None:
        for name, kind in _LINKED_FIELDS.items():
            if name not in values:
                continue
            resolved = lookups.resolve_linked(kind, values[name], alternate)
            if resolved is None:
                logger.warning(
                    "linked_lookup_missing",
                    lookup=kind.value,
                    ref=values[name],
                    language=alternate.value,
                )
                del alternate_values[name]
            else:
                alternate_values[name] = resolved

    patched: list[LpiRecord] = []
    for lpi in lpis:
        update = alternate_values if alternate is not None and lpi.language is alternate else values
        patched.append(lpi.model_copy(update={**update, "change_type": ChangeType.UPDATE}))
    return tuple(patched)


def duplicate_language_violation(lpis: Iterable[LpiRecord]) -> Violation | None:
    """Refuse approval when the property has more than one LPI in any language."""
    rows = tuple(lpis)
    per_language = Counter(lpi.language for lpi in rows)
    duplicated = {language for language, count in per_language.items() if count > 1}
    if not duplicated:
        return None
    errors = PropertyErrors.model_validate(
        {
            ErrorCategory.LPI.value: tuple(
                FieldError(field="UPRN", index=index, errors=(DUPLICATE_APPROVED_MESSAGE,))
                for index, lpi in enumerate(rows)
                if lpi.language in duplicated
            )
        }
    )
    return Violation(message=DUPLICATE_APPROVED_MESSAGE, errors=errors)
