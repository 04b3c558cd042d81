"""HTTP repository for the gazetteer property API."""

import re
from typing import Any, Final

import httpx

from gazetteer_multiedit.config import Settings
from gazetteer_multiedit.logging import get_logger
from gazetteer_multiedit.models import (
    AuthorityVariant,
    ErrorCategory,
    FieldError,
    Property,
    PropertyErrors,
)
from gazetteer_multiedit.repository.base import PropertyRepository, SaveResult

logger = get_logger(__name__)

_PROPERTY_PATH: Final = "/api/Property"

# Aggregate collections whose rows carry provisional keys.
_CHILD_COLLECTIONS: Final = (
    "classifications",
    "blpuAppCrossRefs",
    "blpuProvenances",
    "blpuNotes",
    "organisations",
    "successorCrossRefs",
    "lpis",
)
_SCOTTISH_ONLY_COLLECTIONS: Final = ("classifications", "organisations", "successorCrossRefs")

# Lower-cased key prefixes (before ``[n].field``) and the section they belong to.
_ERROR_KEY_CATEGORIES: Final[tuple[tuple[tuple[str, ...], ErrorCategory], ...]] = (
    (("lpis", "lpi"), ErrorCategory.LPI),
    (("blpuprovenances", "blpuprovenance"), ErrorCategory.PROVENANCE),
    (("blpuappcrossrefs", "blpuappcrossref"), ErrorCategory.CROSS_REF),
    (("classifications", "classification"), ErrorCategory.CLASSIFICATION),
    (("organisations", "organisation"), ErrorCategory.ORGANISATION),
    (
        (
            "blpusuccessorcrossrefs",
            "successorcrossrefs",
            "successorcrossreferences",
            "successorcrossreference",
        ),
        ErrorCategory.SUCCESSOR_CROSS_REF,
    ),
    (("blpunotes", "blpunote"), ErrorCategory.NOTE),
)

_INDEXED_KEY: Final = re.compile(r"^(?P<collection>[^\[.]+)\[(?P<index>\d+)\]\.(?P<field>.+)$")

_SUPPORT_SUFFIX: Final = "Please report this error to support."


def build_save_payload(prop: Property, authority: AuthorityVariant) -> dict[str, Any]:
    """Serialise ``prop`` for the update endpoint.

    Provisional (non-positive) child keys are sent as 0 so the service allocates
    real ones. Only Scottish authorities send the classification-family collections.
    """
    payload = prop.model_dump(mode="json", by_alias=True)
    for collection in _CHILD_COLLECTIONS:
        rows = payload.get(collection)
        if not rows:
            continue
        payload[collection] = [
            {**row, "pkId": row["pkId"] if row.get("pkId", 0) > 0 else 0} for row in rows
        ]
    if not authority.has_classifications:
        for collection in _SCOTTISH_ONLY_COLLECTIONS:
            payload.pop(collection, None)
    return payload


def parse_validation_errors(errors: dict[str, list[str]]) -> PropertyErrors:
    """Split a 400 response's ``errors`` object into categorised field errors.

    Keys without a collection prefix (``"Uprn"``) are BLPU errors; keys such as
    ``"lpis[1].postcodeRef"`` are attributed to the matching collection. Keys in an
    unknown collection are kept as BLPU errors under their full name.
    """
    grouped: dict[ErrorCategory, list[FieldError]] = {}
    for key, messages in errors.items():
        match = _INDEXED_KEY.match(key)
        category = ErrorCategory.BLPU
        entry = FieldError(field=key, errors=tuple(messages))
        if match:
            collection = match.group("collection").lower()
            for prefixes, candidate in _ERROR_KEY_CATEGORIES:
                if collection in prefixes:
                    category = candidate
                    entry = FieldError(
                        field=match.group("field"),
                        index=int(match.group("index")),
                        errors=tuple(messages),
                    )
                    break
        grouped.setdefault(category, []).append(entry)
    return PropertyErrors.model_validate(
        {category.value: tuple(entries) for category, entries in grouped.items()}
    )


def _describe_failure(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return f"[{response.status_code}] {text or response.reason_phrase}. {_SUPPORT_SUFFIX}"
    if isinstance(body, list) and body and isinstance(body[0], dict):
        body = body[0]
    if isinstance(body, dict):
        title = body.get("errorTitle") or body.get("title") or response.reason_phrase
        description = body.get("errorDescription") or body.get("detail") or ""
        return f"[{response.status_code}] {title}: {description}. {_SUPPORT_SUFFIX}"
    return f"[{response.status_code}] {response.reason_phrase}. {_SUPPORT_SUFFIX}"


def errors_from_response(response: httpx.Response) -> PropertyErrors:
    """Categorised errors for a failed save response."""
    match response.status_code:
        case 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            errors = body.get("errors") if isinstance(body, dict) else None
            if isinstance(errors, dict) and errors:
                return parse_validation_errors(errors)
            return PropertyErrors.single(ErrorCategory.BLPU, "UPRN", _describe_failure(response))
        case 401:
            return PropertyErrors.single(ErrorCategory.BLPU, "UPRN", "Your session has expired.")
        case 403:
            return PropertyErrors.single(
                ErrorCategory.BLPU, "UPRN", "You do not have access to the database."
            )
        case _:
            return PropertyErrors.single(ErrorCategory.BLPU, "UPRN", _describe_failure(response))


class HttpPropertyRepository(PropertyRepository):
    """Property repository backed by the gazetteer REST API."""

    def __init__(
        self,
        base_url: str,
        *,
        token: str = "",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the repository.

        Args:
            base_url: API root, e.g. ``https://gazetteer.example.gov.uk``.
            token: Bearer token sent with every request (omitted when empty).
            timeout: Request timeout in seconds.
            client: Pre-built client to use instead of creating one (not closed by
                :meth:`close`).
        """
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpPropertyRepository":
        return cls(
            settings.require_api_base_url(),
            token=settings.api_token.get_secret_value(),
            timeout=settings.request_timeout_seconds,
        )

    async def fetch(self, uprn: int) -> Property | None:
        try:
            response = await self._client.get(f"{_PROPERTY_PATH}/{uprn}")
        except httpx.HTTPError:
            logger.warning("property_fetch_error", uprn=uprn, exc_info=True)
            return None

        if response.status_code == 204:
            logger.debug("property_not_found", uprn=uprn)
            return None
        if response.status_code != 200:
            logger.warning("property_fetch_failed", uprn=uprn, status=response.status_code)
            return None

        try:
            return Property.model_validate(response.json())
        except ValueError:
            logger.warning("property_fetch_unreadable", uprn=uprn, exc_info=True)
            return None

    async def save(
        self,
        prop: Property,
        *,
        authority: AuthorityVariant = AuthorityVariant.ENGLISH,
        new_property: bool = False,
    ) -> SaveResult:
        payload = build_save_payload(prop, authority)
        method = "POST" if new_property else "PUT"
        logger.debug("property_save_request", uprn=prop.uprn, method=method)

        try:
            response = await self._client.request(method, _PROPERTY_PATH, json=payload)
        except httpx.HTTPError as e:
            logger.error("property_save_error", uprn=prop.uprn, error=str(e))
            return SaveResult.failure(
                prop.pk_id,
                PropertyErrors.single(
                    ErrorCategory.BLPU,
                    "UPRN",
                    f"Unable to reach the gazetteer service: {e}. {_SUPPORT_SUFFIX}",
                ),
            )

        if response.is_success:
            try:
                saved = Property.model_validate(response.json())
            except ValueError:
                logger.error("property_save_unreadable", uprn=prop.uprn, exc_info=True)
                return SaveResult.failure(prop.pk_id)
            return SaveResult(pk_id=prop.pk_id, saved=saved)

        errors = errors_from_response(response)
        logger.error(
            "property_save_failed",
            uprn=prop.uprn,
            status=response.status_code,
            errors=errors.messages(),
        )
        return SaveResult.failure(prop.pk_id, errors)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
