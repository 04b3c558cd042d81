"""Shared pytest fixtures."""

import asyncio
import os
from collections.abc import Callable
from datetime import date
from typing import Any

import pytest
from hypothesis import HealthCheck, settings

from gazetteer_multiedit.config import Settings
from gazetteer_multiedit.models import (
    AuthorityVariant,
    ClassificationRecord,
    CrossRefRecord,
    Language,
    LpiRecord,
    Property,
    PropertyErrors,
)
from gazetteer_multiedit.repository import PropertyRepository, SaveResult

# Hypothesis settings profiles for different environments
settings.register_profile("fast", max_examples=10)
settings.register_profile(
    "ci",
    max_examples=200,
    suppress_health_check=[HealthCheck.too_slow],
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "fast"))

REFERENCE_DATE = date(2024, 6, 1)


@pytest.fixture(autouse=True)
def _isolate_settings_from_dotenv(monkeypatch: pytest.MonkeyPatch) -> None:
    """Prevent the local .env file from leaking into test Settings instances."""
    monkeypatch.setattr(
        Settings,
        "model_config",
        {**Settings.model_config, "env_file": None},
    )


@pytest.fixture
def reference_date() -> date:
    return REFERENCE_DATE


@pytest.fixture
def make_property() -> Callable[..., Property]:
    """Factory for Property aggregates with one English LPI and auto-incrementing IDs."""
    _counter = 0

    def _make(
        *,
        address: str = "12 HIGH STREET, ANYTOWN AB1 2CD",
        postcode: str = "AB1 2CD",
        **overrides: Any,
    ) -> Property:
        nonlocal _counter
        _counter += 1
        pk_id = overrides.pop("pk_id", 1000 + _counter)
        uprn = overrides.pop("uprn", 100000000 + _counter)
        lpis = overrides.pop(
            "lpis",
            (
                LpiRecord(
                    pk_id=5000 + _counter,
                    uprn=uprn,
                    language=Language.ENGLISH,
                    address=address,
                    postcode=postcode,
                    post_town_ref=10,
                    logical_status=1,
                ),
            ),
        )
        defaults: dict[str, Any] = {
            "pk_id": pk_id,
            "uprn": uprn,
            "logical_status": 1,
            "start_date": date(2001, 1, 1),
            "lpis": lpis,
        }
        defaults.update(overrides)
        return Property(**defaults)

    return _make


@pytest.fixture
def make_classification() -> Callable[..., ClassificationRecord]:
    def _make(
        pk_id: int, *, end_date: date | None = None, **overrides: Any
    ) -> ClassificationRecord:
        defaults: dict[str, Any] = {
            "pk_id": pk_id,
            "class_key": f"CK{pk_id}",
            "classification_scheme": "AddressBase Premium Classification",
            "blpu_class": "RD04",
            "start_date": date(2010, 1, 1),
            "end_date": end_date,
        }
        defaults.update(overrides)
        return ClassificationRecord(**defaults)

    return _make


@pytest.fixture
def make_cross_ref() -> Callable[..., CrossRefRecord]:
    def _make(
        pk_id: int, source_id: int, *, end_date: date | None = None, **overrides: Any
    ) -> CrossRefRecord:
        defaults: dict[str, Any] = {
            "pk_id": pk_id,
            "xref_key": f"XK{pk_id}",
            "source_id": source_id,
            "cross_reference": f"REF-{pk_id}",
            "start_date": date(2010, 1, 1),
            "end_date": end_date,
        }
        defaults.update(overrides)
        return CrossRefRecord(**defaults)

    return _make


class FakeRepository(PropertyRepository):
    """In-memory repository for orchestrator tests.

    Saves succeed unless the UPRN is listed in ``fail_saves``. A UPRN mapped to
    an :class:`asyncio.Event` in ``save_gates`` blocks its save until the event
    is set, so tests can control completion order. ``on_fetch`` is called with
    each UPRN as it is fetched.
    """

    def __init__(
        self,
        properties: list[Property],
        *,
        fail_saves: dict[int, PropertyErrors | None] | None = None,
    ) -> None:
        self.properties = {prop.uprn: prop for prop in properties}
        self.fail_saves = fail_saves or {}
        self.save_gates: dict[int, asyncio.Event] = {}
        self.on_fetch: Callable[[int], None] | None = None
        self.fetched: list[int] = []
        self.saved: list[Property] = []
        self.save_order: list[int] = []
        self.authorities: list[AuthorityVariant] = []

    async def fetch(self, uprn: int) -> Property | None:
        self.fetched.append(uprn)
        if self.on_fetch is not None:
            self.on_fetch(uprn)
        return self.properties.get(uprn)

    async def save(
        self,
        prop: Property,
        *,
        authority: AuthorityVariant = AuthorityVariant.ENGLISH,
        new_property: bool = False,
    ) -> SaveResult:
        self.saved.append(prop)
        self.authorities.append(authority)
        gate = self.save_gates.get(prop.uprn)
        if gate is not None:
            await gate.wait()
        self.save_order.append(prop.uprn)
        if prop.uprn in self.fail_saves:
            return SaveResult.failure(prop.pk_id, self.fail_saves[prop.uprn])
        return SaveResult.success(prop)


@pytest.fixture
def fake_repository_factory() -> Callable[..., FakeRepository]:
    return FakeRepository
