"""Property repository interface consumed by the batch orchestrator."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from gazetteer_multiedit.models import AuthorityVariant, Property, PropertyErrors


@dataclass(frozen=True)
class SaveResult:
    """Outcome of one save, tagged with the property it belongs to.

    Exactly one of ``saved`` and ``errors`` is meaningful: a successful save
    carries the persisted aggregate (with real keys), a failed one carries
    whatever categorised errors the service returned (possibly none).
    """

    pk_id: int
    saved: Property | None = None
    errors: PropertyErrors | None = None

    @property
    def ok(self) -> bool:
        return self.saved is not None

    @classmethod
    def success(cls, saved: Property) -> "SaveResult":
        return cls(pk_id=saved.pk_id, saved=saved)

    @classmethod
    def failure(cls, pk_id: int, errors: PropertyErrors | None = None) -> "SaveResult":
        return cls(pk_id=pk_id, errors=errors)


class PropertyRepository(ABC):
    """Fetches and persists property aggregates.

    Implementations must not raise for per-property problems: a missing or
    unreadable property is ``None`` and a rejected save is a failed
    :class:`SaveResult`.
    """

    @abstractmethod
    async def fetch(self, uprn: int) -> Property | None:
        """Return the current aggregate for ``uprn``, or None if it cannot be retrieved."""
        ...

    @abstractmethod
    async def save(
        self,
        prop: Property,
        *,
        authority: AuthorityVariant = AuthorityVariant.ENGLISH,
        new_property: bool = False,
    ) -> SaveResult:
        """Persist ``prop`` (create when ``new_property``, else update) and report the outcome."""
        ...

    async def close(self) -> None:
        """Release any underlying resources."""
        return None
