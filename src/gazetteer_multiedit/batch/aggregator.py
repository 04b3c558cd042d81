"""Running counters and failure details for one multi-edit batch."""

from dataclasses import dataclass, field
from typing import Final

from gazetteer_multiedit.logging import get_logger
from gazetteer_multiedit.models import Property, PropertyErrors

logger = get_logger(__name__)

GENERIC_FAILURE_MESSAGE: Final = "Failed to save property."
FETCH_FAILURE_MESSAGE: Final = "Property could not be retrieved."


@dataclass(frozen=True)
class BatchProgress:
    """Snapshot of the running counters."""

    succeeded: int
    failed: int
    total: int

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed


@dataclass(frozen=True)
class FailedProperty:
    property_id: int | None
    uprn: int | None
    address: str | None
    errors: str


@dataclass(frozen=True)
class BatchSummary:
    succeeded_count: int
    failed_count: int
    failed_details: list[FailedProperty] = field(default_factory=list)


def format_errors(errors: PropertyErrors | None) -> str:
    """Render categorised errors as ``"<Category> [<field>]: <errors>"`` lines.

    Messages within a field are de-duplicated and joined with ``", "``; identical
    lines are only emitted once. Falls back to a generic message when there are
    no categorised errors.
    """
    if errors is None or errors.is_empty:
        return GENERIC_FAILURE_MESSAGE

    lines: list[str] = []
    for category, entries in errors.by_category():
        for entry in entries:
            unique = list(dict.fromkeys(entry.errors))
            line = f"{category.label} [{entry.field}]: {', '.join(unique)}"
            if line not in lines:
                lines.append(line)
    return "\n".join(lines)


@dataclass
class _Registered:
    uprn: int | None
    address: str | None


class ResultAggregator:
    """Counts successes and failures for a batch, keyed by property id.

    A property is counted as failed at most once however many failure
    notifications arrive for it. Once frozen, further notifications are ignored.
    """

    def __init__(self, total: int = 0) -> None:
        self.total = total
        self._succeeded: dict[int, Property | None] = {}
        self._failed: dict[int, str] = {}
        self._registered: dict[int, _Registered] = {}
        self._unfetched: list[int] = []
        self._frozen = False

    @property
    def progress(self) -> BatchProgress:
        return BatchProgress(
            succeeded=len(self._succeeded),
            failed=len(self._failed) + len(self._unfetched),
            total=self.total,
        )

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register_property(self, property_id: int, uprn: int | None, address: str | None) -> None:
        """Remember identifying details so failures can be reported meaningfully."""
        self._registered[property_id] = _Registered(uprn=uprn, address=address)

    def _accepts(self, property_id: int) -> bool:
        if self._frozen:
            return False
        if property_id not in self._registered:
            logger.warning("unknown_property_ignored", property_id=property_id)
            return False
        return True

    def record_success(self, property_id: int, saved: Property | None = None) -> bool:
        """Count a successful save. Returns False if the notification was ignored.

        Only properties passed to :meth:`register_property` are counted.
        """
        if not self._accepts(property_id):
            return False
        if property_id in self._succeeded or property_id in self._failed:
            return False
        self._succeeded[property_id] = saved
        return True

    def record_failure(self, property_id: int, errors: PropertyErrors | None = None) -> bool:
        """Count a failure unless this property already failed. Returns False if ignored.

        Failures for properties that were never registered are ignored.
        """
        if not self._accepts(property_id) or property_id in self._failed:
            return False
        if property_id in self._succeeded:
            # A late out-of-band failure for a property that already saved.
            logger.warning("failure_after_success_ignored", property_id=property_id)
            return False
        self._failed[property_id] = format_errors(errors)
        return True

    def record_fetch_failure(self, uprn: int) -> bool:
        """Count a property that could not be retrieved, so has no property id."""
        if self._frozen:
            return False
        self._unfetched.append(uprn)
        return True

    def saved(self, property_id: int) -> Property | None:
        return self._succeeded.get(property_id)

    def is_completed(self) -> bool:
        return self.total > 0 and self.progress.processed == self.total

    def freeze(self) -> None:
        self._frozen = True

    def summary(self) -> BatchSummary:
        details = [
            FailedProperty(property_id=None, uprn=uprn, address=None, errors=FETCH_FAILURE_MESSAGE)
            for uprn in self._unfetched
        ]
        for property_id, errors in self._failed.items():
            registered = self._registered.get(property_id, _Registered(uprn=None, address=None))
            details.append(
                FailedProperty(
                    property_id=property_id,
                    uprn=registered.uprn,
                    address=registered.address,
                    errors=errors,
                )
            )
        return BatchSummary(
            succeeded_count=len(self._succeeded),
            failed_count=len(self._failed) + len(self._unfetched),
            failed_details=details,
        )
