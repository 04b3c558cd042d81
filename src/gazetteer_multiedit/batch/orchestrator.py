"""Batch orchestrator: apply one proposed change to many properties.

Properties are fetched one at a time, in the order given. Each fetched aggregate
is patched and its save dispatched as a task, so saves run concurrently with
later fetches and may finish in any order. Every outcome is recorded in a
:class:`ResultAggregator` keyed by property id.
"""

import asyncio
import inspect
import uuid
from collections.abc import Callable, Iterable, Sequence
from datetime import date
from enum import StrEnum

from gazetteer_multiedit.batch.aggregator import BatchProgress, BatchSummary, ResultAggregator
from gazetteer_multiedit.config import Settings
from gazetteer_multiedit.exceptions import BatchStateError
from gazetteer_multiedit.logging import batch_context, get_logger
from gazetteer_multiedit.merge import PatchContext, apply_change
from gazetteer_multiedit.models import (
    AuthorityVariant,
    ChangeSpec,
    FieldError,
    LookupTables,
    Property,
    PropertyErrors,
)
from gazetteer_multiedit.repository import PropertyRepository, SaveResult
from gazetteer_multiedit.validation import Validator, validate_change

logger = get_logger(__name__)

ProgressListener = Callable[[BatchProgress], None]


class BatchState(StrEnum):
    IDLE = "idle"
    VALIDATING = "validating"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MultiEditBatch:
    """One run of a multi-edit over a list of UPRNs.

    Usage::

        batch = MultiEditBatch(repository, authority=AuthorityVariant.SCOTTISH)
        errors = await batch.start(uprns, change)
        if not errors:
            summary = await batch.wait()
    """

    def __init__(
        self,
        repository: PropertyRepository,
        *,
        validator: Validator = validate_change,
        lookups: LookupTables | None = None,
        authority: AuthorityVariant = AuthorityVariant.ENGLISH,
        reference_date: date | None = None,
        count_fetch_failures: bool = True,
    ) -> None:
        """Initialize the batch.

        Args:
            repository: Where aggregates are fetched from and saved to.
            validator: Checks the change once before any property is fetched.
            lookups: Reference lookups for bilingual address propagation.
            authority: Authority flavour, passed to the validator, patches and saves.
            reference_date: Date stamped on every record the batch closes
                (default: the day the batch starts).
            count_fetch_failures: Count properties that cannot be fetched as
                failed. When False they are skipped and not counted at all.
        """
        self._repository = repository
        self._validator = validator
        self._lookups = lookups or LookupTables()
        self._authority = authority
        self._reference_date = reference_date
        self._count_fetch_failures = count_fetch_failures

        self._state = BatchState.IDLE
        self._aggregator: ResultAggregator | None = None
        self._listeners: list[ProgressListener] = []
        self._runner: asyncio.Task[None] | None = None
        self._saves: set[asyncio.Task[None]] = set()
        self.batch_id = uuid.uuid4().hex[:8]

    @classmethod
    def from_settings(
        cls,
        repository: PropertyRepository,
        settings: Settings,
        *,
        validator: Validator = validate_change,
        reference_date: date | None = None,
    ) -> "MultiEditBatch":
        return cls(
            repository,
            validator=validator,
            lookups=settings.load_lookups(),
            authority=settings.authority,
            reference_date=reference_date,
            count_fetch_failures=settings.count_fetch_failures,
        )

    @property
    def state(self) -> BatchState:
        return self._state

    @property
    def progress(self) -> BatchProgress:
        if self._aggregator is None:
            return BatchProgress(succeeded=0, failed=0, total=0)
        return self._aggregator.progress

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Call ``listener`` with the counters whenever they change.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self, uprns: Iterable[int], change: ChangeSpec) -> list[FieldError]:
        """Validate ``change`` and, if valid, start processing ``uprns``.

        Returns:
            The validation errors. When the list is empty the batch is running
            and :meth:`wait` returns its summary.

        Raises:
            BatchStateError: If the batch has already been started.
        """
        if self._state is not BatchState.IDLE:
            raise BatchStateError(f"Cannot start a batch that is {self._state.value}")

        self._state = BatchState.VALIDATING
        try:
            result = self._validator(change, self._lookups, self._authority)
            errors = list(await result if inspect.isawaitable(result) else result)
        except BaseException:
            self._state = BatchState.IDLE
            raise
        if errors:
            logger.info(
                "batch_validation_failed",
                kind=change.kind,
                fields=[error.field for error in errors],
            )
            if self._state is BatchState.VALIDATING:
                self._state = BatchState.IDLE
            return errors
        if self._state is BatchState.CANCELLED:
            return []

        requested = list(uprns)
        unique = list(dict.fromkeys(requested))
        if len(unique) != len(requested):
            logger.warning("duplicate_uprns_ignored", count=len(requested) - len(unique))

        self._aggregator = ResultAggregator(total=len(unique))
        self._state = BatchState.RUNNING
        ctx = PatchContext(
            reference_date=self._reference_date or date.today(),
            authority=self._authority,
            lookups=self._lookups,
        )
        # The runner and its save tasks copy the bound context when created.
        with batch_context(self.batch_id, change.kind, self._authority.value):
            logger.info(
                "batch_started",
                total=len(unique),
                reference_date=ctx.reference_date.isoformat(),
            )
            self._runner = asyncio.create_task(self._run(unique, change, ctx))
        return []

    def cancel(self) -> None:
        """Stop fetching further properties. Saves already dispatched still complete."""
        if self._state in (BatchState.COMPLETED, BatchState.CANCELLED):
            return
        logger.info("batch_cancelled", **self._progress_fields())
        self._state = BatchState.CANCELLED

    async def wait(self) -> BatchSummary:
        """Wait for the fetch loop and every dispatched save, then return the summary."""
        if self._runner is not None:
            await self._runner
        while self._saves:
            await asyncio.gather(*list(self._saves))
        return self.summary()

    def summary(self) -> BatchSummary:
        if self._aggregator is None:
            return BatchSummary(succeeded_count=0, failed_count=0)
        return self._aggregator.summary()

    def report_error(self, pk_id: int, errors: PropertyErrors | None = None) -> bool:
        """Record a failure for ``pk_id`` notified outside of its save result.

        Returns:
            True if the failure was counted. False if the property is not part
            of this batch, had already failed, or reporting is frozen.
        """
        if self._aggregator is None:
            return False
        recorded = self._aggregator.record_failure(pk_id, errors)
        if recorded:
            logger.info("property_failure_reported", property_id=pk_id)
            self._changed()
        return recorded

    async def _run(self, uprns: Sequence[int], change: ChangeSpec, ctx: PatchContext) -> None:
        assert self._aggregator is not None
        aggregator = self._aggregator

        for uprn in uprns:
            if self._state is BatchState.CANCELLED:
                break

            prop = await self._fetch(uprn)
            if self._state is BatchState.CANCELLED:
                break
            if prop is None:
                if self._count_fetch_failures:
                    aggregator.record_fetch_failure(uprn)
                    self._changed()
                else:
                    logger.info("property_skipped", uprn=uprn)
                continue

            aggregator.register_property(prop.pk_id, prop.uprn, prop.display_address)
            try:
                patched = apply_change(prop, change, ctx)
            except Exception:
                logger.error(
                    "property_patch_failed", uprn=uprn, property_id=prop.pk_id, exc_info=True
                )
                aggregator.record_failure(prop.pk_id)
                self._changed()
                continue
            if patched.aggregate is None:
                violation = patched.violation
                logger.info(
                    "property_precondition_failed",
                    uprn=uprn,
                    property_id=prop.pk_id,
                    reason=violation.message if violation else None,
                )
                aggregator.record_failure(prop.pk_id, violation.errors if violation else None)
                self._changed()
                continue

            task = asyncio.create_task(self._save(patched.aggregate))
            self._saves.add(task)
            task.add_done_callback(self._saves.discard)

        logger.debug("batch_fetch_loop_finished", **self._progress_fields())

    async def _fetch(self, uprn: int) -> Property | None:
        try:
            prop = await self._repository.fetch(uprn)
        except Exception:
            logger.error("property_fetch_failed", uprn=uprn, exc_info=True)
            return None
        if prop is None:
            logger.warning("property_fetch_failed", uprn=uprn)
        return prop

    async def _save(self, prop: Property) -> None:
        try:
            result = await self._repository.save(prop, authority=self._authority)
        except Exception:
            logger.error("property_save_failed", uprn=prop.uprn, exc_info=True)
            result = SaveResult.failure(prop.pk_id)

        assert self._aggregator is not None
        if result.ok:
            self._aggregator.record_success(prop.pk_id, result.saved)
            logger.debug("property_saved", uprn=prop.uprn, property_id=prop.pk_id)
        else:
            self._aggregator.record_failure(prop.pk_id, result.errors)
            logger.info("property_save_failed", uprn=prop.uprn, property_id=prop.pk_id)
        self._changed()

    def _changed(self) -> None:
        """Publish the counters and complete the batch once every property is accounted for."""
        assert self._aggregator is not None
        progress = self._aggregator.progress
        for listener in list(self._listeners):
            try:
                listener(progress)
            except Exception:
                logger.error("progress_listener_failed", exc_info=True)

        if self._state is BatchState.RUNNING and self._aggregator.is_completed():
            self._state = BatchState.COMPLETED
            self._aggregator.freeze()
            logger.info("batch_completed", **self._progress_fields())

    def _progress_fields(self) -> dict[str, int]:
        progress = self.progress
        return {
            "succeeded": progress.succeeded,
            "failed": progress.failed,
            "total": progress.total,
        }
