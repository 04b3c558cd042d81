"""Exceptions raised for programming and configuration faults.

Per-property problems (precondition violations, failed fetches and saves) are
never raised; they are recorded in the batch summary.
"""


class GazetteerError(Exception):
    """Base class for errors raised by the multi-edit engine."""


class ConfigurationError(GazetteerError):
    """Settings are missing or inconsistent."""


class BatchStateError(GazetteerError):
    """An operation was requested in a batch state that does not allow it."""


class UnknownChangeKindError(GazetteerError):
    """No patch function is registered for a change kind."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"No patch registered for change kind {kind!r}")
        self.kind = kind
