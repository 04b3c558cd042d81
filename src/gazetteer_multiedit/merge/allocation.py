"""Provisional key and note sequence allocation for rows not yet persisted."""

from collections.abc import Iterable
from typing import Final

from gazetteer_multiedit.models import ChildRecord, NoteRecord

# Highest provisional key handed out; real keys are positive.
PROVISIONAL_KEY_FLOOR: Final = -10


def allocate_child_key(rows: Iterable[ChildRecord]) -> int:
    """Return a provisional (negative) primary key for a new row in ``rows``.

    The result is more negative than any key already in the collection, and
    never above :data:`PROVISIONAL_KEY_FLOOR`.
    """
    min_pk = min((row.pk_id for row in rows), default=None)
    if not min_pk or min_pk > PROVISIONAL_KEY_FLOOR:
        return PROVISIONAL_KEY_FLOOR
    return min_pk - 1


def allocate_note_sequence(notes: Iterable[NoteRecord]) -> int:
    """Return the next note sequence number, starting at 1 for an empty collection."""
    max_seq = max((note.seq_num for note in notes if note.seq_num is not None), default=None)
    if not max_seq:
        return 1
    return max_seq + 1
