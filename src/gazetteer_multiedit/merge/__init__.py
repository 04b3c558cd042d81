"""Merge policies, identifier allocation and per-change patch functions."""

from gazetteer_multiedit.merge.allocation import allocate_child_key, allocate_note_sequence
from gazetteer_multiedit.merge.patches import PatchContext, PatchResult, append_note, apply_change
from gazetteer_multiedit.merge.policy import MergeOutcome, Violation

__all__ = [
    "MergeOutcome",
    "PatchContext",
    "PatchResult",
    "Violation",
    "allocate_child_key",
    "allocate_note_sequence",
    "append_note",
    "apply_change",
]
