"""
🚦 ERRORS & WARNINGS
====================
Hard stops are exceptions. Soft trouble (some slots unfilled, a clash we could not fix)
is a GenerationWarning that rides along with the result.
"""

from dataclasses import dataclass
from typing import List


UNASSIGNED = "unassigned"
UNRESOLVED_CONFLICT = "unresolved_conflict"
UNMET_TARGET = "unmet_target"


class TimetableError(Exception):
    """Base for everything the engine raises on purpose."""


class PreconditionError(TimetableError):
    """Required data is missing (no periods, no teachers, ...). Generation must not start."""

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__("Please add " + ", ".join(self.missing) + " before generating a timetable.")


class GenerationCancelled(TimetableError):
    """The user pressed stop. Any half-built grid is thrown away."""

    def __init__(self, stage: str = ""):
        self.stage = stage
        super().__init__(f"Generation cancelled during {stage}" if stage else "Generation cancelled")


class GenerationInProgress(TimetableError):
    """A second generate() arrived while one is still running."""


@dataclass
class GenerationWarning:
    kind: str
    count: int
    message: str

    def __str__(self) -> str:
        return self.message


def raise_if_cancelled(cancel, stage: str) -> None:
    """cancel is anything with is_set() (threading.Event works). None = never cancelled."""
    if cancel is not None and cancel.is_set():
        raise GenerationCancelled(stage)
