"""
System Update - Update Session
In-memory record of counters and status for one run.
"""

from dataclasses import dataclass, replace
from enum import Enum, IntEnum
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """Process exit status of a run."""
    SUCCESS = 0
    PREREQ_FAILED = 1
    LIST_REFRESH_FAILED = 2
    APPLY_FAILED = 3
    CLEANUP_FAILED = 4
    COMPLETED_WITH_ERRORS = 5


class Stage(Enum):
    """Discrete steps of an update session."""
    REFRESH = "refresh"
    QUERY = "query"
    APPLY = "apply"
    REMOVE_UNUSED = "remove-unused"
    CLEAN_CACHE = "clean-cache"


STATUS_SUCCESS = "SUCCESS"
STATUS_WITH_ERRORS = "COMPLETED WITH ERRORS"
STATUS_NO_UPDATES = "NO UPDATES NEEDED"


@dataclass(frozen=True)
class UpdateSession:
    """
    Counters and exit status for one run.

    Instances are immutable: each stage returns a new session rather than
    mutating the one it was given. The first failing stage fixes the exit
    code; later stages never overwrite it.
    """
    updates_available: int = 0
    packages_upgraded: int = 0
    packages_removed: int = 0
    errors_occurred: int = 0
    exit_code: ExitCode = ExitCode.SUCCESS
    skipped: tuple[Stage, ...] = ()

    def with_error(self, code: Optional[ExitCode] = None) -> "UpdateSession":
        """Record one error, setting `code` unless a failure code is already set."""
        exit_code = self.exit_code
        if code is not None and exit_code == ExitCode.SUCCESS:
            exit_code = code
        return replace(self, errors_occurred=self.errors_occurred + 1, exit_code=exit_code)

    def with_skipped(self, stage: Stage) -> "UpdateSession":
        """Record a stage the user declined."""
        return replace(self, skipped=self.skipped + (stage,))

    def with_counts(self, **counts: int) -> "UpdateSession":
        """Return a copy with the given counters replaced."""
        return replace(self, **counts)

    def failed(self, code: ExitCode) -> bool:
        return self.exit_code == code

    def resolve(self) -> "UpdateSession":
        """
        Apply the end-of-run exit code rule.

        Errors with no stage failure code downgrade SUCCESS to
        COMPLETED_WITH_ERRORS; any stage code already set is kept.
        """
        if self.errors_occurred > 0 and self.exit_code == ExitCode.SUCCESS:
            return replace(self, exit_code=ExitCode.COMPLETED_WITH_ERRORS)
        return self

    @property
    def status(self) -> str:
        """Human-readable status for reports."""
        if self.errors_occurred > 0:
            return STATUS_WITH_ERRORS
        if self.updates_available > 0:
            return STATUS_SUCCESS
        return STATUS_NO_UPDATES
