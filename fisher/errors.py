"""Error taxonomy for the line fisher.

Errors local to a single line (EvaluatorError, NotationError) are caught by
the scheduler and recorded on that line. ConfigurationError stops a run
before it starts. StateImportError rejects a snapshot without touching the
live state.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List


class FisherError(Exception):
    """Base class for all line fisher errors."""


class ConfigurationError(FisherError):
    """Invalid run configuration (depth, branching counts, root position)."""


class EvaluatorError(FisherError):
    """The move evaluator timed out, crashed or answered garbage.

    `fatal` marks failures after which no further evaluator call can succeed
    (e.g. the engine process died); the scheduler stops the run on those.
    """

    def __init__(self, message: str, fatal: bool = False):
        super().__init__(message)
        self.fatal = fatal


class NotationError(FisherError):
    """A move could not be parsed, converted or applied to a position."""


class FisherBusyError(FisherError):
    """The requested operation needs the scheduler to be idle."""


class RejectReason(str, Enum):
    MALFORMED_JSON = "malformed_json"
    WRONG_TYPE_TAG = "wrong_type_tag"
    MISSING_FIELD = "missing_field"
    INVALID_TYPE = "invalid_type"
    INVALID_VALUE = "invalid_value"
    INVALID_POSITION = "invalid_position"
    INVALID_MOVE = "invalid_move"
    DUPLICATE_LINE = "duplicate_line"
    UNKNOWN_LINE = "unknown_line"
    INCONSISTENT_FLAGS = "inconsistent_flags"


@dataclass(frozen=True)
class ImportIssue:
    reason: RejectReason
    location: str
    message: str

    def to_dict(self) -> dict:
        return {"reason": self.reason.value, "location": self.location, "message": self.message}


class StateImportError(FisherError):
    """A snapshot failed validation. Carries every issue that was found."""

    def __init__(self, issues: List[ImportIssue]):
        self.issues = list(issues)
        summary = "; ".join(f"{i.location}: {i.message}" for i in self.issues[:5])
        if len(self.issues) > 5:
            summary += f" (+{len(self.issues) - 5} more)"
        super().__init__(f"invalid fish state snapshot: {summary}")
