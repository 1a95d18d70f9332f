# errors.py
from __future__ import annotations


class ReaddressError(Exception):
    """Base class for failures that end a run with a non-zero exit code."""

    exit_code = 1


class ValidationError(ReaddressError):
    """Bad operator input. Recoverable: the field is prompted again."""


class InvalidMask(ValidationError):
    pass


class PreconditionError(ReaddressError):
    """Raised before any mutation: missing privilege, file or interface."""


class ApplyError(ReaddressError):
    pass


class ApplyFailed(ApplyError):
    """Reload failed. Raised after the backup has been restored."""

    def __init__(self, message: str, rolled_back: bool = True) -> None:
        super().__init__(message)
        self.rolled_back = rolled_back


class InvalidChoice(ReaddressError):
    pass


class Cancelled(Exception):
    """Operator declined a confirmation gate."""

    exit_code = 0
