"""Error taxonomy for pedigree-graph.

A missing person or family is not an error: builders return ``None``.
Depth limits are not errors either: they surface as ``has_more_*`` flags.
"""
from __future__ import annotations


class PedigreeGraphError(Exception):
    """Base class for all pedigree-graph errors."""


class InvalidCursorError(PedigreeGraphError):
    """Raised when a pagination cursor cannot be decoded."""

    def __init__(self, token: str, reason: str):
        super().__init__(f"Invalid cursor {token!r}: {reason}")
        self.token = token
        self.reason = reason


class PaginationError(PedigreeGraphError):
    """Raised for conflicting or out-of-range page arguments."""


class StoreUnavailableError(PedigreeGraphError):
    """Raised when the backing store fails during a read.

    Traversals abort on this error instead of returning a partial tree.
    """

    def __init__(self, operation: str, cause: BaseException | None = None):
        message = f"Store operation {operation!r} failed"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
        self.operation = operation
        self.cause = cause
