"""Error kinds raised and reported by the catalog manager.

Hierarchy:
    CatalogError (base)
    ├── NetworkFailure - transport errors, timeouts, 5xx (retryable)
    ├── NotFound - update/delete target missing remotely
    ├── ValidationFailure - empty text field, non-numeric year
    ├── NoActiveSession - field edit or save without an edit session
    ├── OperationPending - duplicate submission while a call is in flight
    └── DesyncWarning - local collection disagrees with the remote store

DesyncWarning is never raised by the collection store. It is returned
from a mutation and logged, so the reconciliation loop keeps running.
"""
from typing import Any, Dict, Optional


class CatalogError(Exception):
    """Base exception for all catalog errors.

    Attributes:
        message: Human-readable error description
        context: Extra details (ids, fields, status codes)
        retryable: Whether the operation might succeed on retry
    """

    retryable = False

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class NetworkFailure(CatalogError):
    """The remote store could not be reached or answered with an error."""

    retryable = True


class NotFound(CatalogError):
    """The target record does not exist."""

    def __init__(self, message: str, book_id: Optional[int] = None, **context: Any):
        super().__init__(message, book_id=book_id, **context)
        self.book_id = book_id


class ValidationFailure(CatalogError):
    """Input was rejected before (or by) the remote store."""

    def __init__(self, message: str, field: Optional[str] = None, **context: Any):
        if field is not None:
            context["field"] = field
        super().__init__(message, **context)
        self.field = field


class NoActiveSession(CatalogError):
    """A session operation was attempted for a book not in edit mode."""

    def __init__(self, book_id: int):
        super().__init__("No active edit session", book_id=book_id)
        self.book_id = book_id


class OperationPending(CatalogError):
    """Another operation for the same target is still in flight."""

    def __init__(self, operation: str, book_id: Optional[int] = None):
        super().__init__(f"A {operation} is already pending", book_id=book_id)
        self.operation = operation
        self.book_id = book_id


class DesyncWarning(CatalogError):
    """Local assumptions about record existence disagree with the remote store."""

    def __init__(self, kind: str, book_id: int):
        super().__init__(f"Desync on {kind}", book_id=book_id)
        self.kind = kind
        self.book_id = book_id

    def __eq__(self, other):
        if not isinstance(other, DesyncWarning):
            return NotImplemented
        return (self.kind, self.book_id) == (other.kind, other.book_id)

    def __hash__(self):
        return hash((self.kind, self.book_id))
