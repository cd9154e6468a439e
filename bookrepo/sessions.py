"""Inline edit sessions, kept apart from the committed records."""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional, Set

from bookrepo.errors import NoActiveSession, ValidationFailure
from bookrepo.models import EDITABLE_FIELDS, Patch, parse_year

logger = logging.getLogger(__name__)


@dataclass
class EditSession:
    """Pending field values for one book in edit mode."""
    patch: Patch = field(default_factory=dict)
    invalid: Set[str] = field(default_factory=set)


class EditSessionTracker:
    """Tracks which books are in edit mode and what the user has typed."""

    def __init__(self):
        self._sessions: Dict[int, EditSession] = {}

    def begin_edit(self, book_id: int) -> None:
        """Enter edit mode with an empty patch. Idempotent."""
        if book_id not in self._sessions:
            self._sessions[book_id] = EditSession()
            logger.debug(f"Edit session opened for book {book_id}")

    def set_field(self, book_id: int, field_name: str, raw_value: Any) -> None:
        """
        Store a typed value into the session's patch.

        Args:
            book_id: Book in edit mode
            field_name: One of title, author, year
            raw_value: Value as typed

        Raises:
            NoActiveSession: if book_id is not in edit mode
            ValidationFailure: for an unknown field or a non-numeric year;
                the year is then left unset in the patch
        """
        session = self._sessions.get(book_id)
        if session is None:
            raise NoActiveSession(book_id)
        if field_name not in EDITABLE_FIELDS:
            raise ValidationFailure(f"Unknown field: {field_name}", field=field_name)

        if field_name == "year":
            try:
                value = parse_year(raw_value)
            except ValueError as e:
                session.patch.pop("year", None)
                session.invalid.add("year")
                raise ValidationFailure(
                    "Year must be a number", field="year", book_id=book_id, value=raw_value
                ) from e
        else:
            value = "" if raw_value is None else str(raw_value)

        session.patch[field_name] = value
        session.invalid.discard(field_name)

    def commit(self, book_id: int) -> Patch:
        """End the session and hand back its patch."""
        session = self._sessions.pop(book_id, None)
        if session is None:
            raise NoActiveSession(book_id)
        return dict(session.patch)

    def reopen(self, book_id: int, patch: Patch) -> None:
        """
        Restore a session after its committed patch failed to save.

        If the user started a newer session meanwhile, the failed patch is
        merged underneath it: values typed since then win, and fields
        flagged invalid stay unset.
        """
        existing = self._sessions.get(book_id)
        if existing is None:
            self._sessions[book_id] = EditSession(patch=dict(patch))
        else:
            merged = {**patch, **existing.patch}
            for field_name in existing.invalid:
                merged.pop(field_name, None)
            existing.patch = merged
        logger.debug(f"Edit session reopened for book {book_id}: {self.patch_for(book_id)}")

    def cancel(self, book_id: int) -> None:
        """End the session and discard the patch."""
        if self._sessions.pop(book_id, None) is not None:
            logger.debug(f"Edit session cancelled for book {book_id}")

    def discard_missing(self, book_ids: Iterable[int]) -> None:
        """Drop sessions for books that are no longer in the collection."""
        keep = set(book_ids)
        for book_id in [b for b in self._sessions if b not in keep]:
            logger.info(f"Dropping edit session for vanished book {book_id}")
            del self._sessions[book_id]

    def is_editing(self, book_id: int) -> bool:
        return book_id in self._sessions

    def patch_for(self, book_id: int) -> Patch:
        session = self._sessions.get(book_id)
        return dict(session.patch) if session else {}

    def invalid_fields(self, book_id: int) -> FrozenSet[str]:
        session = self._sessions.get(book_id)
        return frozenset(session.invalid) if session else frozenset()

    def get(self, book_id: int) -> Optional[EditSession]:
        return self._sessions.get(book_id)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, book_id: object) -> bool:
        return book_id in self._sessions
