"""Catalog manager: turns user intents into remote calls and local mutations."""
import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Tuple

from bookrepo.config import Config
from bookrepo.errors import (
    CatalogError,
    NetworkFailure,
    NoActiveSession,
    NotFound,
    OperationPending,
    ValidationFailure,
)
from bookrepo.models import TEXT_FIELDS, Book, Draft, Patch
from bookrepo.projection import Projection, ViewState, filter_books, project
from bookrepo.sessions import EditSessionTracker
from bookrepo.store import CollectionStore

logger = logging.getLogger(__name__)


class LoadState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class CatalogManager:
    """
    Keeps a local mirror of the remote book store in sync.

    The remote is any object with coroutine methods ``list_books``,
    ``create_book``, ``update_book`` and ``delete_book`` (for example
    AsyncBookStoreClient, or ThreadedBookStore around the blocking client).

    Every update/delete is tagged with a per-book sequence number. A
    response that is not the latest issued for its book is discarded.
    """

    def __init__(
        self,
        remote: Any,
        page_size: int = Config.PAGE_SIZE,
        timeout: Optional[float] = None
    ):
        """
        Args:
            remote: Book store client with async list/create/update/delete
            page_size: Rows per page in the projection
            timeout: Optional per-call limit in seconds; expiry counts as
                a network failure
        """
        self.remote = remote
        self.timeout = timeout
        self.store = CollectionStore()
        self.sessions = EditSessionTracker()
        self.view = ViewState(page_size)
        self.draft = Draft()

        self.load_state = LoadState.IDLE
        self.load_error: Optional[CatalogError] = None
        self.last_error: Optional[CatalogError] = None

        self._seq: Dict[int, int] = {}
        self._pending: Dict[int, str] = {}
        # book_id -> (seq, patch, error) of an update resolved under a pending delete
        self._parked: Dict[int, Tuple[int, Patch, Optional[CatalogError]]] = {}
        self._adding = False

    # -- remote-backed intents -------------------------------------------

    async def load(self) -> bool:
        """
        Replace the collection with the store's contents.

        Returns:
            True on success. On failure load_state is FAILED and
            load_error holds the reason.
        """
        if self.load_state is LoadState.LOADING:
            raise OperationPending("load")

        self.load_state = LoadState.LOADING
        self.load_error = None
        try:
            books = await self._await(self.remote.list_books())
        except CatalogError as e:
            self.load_state = LoadState.FAILED
            self.load_error = e
            self._report("fetching books", e)
            return False

        self.store.replace_all(books)
        self.sessions.discard_missing(self.store.ids())
        self.load_state = LoadState.LOADED
        self._clamp_view()
        logger.info(f"Loaded {len(self.store)} books")
        return True

    async def add_book(self) -> Optional[Book]:
        """
        Create a book from the current draft.

        Returns:
            The created book, or None if the call failed (draft kept)

        Raises:
            ValidationFailure: if the draft is incomplete; nothing is sent
            OperationPending: if another add is in flight
        """
        if self._adding:
            raise OperationPending("add")
        payload = self.draft.validate()

        self._adding = True
        try:
            book = await self._await(self.remote.create_book(payload))
        except CatalogError as e:
            self._report("adding book", e)
            return None
        finally:
            self._adding = False

        self.store.add(book)
        self.draft.clear()
        self._clamp_view()
        logger.info(f"Added book {book.book_id}: {book.title}")
        return book

    async def save_edit(self, book_id: int) -> Optional[Book]:
        """
        Send the edit session's patch for one book.

        Returns:
            The updated book, or None if the call failed or was superseded.
            On failure the edit session is reopened with the same patch.

        Raises:
            NoActiveSession: if the book is not in edit mode
            NotFound: if the book is no longer in the collection
            ValidationFailure: if the patch holds an invalid or blank field
            OperationPending: if another operation for the book is in flight
        """
        session = self.sessions.get(book_id)
        if session is None:
            raise NoActiveSession(book_id)
        book = self.store.get(book_id)
        if book is None:
            self.sessions.cancel(book_id)
            raise NotFound("Book is not in the collection", book_id=book_id)
        self._validate_patch(book_id, session.patch, session.invalid)

        if not session.patch:
            # Nothing changed: leave edit mode without a round trip
            self.sessions.cancel(book_id)
            return book

        seq = self._issue(book_id, "update")
        patch = self.sessions.commit(book_id)
        error: Optional[CatalogError] = None
        try:
            await self._await(self.remote.update_book(book_id, patch))
        except CatalogError as e:
            error = e

        if not self._settle(book_id, seq):
            # A delete took over; keep the outcome in case that delete fails
            if self._pending.get(book_id) == "delete":
                self._parked[book_id] = (seq, patch, error)
            return None

        if error is not None:
            self.sessions.reopen(book_id, patch)
            self._report("updating book", error)
            return None
        return self._apply_update(book_id, patch, book)

    async def delete_book(self, book_id: int) -> bool:
        """
        Delete one book remotely, then locally.

        A delete may take over from a pending update. If the delete then
        fails, the update's outcome is applied after all.

        Returns:
            True if the book was removed, False if the call failed or
            was superseded

        Raises:
            OperationPending: if a delete for the book is already in flight
        """
        superseded = self._seq.get(book_id) if self._pending.get(book_id) == "update" else None
        seq = self._issue(book_id, "delete")
        try:
            await self._await(self.remote.delete_book(book_id))
        except CatalogError as e:
            if self._settle(book_id, seq):
                self._report("deleting book", e)
                if superseded is not None:
                    self._restore_update(book_id, superseded)
            return False

        if not self._settle(book_id, seq):
            return False

        self._parked.pop(book_id, None)
        self.store.remove(book_id)
        self.sessions.cancel(book_id)
        self._clamp_view()
        logger.info(f"Deleted book {book_id}")
        return True

    # -- local intents ---------------------------------------------------

    def set_draft_field(self, field: str, value: str) -> None:
        self.draft.set_field(field, value)

    def begin_edit(self, book_id: int) -> None:
        if book_id not in self.store:
            raise NotFound("Book is not in the collection", book_id=book_id)
        self.sessions.begin_edit(book_id)

    def edit_field(self, book_id: int, field: str, raw_value: Any) -> None:
        self.sessions.set_field(book_id, field, raw_value)

    def cancel_edit(self, book_id: int) -> None:
        self.sessions.cancel(book_id)

    def set_search(self, text: str) -> None:
        self.view.set_search(text)
        self._clamp_view()

    def next_page(self) -> int:
        return self.view.next_page(self._filtered_count())

    def prev_page(self) -> int:
        return self.view.prev_page()

    def projection(self) -> Projection:
        """Rows for the current search and page."""
        self._clamp_view()
        return project(
            self.store,
            self.sessions,
            self.view.search_text,
            self.view.current_page,
            self.view.page_size,
        )

    def is_pending(self, book_id: int) -> bool:
        return book_id in self._pending

    @property
    def is_adding(self) -> bool:
        return self._adding

    @property
    def books(self) -> List[Book]:
        return list(self.store)

    # -- helpers ---------------------------------------------------------

    async def _await(self, call: Awaitable[Any]) -> Any:
        """Await a remote call, mapping timeouts and stray errors to NetworkFailure."""
        try:
            if self.timeout is None:
                return await call
            return await asyncio.wait_for(call, self.timeout)
        except CatalogError:
            raise
        except asyncio.TimeoutError as e:
            raise NetworkFailure("Timed out waiting for the book store", timeout=self.timeout) from e
        except Exception as e:
            logger.error(f"Unexpected error from book store: {e}", exc_info=True)
            raise NetworkFailure("Unexpected error from book store", error=type(e).__name__) from e

    def _issue(self, book_id: int, operation: str) -> int:
        """Mark an operation pending and return its sequence number."""
        pending = self._pending.get(book_id)
        if pending is not None and not (operation == "delete" and pending == "update"):
            raise OperationPending(operation, book_id)
        seq = self._seq.get(book_id, 0) + 1
        self._seq[book_id] = seq
        self._pending[book_id] = operation
        return seq

    def _settle(self, book_id: int, seq: int) -> bool:
        """Clear the pending mark; False if a newer operation superseded this one."""
        if self._seq.get(book_id) != seq:
            logger.info(f"Discarding stale response for book {book_id} (seq {seq})")
            return False
        self._pending.pop(book_id, None)
        return True

    def _restore_update(self, book_id: int, seq: int) -> None:
        """Give a superseded update its outcome back after the delete failed."""
        parked = self._parked.pop(book_id, None)
        if parked is None or parked[0] != seq:
            # Still in flight: its response becomes the latest again
            self._seq[book_id] = seq
            self._pending[book_id] = "update"
            logger.info(f"Update for book {book_id} (seq {seq}) is current again")
            return

        _, patch, error = parked
        if error is not None:
            self.sessions.reopen(book_id, patch)
            self._report("updating book", error)
        else:
            self._apply_update(book_id, patch)

    def _apply_update(self, book_id: int, patch: Patch, fallback: Optional[Book] = None) -> Optional[Book]:
        base = self.store.get(book_id) or fallback
        if base is None:
            logger.warning(f"Updated book {book_id} is no longer in the collection")
            return None
        updated = base.merged(patch)
        self.store.update(updated)
        self._clamp_view()
        logger.info(f"Updated book {book_id}: {patch}")
        return updated

    def _validate_patch(self, book_id: int, patch: Patch, invalid) -> None:
        if invalid:
            field = sorted(invalid)[0]
            raise ValidationFailure(f"{field.capitalize()} is invalid", field=field, book_id=book_id)
        for field in TEXT_FIELDS:
            if field in patch and not str(patch[field]).strip():
                raise ValidationFailure(f"{field.capitalize()} is required", field=field, book_id=book_id)

    def _report(self, action: str, error: CatalogError) -> None:
        self.last_error = error
        logger.error(f"Error {action}: {error}")

    def _filtered_count(self) -> int:
        return len(filter_books(self.store, self.view.search_text))

    def _clamp_view(self) -> None:
        self.view.clamp(self._filtered_count())
