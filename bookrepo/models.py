"""Data models for books."""
from dataclasses import dataclass, replace, asdict
from typing import Any, Dict

from bookrepo.errors import ValidationFailure

# Fields a user may edit; book_id is owned by the remote store
EDITABLE_FIELDS = ("title", "author", "year")
TEXT_FIELDS = ("title", "author")

Patch = Dict[str, Any]


def parse_year(raw: Any) -> int:
    """
    Parse a year typed by the user.

    Args:
        raw: Integer or text such as " 1965 "

    Returns:
        The year as an int

    Raises:
        ValueError: if the value is not a whole number
    """
    if isinstance(raw, bool):
        raise ValueError(f"not a year: {raw!r}")
    if isinstance(raw, int):
        return raw
    # JSON encoders may send 1965 as 1965.0
    if isinstance(raw, float):
        if raw.is_integer():
            return int(raw)
        raise ValueError(f"not a whole year: {raw!r}")
    text = str(raw).strip()
    if not text:
        raise ValueError("empty year")
    return int(text)


@dataclass(frozen=True)
class Book:
    """A book record exactly as the remote store knows it."""
    book_id: int
    title: str
    author: str
    year: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Book":
        """
        Build a Book from the remote JSON shape.

        Raises:
            ValueError: if a field is missing or has the wrong type
        """
        try:
            book_id = data["book_id"]
            if isinstance(book_id, bool) or not isinstance(book_id, int):
                raise ValueError(f"book_id must be an integer, got {book_id!r}")
            return cls(
                book_id=book_id,
                title=str(data.get("title") or ""),
                author=str(data.get("author") or ""),
                year=parse_year(data.get("year")),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"malformed book record: {data!r}") from e

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def merged(self, patch: Patch) -> "Book":
        """Return a copy with the patch's editable fields applied."""
        changes = {k: v for k, v in patch.items() if k in EDITABLE_FIELDS}
        return replace(self, **changes)


@dataclass
class Draft:
    """Raw add-form inputs for a book that has no id yet."""
    title: str = ""
    author: str = ""
    year: str = ""

    def set_field(self, field: str, value: str) -> None:
        if field not in EDITABLE_FIELDS:
            raise ValidationFailure(f"Unknown field: {field}", field=field)
        setattr(self, field, value)

    def validate(self) -> Dict[str, Any]:
        """
        Check the inputs and build the create payload.

        Returns:
            Dict with title, author and an integer year

        Raises:
            ValidationFailure: on a blank text field or a non-numeric year
        """
        for field in TEXT_FIELDS:
            if not getattr(self, field).strip():
                raise ValidationFailure(f"{field.capitalize()} is required", field=field)
        try:
            year = parse_year(self.year)
        except ValueError as e:
            raise ValidationFailure("Year must be a number", field="year", value=self.year) from e
        return {"title": self.title, "author": self.author, "year": year}

    def clear(self) -> None:
        self.title = ""
        self.author = ""
        self.year = ""
