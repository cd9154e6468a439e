"""Tests for the explorer CLI."""
import argparse
import asyncio
import json

import pytest

import explorer
from bookrepo.config import Config
from bookrepo.errors import NetworkFailure
from bookrepo.models import Book
from bookrepo.projection import project
from bookrepo.sessions import EditSessionTracker

BOOKS = [Book(1, "Dune", "Herbert", 1965), Book(2, "It", "King", 1986)]


class StubRemote:
    def __init__(self, books, fail_list=False):
        self.books = list(books)
        self.fail_list = fail_list
        self.closed = False

    async def list_books(self):
        if self.fail_list:
            raise NetworkFailure("Connection failed")
        return list(self.books)

    async def create_book(self, draft):
        book = Book(len(self.books) + 1, **draft)
        self.books.append(book)
        return book

    async def update_book(self, book_id, patch):
        return None

    async def delete_book(self, book_id):
        return None

    async def close(self):
        self.closed = True


def make_args(command, **overrides):
    defaults = dict(command=command, base_url=None, sync=False, page_size=None,
                    search="", page=1, format="table")
    defaults.update(overrides)
    return argparse.Namespace(**defaults)


def run(args, remote, monkeypatch):
    monkeypatch.setattr(explorer, "build_remote", lambda a, c: remote)
    return asyncio.run(explorer.run_command(args, Config()))


def test_display_table():
    output = explorer.display_projection(project(BOOKS, EditSessionTracker(), "", 1, 5))

    assert "Dune" in output
    assert "Page 1 of 1 (2 books)" in output


def test_display_empty():
    output = explorer.display_projection(project([], EditSessionTracker(), "", 1, 5))

    assert output == "No books available"


def test_display_json():
    output = explorer.display_projection(project(BOOKS, EditSessionTracker(), "it", 1, 5), "json")

    data = json.loads(output)
    assert data["books"] == [{"book_id": 2, "title": "It", "author": "King", "year": 1986}]
    assert data["total_pages"] == 1


def test_display_compact():
    output = explorer.display_projection(project(BOOKS, EditSessionTracker(), "", 1, 5), "compact")

    assert output.splitlines() == ["1. Dune - Herbert (1965)", "2. It - King (1986)"]


def test_list_command(monkeypatch, capsys):
    remote = StubRemote(BOOKS)

    assert run(make_args("list", search="du", format="compact"), remote, monkeypatch) == 0

    assert capsys.readouterr().out.strip() == "1. Dune - Herbert (1965)"
    assert remote.closed


def test_list_reports_load_failure(monkeypatch, capsys):
    remote = StubRemote(BOOKS, fail_list=True)

    assert run(make_args("list"), remote, monkeypatch) == 1

    assert "Could not load books" in capsys.readouterr().out
    assert remote.closed


def test_add_command(monkeypatch, capsys):
    args = make_args("add", title="Carrie", author="King", year="1974")

    assert run(args, StubRemote(BOOKS), monkeypatch) == 0

    assert "Added book 3: Carrie - King (1974)" in capsys.readouterr().out


def test_update_command(monkeypatch, capsys):
    args = make_args("update", book_id=2, title=None, author=None, year="1987")

    assert run(args, StubRemote(BOOKS), monkeypatch) == 0

    assert "Updated book 2: It - King (1987)" in capsys.readouterr().out


def test_delete_command(monkeypatch, capsys):
    assert run(make_args("delete", book_id=1), StubRemote(BOOKS), monkeypatch) == 0

    assert "Deleted book 1" in capsys.readouterr().out


def test_build_remote_sync_uses_threaded_client():
    remote = explorer.build_remote(make_args("list", sync=True, base_url="http://x"), Config())

    assert isinstance(remote, explorer.ThreadedBookStore)
    assert remote.client.base_url == "http://x"
    asyncio.run(remote.close())


@pytest.mark.parametrize("text,width,expected", [("short", 10, "short"), ("abcdef", 3, "abc...")])
def test_truncate(text, width, expected):
    assert explorer.truncate(text, width) == expected
