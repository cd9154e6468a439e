"""Tests for the view projection and view state."""
import pytest

from bookrepo.models import Book
from bookrepo.projection import ViewState, project
from bookrepo.sessions import EditSessionTracker

DUNE = Book(1, "Dune", "Herbert", 1965)
IT = Book(2, "It", "King", 1986)


def make_books(count):
    return [Book(i, f"Book {i}", "Author", 2000 + i) for i in range(1, count + 1)]


def test_search_is_case_insensitive_substring():
    """Test the "it" search keeps only It."""
    result = project([DUNE, IT], EditSessionTracker(), "it", 1, 5)

    assert [row.book_id for row in result.rows] == [2]
    assert result.total_pages == 1
    assert result.filtered_count == 1


def test_empty_search_matches_all_in_collection_order():
    result = project([IT, DUNE], EditSessionTracker(), "", 1, 5)

    assert [row.book_id for row in result.rows] == [2, 1]


def test_empty_title_does_not_break_filtering():
    untitled = Book(3, "", "Nobody", 2000)

    assert project([untitled], EditSessionTracker(), "x", 1, 5).rows == ()
    assert len(project([untitled], EditSessionTracker(), "", 1, 5).rows) == 1


def test_pagination():
    books = make_books(12)

    first = project(books, EditSessionTracker(), "", 1, 5)
    last = project(books, EditSessionTracker(), "", 3, 5)

    assert first.total_pages == 3
    assert [r.book_id for r in first.rows] == [1, 2, 3, 4, 5]
    assert [r.book_id for r in last.rows] == [11, 12]


def test_no_results_still_has_one_page():
    result = project([], EditSessionTracker(), "", 1, 5)

    assert result.total_pages == 1
    assert result.is_empty


@pytest.mark.parametrize("page", [0, 4])
def test_out_of_range_page_raises(page):
    with pytest.raises(ValueError):
        project(make_books(12), EditSessionTracker(), "", page, 5)


def test_every_valid_page_projects():
    books = make_books(23)
    for page in range(1, 6):
        assert project(books, EditSessionTracker(), "", page, 5).rows


def test_rows_merge_live_patch():
    """Test that edit rows show patch values and fall back to committed ones."""
    sessions = EditSessionTracker()
    sessions.begin_edit(2)
    sessions.set_field(2, "year", "1987")

    rows = project([DUNE, IT], sessions, "", 1, 5).rows

    assert not rows[0].is_editing
    assert rows[1].is_editing
    assert (rows[1].title, rows[1].author, rows[1].year) == ("It", "King", 1987)
    assert rows[1].book == IT


def test_project_is_pure():
    sessions = EditSessionTracker()
    sessions.begin_edit(1)
    sessions.set_field(1, "title", "Dune Messiah")
    books = [DUNE, IT]

    first = project(books, sessions, "d", 1, 5)
    second = project(books, sessions, "d", 1, 5)

    assert first == second
    assert books == [DUNE, IT]
    assert sessions.patch_for(1) == {"title": "Dune Messiah"}


def test_search_change_resets_page():
    view = ViewState(page_size=5)
    view.current_page = 3

    view.set_search("dune")

    assert view.current_page == 1


def test_same_search_keeps_page():
    view = ViewState(page_size=5, search_text="dune")
    view.current_page = 2

    view.set_search("dune")

    assert view.current_page == 2


def test_clamp_pulls_page_back_when_filtered_set_shrinks():
    view = ViewState(page_size=5)
    view.current_page = 3

    assert view.clamp(6) == 2
    assert view.clamp(0) == 1


def test_next_and_prev_stay_in_range():
    view = ViewState(page_size=5)

    assert view.prev_page() == 1
    assert view.next_page(12) == 2
    assert view.next_page(12) == 3
    assert view.next_page(12) == 3
    assert view.prev_page() == 2


def test_page_size_must_be_positive():
    with pytest.raises(ValueError):
        ViewState(page_size=0)
    with pytest.raises(ValueError):
        project([], EditSessionTracker(), "", 1, 0)
