#!/usr/bin/env python3
"""Book Repository CLI - browse and edit the remote catalog."""
import argparse
import asyncio
import sys
import json
from tabulate import tabulate
from bookrepo.client import BookStoreClient, ThreadedBookStore
from bookrepo.async_client import AsyncBookStoreClient
from bookrepo.config import Config
from bookrepo.errors import CatalogError
from bookrepo.orchestrator import CatalogManager
from bookrepo.projection import Projection
import logging

logger = logging.getLogger(__name__)


def build_remote(args, config: Config):
    """Pick the async client, or the blocking one bridged onto the loop."""
    base_url = args.base_url or config.API_BASE_URL
    if args.sync:
        return ThreadedBookStore(BookStoreClient(
            base_url=base_url,
            books_path=config.BOOKS_PATH,
            timeout=config.DEFAULT_TIMEOUT,
            max_retries=config.DEFAULT_MAX_RETRIES,
            base_backoff=config.DEFAULT_BACKOFF
        ))
    return AsyncBookStoreClient(
        base_url=base_url,
        timeout=config.DEFAULT_TIMEOUT,
        max_concurrent=config.MAX_CONCURRENT
    )


def truncate(text, width: int) -> str:
    text = str(text)
    return text[:width] + "..." if len(text) > width else text


def display_projection(projection: Projection, format_type: str = "table") -> str:
    """Render one page of rows in the specified format."""
    if format_type == "json":
        return json.dumps({
            "page": projection.current_page,
            "total_pages": projection.total_pages,
            "total_books": projection.filtered_count,
            "books": [row.book.to_dict() for row in projection.rows],
        }, indent=2)

    if projection.is_empty:
        return "No books available"

    if format_type == "compact":
        return "\n".join(
            f"{row.book_id}. {row.title} - {row.author} ({row.year})"
            for row in projection.rows
        )

    headers = ["ID", "Book", "Author", "Year"]
    rows = [
        [row.book_id, truncate(row.title, 50), truncate(row.author, 30), row.year]
        for row in projection.rows
    ]
    footer = f"Page {projection.current_page} of {projection.total_pages} ({projection.filtered_count} books)"
    return tabulate(rows, headers=headers, tablefmt="grid") + "\n" + footer


def display_load_failure(manager: CatalogManager) -> str:
    return f"Could not load books: {manager.load_error}"


async def run_command(args, config: Config) -> int:
    """Load the catalog, apply the command, and print the result."""
    remote = build_remote(args, config)
    try:
        manager = CatalogManager(remote, page_size=args.page_size or config.PAGE_SIZE)

        if not await manager.load():
            print(display_load_failure(manager))
            return 1

        if args.command == "list":
            manager.set_search(args.search)
            for _ in range(args.page - 1):
                manager.next_page()
            print(display_projection(manager.projection(), args.format))
            return 0

        if args.command == "add":
            manager.set_draft_field("title", args.title)
            manager.set_draft_field("author", args.author)
            manager.set_draft_field("year", args.year)
            book = await manager.add_book()
            if book is None:
                print(f"Could not add book: {manager.last_error}")
                return 1
            print(f"Added book {book.book_id}: {book.title} - {book.author} ({book.year})")
            return 0

        if args.command == "update":
            manager.begin_edit(args.book_id)
            for field in ("title", "author", "year"):
                value = getattr(args, field)
                if value is not None:
                    manager.edit_field(args.book_id, field, value)
            book = await manager.save_edit(args.book_id)
            if book is None:
                print(f"Could not update book {args.book_id}: {manager.last_error}")
                return 1
            print(f"Updated book {book.book_id}: {book.title} - {book.author} ({book.year})")
            return 0

        if args.command == "delete":
            if not await manager.delete_book(args.book_id):
                print(f"Could not delete book {args.book_id}: {manager.last_error}")
                return 1
            print(f"Deleted book {args.book_id}")
            return 0

        raise ValueError(f"Unknown command: {args.command}")

    finally:
        await remote.close()


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Book Repository - browse and edit the remote catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # First page of every book
  %(prog)s list

  # Search titles and jump to page 2
  %(prog)s list --search dune --page 2

  # Add, edit and remove
  %(prog)s add "Dune" "Frank Herbert" 1965
  %(prog)s update 3 --year 1966
  %(prog)s delete 3
        """
    )
    parser.add_argument("--base-url", help="Book store API root (default: API_BASE_URL)")
    parser.add_argument("--sync", action="store_true", help="Use the blocking client with retries")
    parser.add_argument("--page-size", type=int, help="Rows per page (default: PAGE_SIZE)")
    parser.add_argument("--verbose", action="store_true", help="Log requests")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # List command
    list_parser = subparsers.add_parser("list", help="List books")
    list_parser.add_argument("--search", default="", help="Filter by title")
    list_parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    list_parser.add_argument("--format", choices=["table", "json", "compact"], default="table", help="Output format")

    # Add command
    add_parser = subparsers.add_parser("add", help="Add a book")
    add_parser.add_argument("title")
    add_parser.add_argument("author")
    add_parser.add_argument("year")

    # Update command
    update_parser = subparsers.add_parser("update", help="Edit a book")
    update_parser.add_argument("book_id", type=int)
    update_parser.add_argument("--title")
    update_parser.add_argument("--author")
    update_parser.add_argument("--year")

    # Delete command
    delete_parser = subparsers.add_parser("delete", help="Delete a book")
    delete_parser.add_argument("book_id", type=int)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = Config()

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.LOG_LEVEL,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        sys.exit(asyncio.run(run_command(args, config)))

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
    except CatalogError as e:
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
