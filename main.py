from typing import Optional

import typer
import uvicorn
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from config import settings
from host import Host
from library import Library, register_book_types

APP_NAME = "Books Online CLI"

console = Console()
app = typer.Typer(help=APP_NAME)


def _db_option():
    return typer.Option(None, "--db", help="SQLite database file (default: BOOKS_DB_FILE)")


def _open_library(db_file: Optional[str]) -> Library:
    host = Host(db_file or settings.db_file)
    register_book_types(host)
    return Library(host)


def _genre_text(genre) -> str:
    return ", ".join(genre) if isinstance(genre, list) else str(genre)


@app.command("activate")
def cli_activate(db: Optional[str] = _db_option()):
    """Create the book tables and register the book content type."""
    library = _open_library(db)
    console.print(f"[green]Books store ready:[/] {escape(library.host.db_file)}")


@app.command("list")
def cli_list(db: Optional[str] = _db_option()):
    """List all published books."""
    library = _open_library(db)
    books = library.list()
    if not books:
        console.print("[yellow]No books found.[/]")
        return

    table = Table(title="Books", show_lines=True, header_style="bold cyan")
    table.add_column("ID", style="magenta", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Genre", style="white")
    table.add_column("Author", style="white")
    for book in books:
        author = library.serialize(book)["author"]
        table.add_row(
            str(book.book_id),
            escape(book.title),
            escape(_genre_text(book.genre)),
            escape(f"{author['first_name']} {author['last_name']}".strip()),
        )
    console.print(table)
    console.print(f"[dim]{len(books)} book(s)[/]")


@app.command("show")
def cli_show(book_id: int, db: Optional[str] = _db_option()):
    """Show a single book."""
    library = _open_library(db)
    book = library.read(book_id)
    if not book.exists:
        console.print(f"[yellow]No book found with ID {book_id}.[/]")
        raise typer.Exit(code=1)
    data = library.serialize(book)
    author = f"{data['author']['first_name']} {data['author']['last_name']}".strip()
    console.print(Panel.fit(
        f"[bold]{escape(data['title'])}[/]\n"
        f"{escape(data['description'])}\n\n"
        f"Genre: {escape(_genre_text(data['genre']))}\n"
        f"Author: {escape(author)}",
        title=f"Book {book_id}",
    ))


@app.command("serve")
def cli_serve(
    db: Optional[str] = _db_option(),
    host: str = typer.Option(settings.api_host, "--host", help="Bind address"),
    port: int = typer.Option(settings.api_port, "--port", help="Bind port"),
):
    """Serve the REST API with uvicorn."""
    from api import create_app

    console.print(f"[green]Serving {settings.app_name} on http://{host}:{port}/{settings.rest_namespace}[/]")
    uvicorn.run(create_app(db_file=db), host=host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    app()
